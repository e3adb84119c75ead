"""Test fixtures for the cluster operator."""

import base64
from types import SimpleNamespace

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from app.services.kube_store import KubeStore


class FakeCoreV1Api:
    """In-memory CoreV1Api with create-if-absent semantics."""

    def __init__(self):
        self.secrets: dict[tuple[str, str], client.V1Secret] = {}
        self.config_maps: dict[tuple[str, str], client.V1ConfigMap] = {}
        self.writes: list[tuple[str, str, str]] = []
        # resource name -> HTTP status to fail reads with
        self.read_failures: dict[str, int] = {}

    def _check_read(self, name: str) -> None:
        if name in self.read_failures:
            raise ApiException(status=self.read_failures[name], reason="Injected")

    # Secrets
    def read_namespaced_secret(self, name, namespace):
        self._check_read(name)
        try:
            return self.secrets[(namespace, name)]
        except KeyError:
            raise ApiException(status=404, reason="Not Found") from None

    def create_namespaced_secret(self, namespace, body):
        key = (namespace, body.metadata.name)
        if key in self.secrets:
            raise ApiException(status=409, reason="AlreadyExists")
        self.secrets[key] = body
        self.writes.append(("create", "Secret", body.metadata.name))
        return body

    # ConfigMaps
    def read_namespaced_config_map(self, name, namespace):
        self._check_read(name)
        try:
            return self.config_maps[(namespace, name)]
        except KeyError:
            raise ApiException(status=404, reason="Not Found") from None

    def create_namespaced_config_map(self, namespace, body):
        key = (namespace, body.metadata.name)
        if key in self.config_maps:
            raise ApiException(status=409, reason="AlreadyExists")
        self.config_maps[key] = body
        self.writes.append(("create", "ConfigMap", body.metadata.name))
        return body

    def replace_namespaced_config_map(self, name, namespace, body):
        key = (namespace, name)
        if key not in self.config_maps:
            raise ApiException(status=404, reason="Not Found")
        self.config_maps[key] = body
        self.writes.append(("replace", "ConfigMap", name))
        return body

    # Seeding helpers
    def put_secret(self, namespace: str, name: str, data: dict[str, str]) -> None:
        self.secrets[(namespace, name)] = client.V1Secret(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace),
            data={k: base64.b64encode(v.encode()).decode() for k, v in data.items()},
        )

    def put_config_map(self, namespace: str, name: str, data: dict[str, str]) -> None:
        self.config_maps[(namespace, name)] = client.V1ConfigMap(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace),
            data=data,
        )

    def secret_data(self, namespace: str, name: str) -> dict[str, str]:
        secret = self.secrets[(namespace, name)]
        return {k: base64.b64decode(v).decode() for k, v in secret.data.items()}


class FakeVersionApi:
    def __init__(self, major: str = "1", minor: str = "16"):
        self.major = major
        self.minor = minor

    def get_code(self):
        return SimpleNamespace(major=self.major, minor=self.minor, git_version="v1.x")


class FakeKeyGenerator:
    """Returns a deterministic key per entity and records every call."""

    def __init__(self):
        self.calls: list[tuple[str, str, list[tuple[str, str]]]] = []

    async def generate(self, directory, name, caps):
        self.calls.append((directory, name, caps))
        return f"AQ-{name}-key=="


@pytest.fixture
def fake_core():
    return FakeCoreV1Api()


@pytest.fixture
def fake_version():
    return FakeVersionApi()


@pytest.fixture
def kube_store(fake_core, fake_version):
    return KubeStore(core_api=fake_core, version_api=fake_version)


@pytest.fixture
def key_generator():
    return FakeKeyGenerator()


@pytest.fixture
def namespace():
    return "rook-ceph"

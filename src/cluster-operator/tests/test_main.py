"""End-to-end reconcile against the in-memory store."""

import configparser
import os

import pytest
from kubernetes import client

from app.errors import ConfigParseError, NotAuthorizedError
from app.main import create_services, reconcile_cluster
from app.services.config_synthesizer import CONFIG_OVERRIDE_KEY, CONFIG_OVERRIDE_NAME
from app.services.identity_store import MON_SECRET_NAME
from app.services.membership import ENDPOINT_CONFIG_MAP_NAME, ENDPOINT_DATA_KEY, MAX_MON_ID_KEY
from shared.config import OperatorSettings
from shared.models import NetworkInfo


@pytest.fixture
def settings(tmp_path):
    return OperatorSettings(operator_namespace="rook-ceph", config_dir=str(tmp_path))


@pytest.fixture
def services(settings, kube_store, key_generator):
    return create_services(settings, store=kube_store, key_generator=key_generator)


@pytest.fixture
def owner():
    return client.V1OwnerReference(
        api_version="ceph.rook.io/v1", kind="CephCluster", name="rook-ceph", uid="abc"
    )


class TestReconcileCluster:
    async def test_new_cluster(self, services, settings, fake_core, namespace, owner, tmp_path):
        fake_core.put_config_map(
            namespace,
            ENDPOINT_CONFIG_MAP_NAME,
            {ENDPOINT_DATA_KEY: "a=10.0.0.1:6789,b=10.0.0.2:6789", MAX_MON_ID_KEY: "1"},
        )
        fake_core.put_config_map(
            namespace,
            CONFIG_OVERRIDE_NAME,
            {CONFIG_OVERRIDE_KEY: "[global]\nosd_pool_default_size = 3\n"},
        )

        identity, registry, path = await reconcile_cluster(
            services,
            settings,
            namespace,
            owner_ref=owner,
            network=NetworkInfo(public_network="10.0.0.0/24"),
        )

        assert path == os.path.join(str(tmp_path), namespace, f"{namespace}.config")
        assert registry.allocate_id() == 2
        assert sorted(identity.monitors) == ["a", "b"]
        assert (namespace, MON_SECRET_NAME) in fake_core.secrets

        conf = configparser.ConfigParser(interpolation=None)
        conf.optionxform = str
        conf.read(path)
        assert conf["global"]["fsid"] == identity.fsid
        assert conf["global"]["mon initial members"] == "a b"
        assert conf["global"]["public network"] == "10.0.0.0/24"
        assert conf["global"]["osd_pool_default_size"] == "3"
        assert identity.admin_secret not in open(path).read()

    async def test_second_reconcile_keeps_identity(
        self, services, settings, key_generator, namespace, owner
    ):
        first, _, _ = await reconcile_cluster(services, settings, namespace, owner_ref=owner)
        second, _, _ = await reconcile_cluster(services, settings, namespace)

        assert first.fsid == second.fsid
        assert len(key_generator.calls) == 2

    async def test_without_owner_cannot_create(self, services, settings, fake_core, namespace):
        with pytest.raises(NotAuthorizedError):
            await reconcile_cluster(services, settings, namespace)

        assert fake_core.writes == []

    async def test_read_only_load_after_create(self, services, settings, namespace, owner):
        created, _, _ = await reconcile_cluster(services, settings, namespace, owner_ref=owner)

        identity, registry = await services.cluster_info.load(namespace)

        assert identity.fsid == created.fsid
        assert registry.monitors == {}

    async def test_incomplete_identity_blocks_membership(
        self, services, settings, fake_core, namespace, owner, tmp_path
    ):
        """Test no mon ID is handed out against a half-written identity."""
        fake_core.put_secret(namespace, MON_SECRET_NAME, {"cluster-name": namespace})
        fake_core.read_failures[ENDPOINT_CONFIG_MAP_NAME] = 500

        with pytest.raises(ConfigParseError):
            await services.cluster_info.create_or_load(namespace, allow_create=True, owner_ref=owner)

        assert fake_core.writes == []
        assert not (tmp_path / namespace / f"{namespace}.config").exists()

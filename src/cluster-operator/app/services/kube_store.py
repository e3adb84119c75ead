"""Kubernetes Secrets and ConfigMaps as the persistent store.

The API offers create, get and replace only. Create is atomic: a second
create of the same name fails with 409, which is surfaced as ConflictError.
Every other failure (API status, connection, client config, undecodable
payload) surfaces as StoreError.
"""

import base64
import time

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from shared.observability import get_logger, log_store_call

from ..errors import ConflictError, NotFoundError, StoreError

logger = get_logger(__name__)

# Secret type used for everything the operator owns
ROOK_SECRET_TYPE = "kubernetes.io/rook"


def _encode(data: dict[str, str]) -> dict[str, str]:
    return {k: base64.b64encode(v.encode()).decode() for k, v in data.items()}


def _decode(data: dict[str, str] | None) -> dict[str, str]:
    """Decode base64 Secret values.

    Raises:
        ValueError: a value is not base64 or not UTF-8
    """
    return {k: base64.b64decode(v, validate=True).decode() for k, v in (data or {}).items()}


def _translate(e: ApiException, kind: str, namespace: str, name: str) -> Exception:
    if e.status == 404:
        return NotFoundError(f"{kind} {namespace}/{name} not found")
    if e.status == 409:
        return ConflictError(f"{kind} {namespace}/{name} already exists")
    return StoreError(f"failed to access {kind} {namespace}/{name}: {e.reason}", status=e.status)


class KubeStore:
    """Thin wrapper over CoreV1Api with decoded payloads and typed errors."""

    def __init__(
        self,
        core_api: client.CoreV1Api | None = None,
        version_api: client.VersionApi | None = None,
    ):
        self._k8s_client = core_api
        self._version_client = version_api
        self._config_loaded = core_api is not None

    def _load_config(self) -> None:
        if self._config_loaded:
            return
        try:
            try:
                # Try in-cluster config first
                config.load_incluster_config()
            except config.ConfigException:
                # Fall back to kubeconfig
                config.load_kube_config()
        except (config.ConfigException, OSError) as e:
            raise StoreError(f"failed to load Kubernetes client config: {e}") from e
        self._config_loaded = True

    def _get_k8s_client(self) -> client.CoreV1Api:
        """Get or create Kubernetes API client."""
        if self._k8s_client is None:
            self._load_config()
            self._k8s_client = client.CoreV1Api()
        return self._k8s_client

    def _get_version_client(self) -> client.VersionApi:
        if self._version_client is None:
            self._load_config()
            self._version_client = client.VersionApi()
        return self._version_client

    def _call(self, operation: str, kind: str, namespace: str, name: str, fn, /, **kwargs):
        """Invoke ``fn(**kwargs)``, logging the call and translating failures."""
        start = time.monotonic()
        target = f"{namespace}/{name}"
        try:
            result = fn(**kwargs)
        except ApiException as e:
            log_store_call(
                logger, operation, kind, target, False,
                (time.monotonic() - start) * 1000, error=str(e.status),
            )
            raise _translate(e, kind, namespace, name) from e
        except HTTPError as e:
            # connection refused, reset, retries exhausted
            log_store_call(
                logger, operation, kind, target, False,
                (time.monotonic() - start) * 1000, error=type(e).__name__,
            )
            raise StoreError(f"failed to reach API server for {kind} {target}: {e}") from e
        log_store_call(logger, operation, kind, target, True, (time.monotonic() - start) * 1000)
        return result

    async def get_secret(self, namespace: str, name: str) -> dict[str, str]:
        """Read a Secret and return its decoded data.

        Raises:
            NotFoundError: the Secret does not exist
            StoreError: any other API failure, or undecodable data
        """
        k8s = self._get_k8s_client()
        secret = self._call(
            "read", "Secret", namespace, name,
            k8s.read_namespaced_secret, name=name, namespace=namespace,
        )
        try:
            return _decode(secret.data)
        except ValueError as e:
            raise StoreError(f"Secret {namespace}/{name} holds undecodable data: {e}") from e

    async def create_secret(
        self,
        namespace: str,
        name: str,
        data: dict[str, str],
        owner_ref: client.V1OwnerReference | None = None,
    ) -> None:
        """Create a Secret holding ``data`` in a single call.

        Raises:
            ConflictError: a Secret with this name already exists
        """
        k8s = self._get_k8s_client()
        secret = client.V1Secret(
            metadata=client.V1ObjectMeta(
                name=name,
                namespace=namespace,
                owner_references=[owner_ref] if owner_ref else None,
            ),
            type=ROOK_SECRET_TYPE,
            data=_encode(data),
        )
        self._call(
            "create", "Secret", namespace, name,
            k8s.create_namespaced_secret, namespace=namespace, body=secret,
        )

    async def get_config_map(self, namespace: str, name: str) -> dict[str, str]:
        """Read a ConfigMap and return its data."""
        k8s = self._get_k8s_client()
        cm = self._call(
            "read", "ConfigMap", namespace, name,
            k8s.read_namespaced_config_map, name=name, namespace=namespace,
        )
        return dict(cm.data or {})

    async def save_config_map(
        self,
        namespace: str,
        name: str,
        data: dict[str, str],
        owner_ref: client.V1OwnerReference | None = None,
    ) -> None:
        """Create the ConfigMap, or replace its data when it already exists."""
        k8s = self._get_k8s_client()
        body = client.V1ConfigMap(
            metadata=client.V1ObjectMeta(
                name=name,
                namespace=namespace,
                owner_references=[owner_ref] if owner_ref else None,
            ),
            data=data,
        )
        try:
            self._call(
                "create", "ConfigMap", namespace, name,
                k8s.create_namespaced_config_map, namespace=namespace, body=body,
            )
            logger.info("Created config map", namespace=namespace, name=name)
        except ConflictError:
            self._call(
                "replace", "ConfigMap", namespace, name,
                k8s.replace_namespaced_config_map, name=name, namespace=namespace, body=body,
            )
            logger.info("Updated config map", namespace=namespace, name=name)

    async def get_server_version(self) -> tuple[str, str]:
        """Return the API server's (major, minor) version strings."""
        api = self._get_version_client()
        try:
            info = api.get_code()
        except ApiException as e:
            raise StoreError(f"failed to get server version: {e.reason}", status=e.status) from e
        except HTTPError as e:
            raise StoreError(f"failed to get server version: {e}") from e
        return info.major, info.minor

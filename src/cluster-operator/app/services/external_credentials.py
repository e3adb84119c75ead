"""Credential resolution for externally managed clusters.

Polls the namespace at a fixed interval (no backoff, no attempt limit) until
either an admin key is present in the identity Secret, or the operator
credential and all four CSI credentials exist. Missing records and lookup
errors are both "not yet": logged and retried.

Waiting goes through a Clock so tests can drive time, and an optional stop
event ends the loop early with ResolutionCancelledError.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

from shared.models import ClusterIdentity, CredentialScope, ExternalCredential
from shared.observability import get_logger

from ..errors import (
    ClusterControlError,
    ResolutionCancelledError,
    RetryableUnavailableError,
)
from .identity_store import ADMIN_SECRET_KEY, ADMIN_USERNAME, IdentityStore
from .kube_store import KubeStore
from .membership import MembershipStore

logger = get_logger(__name__)

EXTERNAL_CONNECTION_RETRY_SECONDS = 60.0

OPERATOR_CREDS_SECRET = "rook-ceph-operator-creds"
OPERATOR_CREDS_USER_KEY = "userID"
OPERATOR_CREDS_SECRET_KEY = "userKey"

CSI_RBD_NODE_SECRET = "rook-csi-rbd-node"
CSI_RBD_PROVISIONER_SECRET = "rook-csi-rbd-provisioner"
CSI_CEPHFS_NODE_SECRET = "rook-csi-cephfs-node"
CSI_CEPHFS_PROVISIONER_SECRET = "rook-csi-cephfs-provisioner"

CSI_SECRETS = (
    CSI_RBD_NODE_SECRET,
    CSI_RBD_PROVISIONER_SECRET,
    CSI_CEPHFS_NODE_SECRET,
    CSI_CEPHFS_PROVISIONER_SECRET,
)


class Clock(Protocol):
    """Waits between polls."""

    async def wait(self, seconds: float, stop: asyncio.Event | None = None) -> bool:
        """Sleep ``seconds``; return True if ``stop`` was set meanwhile."""
        ...


class AsyncioClock:
    """Clock backed by the running event loop."""

    async def wait(self, seconds: float, stop: asyncio.Event | None = None) -> bool:
        if stop is None:
            await asyncio.sleep(seconds)
            return False
        try:
            await asyncio.wait_for(stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True


def is_external_admin(admin_secret: str) -> bool:
    """Whether the identity carries a real admin key.

    External clusters that do not hand over an admin key store the
    placeholder ``admin-secret`` in its place.
    """
    return bool(admin_secret) and admin_secret != ADMIN_SECRET_KEY


class ExternalCredentialResolver:
    """Waits for the credentials of an external cluster to be provided."""

    def __init__(
        self,
        store: KubeStore,
        identity_store: IdentityStore,
        membership_store: MembershipStore | None = None,
        interval: float = EXTERNAL_CONNECTION_RETRY_SECONDS,
        clock: Clock | None = None,
    ):
        self.store = store
        self.identity_store = identity_store
        self.membership_store = membership_store
        self.interval = interval
        self.clock = clock or AsyncioClock()

    async def resolve(
        self,
        namespace: str,
        stop: asyncio.Event | None = None,
    ) -> ExternalCredential:
        """Block until a credential is available.

        Raises:
            ResolutionCancelledError: ``stop`` was set before resolution
        """
        _, credential = await self._poll(namespace, stop)
        return credential

    async def populate_external_cluster_info(
        self,
        namespace: str,
        stop: asyncio.Event | None = None,
    ) -> ClusterIdentity:
        """Resolve, then return the identity with credential and mons attached."""
        identity, credential = await self._poll(namespace, stop)
        identity.external_cred = credential
        if self.membership_store is not None:
            registry = await self.membership_store.load(namespace)
            identity.monitors = registry.monitors
        logger.info(
            "Found the cluster info to connect to the external cluster",
            namespace=namespace,
            username=credential.username,
            mons=sorted(identity.monitors),
        )
        return identity

    async def _poll(
        self,
        namespace: str,
        stop: asyncio.Event | None,
    ) -> tuple[ClusterIdentity, ExternalCredential]:
        attempt = 0
        while True:
            if stop is not None and stop.is_set():
                raise ResolutionCancelledError(f"stopped waiting for external cluster {namespace}")
            attempt += 1
            try:
                return await self._try_resolve(namespace)
            except RetryableUnavailableError as e:
                logger.warning(
                    "Waiting for the connection info of the external cluster",
                    namespace=namespace,
                    retry_in_seconds=self.interval,
                    attempt=attempt,
                )
                logger.debug("External cluster not ready", namespace=namespace, reason=str(e))
            if await self.clock.wait(self.interval, stop):
                raise ResolutionCancelledError(f"stopped waiting for external cluster {namespace}")

    async def _try_resolve(self, namespace: str) -> tuple[ClusterIdentity, ExternalCredential]:
        """Single lookup pass.

        Raises:
            RetryableUnavailableError: anything is missing or unreadable
        """
        try:
            identity = await self.identity_store.load(namespace)
        except ClusterControlError as e:
            raise RetryableUnavailableError(f"cluster identity unavailable: {e}") from e

        # An admin key short-circuits the per-service credentials
        if is_external_admin(identity.admin_secret):
            return identity, ExternalCredential(
                username=ADMIN_USERNAME,
                secret=identity.admin_secret,
                scope=CredentialScope.ADMIN,
            )

        try:
            creds = await self.store.get_secret(namespace, OPERATOR_CREDS_SECRET)
            for name in CSI_SECRETS:
                await self.store.get_secret(namespace, name)
        except ClusterControlError as e:
            raise RetryableUnavailableError(str(e)) from e

        username = creds.get(OPERATOR_CREDS_USER_KEY, "")
        secret = creds.get(OPERATOR_CREDS_SECRET_KEY, "")
        if not username or not secret:
            raise RetryableUnavailableError(f"{OPERATOR_CREDS_SECRET} is incomplete")

        return identity, ExternalCredential(
            username=username,
            secret=secret,
            scope=CredentialScope.SERVICE,
        )

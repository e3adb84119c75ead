"""One control cycle: identity, then membership, then rendered config.

Membership is only read once the identity exists, so a half-created
identity is never used to allocate mon IDs.
"""

from __future__ import annotations

import os

from kubernetes import client

from shared.config import LogLevel
from shared.models import ClusterIdentity, NetworkInfo
from shared.observability import ReconcileContextManager, get_logger

from ..errors import RenderError
from .config_synthesizer import ConfigSynthesizer
from .identity_store import IdentityStore
from .membership import MembershipRegistry, MembershipStore

logger = get_logger(__name__)


class ClusterInfoService:
    """Loads the state of a cluster fresh from the store on every call."""

    def __init__(
        self,
        identity_store: IdentityStore,
        membership_store: MembershipStore,
        synthesizer: ConfigSynthesizer,
        config_dir: str,
    ):
        self.identity_store = identity_store
        self.membership_store = membership_store
        self.synthesizer = synthesizer
        self.config_dir = config_dir

    async def create_or_load(
        self,
        namespace: str,
        allow_create: bool = False,
        owner_ref: client.V1OwnerReference | None = None,
    ) -> tuple[ClusterIdentity, MembershipRegistry]:
        """Return the identity (with mons attached) and the registry."""
        with ReconcileContextManager(namespace=namespace):
            identity = await self.identity_store.load_or_create(
                namespace, allow_create=allow_create, owner_ref=owner_ref
            )
            registry = await self.membership_store.load(namespace)
            identity.monitors = registry.monitors
            logger.debug(
                "Loaded cluster info",
                cluster=identity.name,
                max_mon_id=registry.max_mon_id,
            )
        return identity, registry

    async def load(self, namespace: str) -> tuple[ClusterIdentity, MembershipRegistry]:
        """Read-only variant; never creates an identity."""
        return await self.create_or_load(namespace, allow_create=False)

    async def write_connection_config(
        self,
        identity: ClusterIdentity,
        namespace: str,
        network: NetworkInfo | None = None,
        log_level: LogLevel | str | int = LogLevel.INFO,
    ) -> str:
        """Write the admin config and keyring under ``<config_dir>/<namespace>``."""
        destination = os.path.join(self.config_dir, namespace)
        try:
            return await self.synthesizer.generate_config_file(
                identity, namespace, destination, network=network, log_level=log_level
            )
        except RenderError:
            logger.error("Failed to write connection config", namespace=namespace)
            raise

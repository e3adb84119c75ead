"""Load-or-create of the cluster identity.

The identity (name, fsid, mon and admin secrets) lives in one Secret per
cluster namespace. It is created at most once; a writer that loses the
create race adopts the winner's identity.
"""

from __future__ import annotations

import os
import uuid

from kubernetes import client

from shared.models import ClusterIdentity
from shared.observability import get_logger

from ..errors import ConfigParseError, ConflictError, NotAuthorizedError, NotFoundError
from .keygen import ADMIN_CAPS, MON_CAPS, KeyGenerator
from .kube_store import KubeStore

logger = get_logger(__name__)

# Secret holding the identity, shared by all mons
MON_SECRET_NAME = "rook-ceph-mon"

# Keys within the identity Secret
CLUSTER_NAME_KEY = "cluster-name"
FSID_KEY = "fsid"
MON_SECRET_KEY = "mon-secret"
ADMIN_SECRET_KEY = "admin-secret"

MON_ENTITY = "mon."
ADMIN_USERNAME = "client.admin"


class IdentityStore:
    """Reads and creates the persisted ClusterIdentity."""

    def __init__(self, store: KubeStore, key_generator: KeyGenerator, config_dir: str):
        self.store = store
        self.key_generator = key_generator
        self.config_dir = config_dir

    async def load(self, namespace: str) -> ClusterIdentity:
        """Load the identity without any possibility of creating it.

        Raises:
            NotFoundError: no identity has been persisted
            ConfigParseError: the persisted identity is missing fields
        """
        data = await self.store.get_secret(namespace, MON_SECRET_NAME)
        identity = ClusterIdentity(
            name=data.get(CLUSTER_NAME_KEY, ""),
            fsid=data.get(FSID_KEY, ""),
            mon_secret=data.get(MON_SECRET_KEY, ""),
            admin_secret=data.get(ADMIN_SECRET_KEY, ""),
        )
        if not identity.is_initialized():
            missing = [
                key
                for key in (CLUSTER_NAME_KEY, FSID_KEY, MON_SECRET_KEY, ADMIN_SECRET_KEY)
                if not data.get(key)
            ]
            raise ConfigParseError(
                f"secret {namespace}/{MON_SECRET_NAME} is incomplete, missing {missing}"
            )
        logger.debug("Found existing monitor secrets", cluster=identity.name)
        return identity

    async def load_or_create(
        self,
        namespace: str,
        allow_create: bool,
        owner_ref: client.V1OwnerReference | None = None,
    ) -> ClusterIdentity:
        """Return the persisted identity, creating it if permitted.

        Raises:
            NotAuthorizedError: absent and ``allow_create`` is false
        """
        try:
            return await self.load(namespace)
        except NotFoundError:
            if not allow_create:
                raise NotAuthorizedError(
                    f"not expected to create new cluster info in {namespace} "
                    "and did not find existing secret"
                ) from None

        identity = await self._generate(namespace)

        logger.info("Creating mon secrets for a new cluster", namespace=namespace)
        try:
            await self.store.create_secret(
                namespace,
                MON_SECRET_NAME,
                {
                    CLUSTER_NAME_KEY: identity.name,
                    FSID_KEY: identity.fsid,
                    MON_SECRET_KEY: identity.mon_secret,
                    ADMIN_SECRET_KEY: identity.admin_secret,
                },
                owner_ref=owner_ref,
            )
        except ConflictError:
            # Another writer created it first; theirs is authoritative
            logger.info("Mon secrets created concurrently, adopting existing", namespace=namespace)
            return await self.load(namespace)

        return identity

    async def _generate(self, cluster_name: str) -> ClusterIdentity:
        """Create a new fsid and shared keys. Nothing is persisted here."""
        directory = os.path.join(self.config_dir, cluster_name)

        mon_secret = await self.key_generator.generate(directory, MON_ENTITY, MON_CAPS)
        admin_secret = await self.key_generator.generate(directory, ADMIN_USERNAME, ADMIN_CAPS)

        return ClusterIdentity(
            name=cluster_name,
            fsid=str(uuid.uuid4()),
            mon_secret=mon_secret,
            admin_secret=admin_secret,
        )

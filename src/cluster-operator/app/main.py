"""Cluster operator wiring.

Builds the services from settings and runs one reconcile of a cluster:
identity, membership, then the admin connection config.
"""

from __future__ import annotations

from dataclasses import dataclass

from kubernetes import client

from shared.config import OperatorSettings
from shared.models import ClusterIdentity, NetworkInfo
from shared.observability import get_logger, setup_logging

from .services.cluster_info import ClusterInfoService
from .services.config_synthesizer import ConfigSynthesizer
from .services.external_credentials import ExternalCredentialResolver
from .services.identity_store import IdentityStore
from .services.keygen import CephAuthtoolKeyGenerator, KeyGenerator
from .services.kube_store import KubeStore
from .services.membership import MembershipRegistry, MembershipStore

logger = get_logger(__name__)


@dataclass
class Services:
    """Services sharing one store client."""

    store: KubeStore
    identity_store: IdentityStore
    membership_store: MembershipStore
    synthesizer: ConfigSynthesizer
    cluster_info: ClusterInfoService
    external_resolver: ExternalCredentialResolver


def create_services(
    settings: OperatorSettings,
    store: KubeStore | None = None,
    key_generator: KeyGenerator | None = None,
) -> Services:
    store = store or KubeStore()
    key_generator = key_generator or CephAuthtoolKeyGenerator(tool=settings.keygen_tool)

    identity_store = IdentityStore(store, key_generator, settings.config_dir)
    membership_store = MembershipStore(store)
    synthesizer = ConfigSynthesizer(store, config_dir=settings.config_dir)
    return Services(
        store=store,
        identity_store=identity_store,
        membership_store=membership_store,
        synthesizer=synthesizer,
        cluster_info=ClusterInfoService(
            identity_store, membership_store, synthesizer, settings.config_dir
        ),
        external_resolver=ExternalCredentialResolver(
            store,
            identity_store,
            membership_store,
            interval=settings.external_connection_retry_seconds,
        ),
    )


async def reconcile_cluster(
    services: Services,
    settings: OperatorSettings,
    namespace: str,
    owner_ref: client.V1OwnerReference | None = None,
    network: NetworkInfo | None = None,
) -> tuple[ClusterIdentity, MembershipRegistry, str]:
    """One control cycle for a cluster namespace.

    Only a caller holding an owner reference (the cluster resource) may
    create a new identity.
    """
    identity, registry = await services.cluster_info.create_or_load(
        namespace, allow_create=owner_ref is not None, owner_ref=owner_ref
    )
    config_path = await services.cluster_info.write_connection_config(
        identity, namespace, network=network, log_level=settings.log_level
    )
    logger.info(
        "Reconciled cluster",
        namespace=namespace,
        mons=registry.quorum_member_list(),
        config=config_path,
    )
    return identity, registry, config_path


def configure(settings: OperatorSettings | None = None) -> OperatorSettings:
    settings = settings or OperatorSettings()
    setup_logging(log_level=settings.log_level, log_format=settings.log_format)
    return settings

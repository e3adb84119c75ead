"""Control-plane services."""

from .cluster_info import ClusterInfoService
from .config_synthesizer import (
    ConfigSynthesizer,
    log_level_to_verbosity,
    merge_documents,
    mon_shared_keyring,
    parse_config_text,
    render_config_text,
)
from .driver_gate import DriverEligibilityGate, GateState, parse_server_version
from .external_credentials import (
    AsyncioClock,
    Clock,
    ExternalCredentialResolver,
    is_external_admin,
)
from .identity_store import IdentityStore
from .keygen import CephAuthtoolKeyGenerator, KeyGenerator, extract_key
from .kube_store import KubeStore
from .membership import (
    MappingResult,
    MappingStatus,
    MembershipRegistry,
    MembershipStore,
    data_dir_relative_host_path,
    index_to_name,
    name_to_index,
    parse_mon_endpoints,
)

__all__ = [
    "AsyncioClock",
    "CephAuthtoolKeyGenerator",
    "Clock",
    "ClusterInfoService",
    "ConfigSynthesizer",
    "DriverEligibilityGate",
    "ExternalCredentialResolver",
    "GateState",
    "IdentityStore",
    "KeyGenerator",
    "KubeStore",
    "MappingResult",
    "MappingStatus",
    "MembershipRegistry",
    "MembershipStore",
    "data_dir_relative_host_path",
    "extract_key",
    "index_to_name",
    "is_external_admin",
    "log_level_to_verbosity",
    "merge_documents",
    "mon_shared_keyring",
    "name_to_index",
    "parse_config_text",
    "parse_mon_endpoints",
    "parse_server_version",
    "render_config_text",
]

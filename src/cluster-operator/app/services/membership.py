"""Quorum membership: mon directory, ID allocation and node pinning.

The directory is persisted in a ConfigMap with three fields:

- ``data``: ``name=address[,address2]`` entries, comma separated. A token
  without ``=`` is the modern (v2) address of the preceding member.
- ``maxMonId``: decimal allocation counter.
- ``mapping``: JSON node pinning, ``{"node": {<mon>: {"Name": ...}}}``.

The counter is never trusted on its own: the highest ID decodable from any
member name raises it, so a stale counter cannot cause an ID to be reused.
"""

from __future__ import annotations

import posixpath
import re
from enum import Enum

from kubernetes import client
from pydantic import BaseModel, Field, ValidationError

from shared.models import MonInfo, MonMapping, NodeInfo
from shared.observability import get_logger

from ..errors import ConfigParseError, NotFoundError
from .kube_store import KubeStore

logger = get_logger(__name__)

ENDPOINT_CONFIG_MAP_NAME = "rook-ceph-mon-endpoints"
ENDPOINT_DATA_KEY = "data"
MAX_MON_ID_KEY = "maxMonId"
MAPPING_KEY = "mapping"

# Prefixes stripped from a mon name before decoding its ID, longest first
_NAME_PREFIXES = ("rook-ceph-mon-", "rook-ceph-mon", "mon-", "mon")
_LETTERS = re.compile(r"^[a-z]+$")


class MappingStatus(str, Enum):
    """Outcome of parsing the node-pinning blob."""

    OK = "OK"
    DEGRADED = "DEGRADED"


class MappingResult(BaseModel):
    """Parsed node pinning, or an empty mapping plus the parse failure."""

    status: MappingStatus = MappingStatus.OK
    mapping: MonMapping = Field(default_factory=MonMapping)
    cause: str | None = None


def index_to_name(index: int) -> str:
    """Letter name for a mon ID: 0 -> a, 25 -> z, 26 -> aa."""
    if index < 0:
        raise ValueError("mon index must be non-negative")
    result = ""
    while True:
        result = chr(ord("a") + index % 26) + result
        index = index // 26 - 1
        if index < 0:
            return result


def name_to_index(name: str) -> int | None:
    """Decode the ID a mon name encodes, or None when it encodes none.

    Legacy names carry a decimal suffix (``mon3``); current names are
    letters (``c``).
    """
    suffix = name
    for prefix in _NAME_PREFIXES:
        if suffix.startswith(prefix) and len(suffix) > len(prefix):
            suffix = suffix[len(prefix):]
            break
    if suffix.isdigit():
        return int(suffix)
    if _LETTERS.match(suffix):
        index = 0
        for ch in suffix:
            index = index * 26 + (ord(ch) - ord("a") + 1)
        return index - 1
    return None


def parse_mon_endpoints(text: str) -> dict[str, MonInfo]:
    """Parse the serialized directory into members keyed by name.

    Raises:
        ConfigParseError: a token has an empty name or an invalid address,
            or an address token appears before any member
    """
    monitors: dict[str, MonInfo] = {}
    current: str | None = None
    for token in text.split(","):
        token = token.strip()
        if not token:
            continue
        try:
            if "=" in token:
                name, _, address = token.partition("=")
                name, address = name.strip(), address.strip()
                if not name or not address:
                    raise ConfigParseError(f"invalid mon endpoint entry {token!r}")
                monitors[name] = MonInfo(name=name, endpoint=address)
                current = name
            else:
                if current is None:
                    raise ConfigParseError(f"address {token!r} has no preceding mon")
                mon = monitors[current]
                monitors[current] = MonInfo(
                    name=mon.name, endpoint=mon.endpoint, msgr2_endpoint=token.removeprefix("v2:")
                )
        except ValidationError as e:
            raise ConfigParseError(f"invalid mon endpoint entry {token!r}: {e}") from e
    return monitors


def format_mon_endpoints(monitors: dict[str, MonInfo]) -> str:
    """Serialize members back to the directory grammar, sorted by name."""
    entries = []
    for name in sorted(monitors):
        mon = monitors[name]
        entry = f"{name}={mon.endpoint}"
        if mon.msgr2_endpoint:
            entry += f",{mon.msgr2_endpoint}"
        entries.append(entry)
    return ",".join(entries)


def parse_mapping(raw: str | None) -> MappingResult:
    """Parse node pinning; malformed input degrades to an empty mapping."""
    if not raw:
        return MappingResult()
    try:
        return MappingResult(mapping=MonMapping.model_validate_json(raw))
    except ValidationError as e:
        return MappingResult(status=MappingStatus.DEGRADED, cause=str(e))


def data_dir_relative_host_path(mon_name: str) -> str:
    """Host data dir of a mon, relative to the data dir host path."""
    # legacy mons are named "mon#" and already carry the prefix
    mon_host_dir = mon_name if "mon" in mon_name else f"mon-{mon_name}"
    return posixpath.join(mon_host_dir, "data")


class MembershipRegistry:
    """Members, allocation counter and node pinning for one cluster.

    Not synchronized. A single writer must persist each new member together
    with the counter before allocating again.
    """

    def __init__(
        self,
        monitors: dict[str, MonInfo] | None = None,
        max_mon_id: int = -1,
        mapping_result: MappingResult | None = None,
    ):
        self.monitors = monitors or {}
        self.max_mon_id = max_mon_id
        self.mapping_result = mapping_result or MappingResult()
        self._heal_max_id()

    @property
    def mapping(self) -> MonMapping:
        return self.mapping_result.mapping

    def _heal_max_id(self) -> None:
        for name in self.monitors:
            index = name_to_index(name)
            if index is not None and index > self.max_mon_id:
                self.max_mon_id = index

    def allocate_id(self) -> int:
        """Next free mon ID."""
        return self.max_mon_id + 1

    def next_mon_name(self) -> str:
        return index_to_name(self.allocate_id())

    def add_member(self, mon: MonInfo, node: NodeInfo | None = None) -> None:
        """Record a member (and its node) and raise the counter to cover it."""
        self.monitors[mon.name] = mon
        if node is not None:
            self.mapping.node[mon.name] = node
        index = name_to_index(mon.name)
        if index is not None and index > self.max_mon_id:
            self.max_mon_id = index

    def quorum_member_list(self) -> str:
        """Space-joined member names."""
        return " ".join(sorted(self.monitors))

    def quorum_address_directory(self) -> str:
        """Comma-joined ``[v2:host:3300,v1:host:port]`` group per member."""
        return ",".join(
            f"[v2:{mon.v2_address},v1:{mon.v1_address}]"
            for _, mon in sorted(self.monitors.items())
        )

    def to_config_map_data(self) -> dict[str, str]:
        return {
            ENDPOINT_DATA_KEY: format_mon_endpoints(self.monitors),
            MAX_MON_ID_KEY: str(self.max_mon_id),
            MAPPING_KEY: self.mapping.model_dump_json(by_alias=True),
        }


class MembershipStore:
    """Loads and saves the MembershipRegistry through the endpoints ConfigMap."""

    def __init__(self, store: KubeStore):
        self.store = store

    async def load(self, namespace: str) -> MembershipRegistry:
        """Reconstruct the registry from the store.

        A missing ConfigMap is an empty registry. A malformed node mapping
        degrades to an empty one. An unparseable counter is tolerated only
        when member names yield an ID to fall back on.

        Raises:
            ConfigParseError: the directory is malformed, or the counter is
                unparseable with no member ID to recover from
        """
        try:
            data = await self.store.get_config_map(namespace, ENDPOINT_CONFIG_MAP_NAME)
        except NotFoundError:
            return MembershipRegistry()

        monitors = parse_mon_endpoints(data.get(ENDPOINT_DATA_KEY, ""))

        max_mon_id = -1
        raw_id = data.get(MAX_MON_ID_KEY)
        if raw_id is not None:
            try:
                max_mon_id = int(raw_id.strip())
            except ValueError:
                logger.error("Invalid max mon id", namespace=namespace, max_mon_id=raw_id)
                if not any(name_to_index(name) is not None for name in monitors):
                    raise ConfigParseError(
                        f"invalid max mon id {raw_id!r} and no mon names to recover from"
                    ) from None

        mapping_result = parse_mapping(data.get(MAPPING_KEY))
        if mapping_result.status == MappingStatus.DEGRADED:
            logger.warning(
                "Invalid JSON in mon mapping, ignoring",
                namespace=namespace,
                error=mapping_result.cause,
            )

        registry = MembershipRegistry(monitors, max_mon_id, mapping_result)
        logger.debug(
            "Loaded mon config",
            namespace=namespace,
            max_mon_id=registry.max_mon_id,
            mons=registry.quorum_member_list(),
        )
        return registry

    async def save(
        self,
        namespace: str,
        registry: MembershipRegistry,
        owner_ref: client.V1OwnerReference | None = None,
    ) -> None:
        """Persist members, counter and mapping in one write."""
        await self.store.save_config_map(
            namespace, ENDPOINT_CONFIG_MAP_NAME, registry.to_config_map_data(), owner_ref=owner_ref
        )

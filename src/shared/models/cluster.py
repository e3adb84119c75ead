"""Cluster domain models.

Identity, quorum members (mons), node pinning and external credentials.
"""

from enum import Enum

from pydantic import Field, field_validator

from .base import CephBaseModel

# Default mon ports for the legacy (v1) and modern (v2) wire protocols
MSGR1_PORT = 6789
MSGR2_PORT = 3300


def split_endpoint(endpoint: str) -> tuple[str, int | None]:
    """Split ``host:port`` into host and port.

    IPv6 hosts may be bracketed (``[::1]:6789``). A bare host yields no port.
    """
    endpoint = endpoint.strip()
    if endpoint.startswith("["):
        host, _, rest = endpoint[1:].partition("]")
        port = rest[1:] if rest.startswith(":") else ""
        return host, int(port) if port else None
    if endpoint.count(":") == 1:
        host, port = endpoint.split(":")
        return host, int(port) if port else None
    # bare IPv4/hostname or unbracketed IPv6
    return endpoint, None


def join_host_port(host: str, port: int) -> str:
    """Inverse of split_endpoint; brackets IPv6 hosts."""
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


class CredentialScope(str, Enum):
    """Scope of an external cluster credential."""

    ADMIN = "ADMIN"  # admin key supplied, full access
    SERVICE = "SERVICE"  # operator user plus the four CSI users


class ExternalCredential(CephBaseModel):
    """Credential used to talk to an externally managed cluster."""

    username: str
    secret: str = Field(repr=False)
    scope: CredentialScope = CredentialScope.SERVICE


class MonInfo(CephBaseModel):
    """A quorum member and the addresses clients reach it on."""

    name: str = Field(min_length=1)
    endpoint: str = Field(description="Legacy (v1) address, host:port")
    msgr2_endpoint: str | None = Field(
        default=None, description="Modern (v2) address, host:port"
    )

    @field_validator("endpoint", "msgr2_endpoint")
    @classmethod
    def validate_address(cls, v: str | None) -> str | None:
        """Reject addresses without a host or with a non-numeric port."""
        if v is None:
            return v
        host, port = split_endpoint(v)
        if not host:
            raise ValueError(f"address {v!r} has no host")
        if port is not None and not 0 < port < 65536:
            raise ValueError(f"address {v!r} has an out-of-range port")
        return v

    @property
    def host(self) -> str:
        return split_endpoint(self.endpoint)[0]

    @property
    def port(self) -> int:
        port = split_endpoint(self.endpoint)[1]
        return port if port is not None else MSGR1_PORT

    @property
    def v1_address(self) -> str:
        return join_host_port(self.host, self.port)

    @property
    def v2_address(self) -> str:
        """Explicit modern address, or the legacy host on the default v2 port."""
        if self.msgr2_endpoint:
            host, port = split_endpoint(self.msgr2_endpoint)
            return join_host_port(host, port if port is not None else MSGR2_PORT)
        return join_host_port(self.host, MSGR2_PORT)


class NodeInfo(CephBaseModel):
    """Node a mon is scheduled on. Wire names are capitalised."""

    name: str = Field(default="", alias="Name")
    hostname: str = Field(default="", alias="Hostname")
    address: str = Field(default="", alias="Address")


class MonMapping(CephBaseModel):
    """Best-effort pinning of mon name to node."""

    node: dict[str, NodeInfo | None] = Field(default_factory=dict)


class NetworkInfo(CephBaseModel):
    """Optional bind addresses and subnets copied into the config."""

    public_addr: str | None = None
    public_network: str | None = None
    cluster_addr: str | None = None
    cluster_network: str | None = None


class ClusterIdentity(CephBaseModel):
    """Persistent identity of a Ceph cluster.

    ``fsid`` and the two secrets never change once created. ``monitors`` is
    attached from the membership registry after load and is not persisted
    with the identity.
    """

    name: str
    fsid: str
    mon_secret: str = Field(repr=False)
    admin_secret: str = Field(repr=False)
    external_cred: ExternalCredential | None = None
    monitors: dict[str, MonInfo] = Field(default_factory=dict)

    def is_initialized(self) -> bool:
        """True when every identity field is populated."""
        return bool(self.name and self.fsid and self.mon_secret and self.admin_secret)

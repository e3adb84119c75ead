"""Unit tests for Pydantic models."""

import pytest
from pydantic import ValidationError

from shared.models import (
    MSGR2_PORT,
    ClusterIdentity,
    ConfigDocument,
    CredentialScope,
    ExternalCredential,
    MonInfo,
    MonMapping,
    NetworkInfo,
    NodeInfo,
    join_host_port,
    split_endpoint,
)


class TestEndpoints:
    """Test host:port helpers."""

    @pytest.mark.parametrize(
        "endpoint,expected",
        [
            ("10.0.0.1:6789", ("10.0.0.1", 6789)),
            ("mon.example.com:3300", ("mon.example.com", 3300)),
            ("[fd00::1]:6789", ("fd00::1", 6789)),
            ("[fd00::1]", ("fd00::1", None)),
            ("10.0.0.1", ("10.0.0.1", None)),
            ("fd00::1", ("fd00::1", None)),
        ],
    )
    def test_split_endpoint(self, endpoint: str, expected: tuple) -> None:
        """Test splitting IPv4, hostname and IPv6 endpoints."""
        assert split_endpoint(endpoint) == expected

    def test_join_host_port_brackets_ipv6(self) -> None:
        assert join_host_port("fd00::1", 3300) == "[fd00::1]:3300"
        assert join_host_port("10.0.0.1", 3300) == "10.0.0.1:3300"


class TestMonInfo:
    """Test quorum member model."""

    def test_addresses_from_legacy_endpoint(self) -> None:
        """Test the modern address defaults to the legacy host on port 3300."""
        mon = MonInfo(name="a", endpoint="10.0.0.1:6789")

        assert mon.host == "10.0.0.1"
        assert mon.port == 6789
        assert mon.v1_address == "10.0.0.1:6789"
        assert mon.v2_address == f"10.0.0.1:{MSGR2_PORT}"

    def test_explicit_modern_address(self) -> None:
        mon = MonInfo(name="a", endpoint="10.0.0.1:6789", msgr2_endpoint="10.0.0.9:3301")

        assert mon.v2_address == "10.0.0.9:3301"

    def test_missing_port_uses_default(self) -> None:
        mon = MonInfo(name="a", endpoint="10.0.0.1")

        assert mon.v1_address == "10.0.0.1:6789"

    def test_name_required(self) -> None:
        """Test empty member names are rejected."""
        with pytest.raises(ValidationError):
            MonInfo(name="", endpoint="10.0.0.1:6789")

    @pytest.mark.parametrize(
        "endpoint", ["10.0.0.1:abc", "10.0.0.1:0", "10.0.0.1:65536", ":6789", "[]:6789"]
    )
    def test_invalid_address_rejected(self, endpoint: str) -> None:
        """Test garbled host:port text fails validation instead of later use."""
        with pytest.raises(ValidationError):
            MonInfo(name="a", endpoint=endpoint)

        with pytest.raises(ValidationError):
            MonInfo(name="a", endpoint="10.0.0.1:6789", msgr2_endpoint=endpoint)


class TestNodeMapping:
    """Test node pinning models."""

    def test_parse_wire_names(self, sample_mapping_json: str) -> None:
        mapping = MonMapping.model_validate_json(sample_mapping_json)

        assert mapping.node["a"] == NodeInfo(name="node-0", hostname="node-0", address="10.0.0.1")
        assert mapping.node["b"] is None

    def test_dump_uses_wire_names(self) -> None:
        mapping = MonMapping(node={"a": NodeInfo(name="n", hostname="n", address="1.1.1.1")})

        dumped = mapping.model_dump(by_alias=True)

        assert dumped == {"node": {"a": {"Name": "n", "Hostname": "n", "Address": "1.1.1.1"}}}


class TestClusterIdentity:
    """Test cluster identity model."""

    def test_from_dict(self, sample_identity_data: dict) -> None:
        identity = ClusterIdentity(**sample_identity_data)

        assert identity.is_initialized()
        assert identity.monitors["b"].v2_address == "10.0.0.2:3300"
        assert identity.external_cred is None

    def test_incomplete_identity(self) -> None:
        identity = ClusterIdentity(name="c", fsid="", mon_secret="m", admin_secret="a")

        assert not identity.is_initialized()

    def test_secrets_hidden_from_repr(self, sample_identity_data: dict) -> None:
        """Test key material never appears in log-friendly reprs."""
        identity = ClusterIdentity(**sample_identity_data)
        credential = ExternalCredential(username="client.admin", secret="AQBtopsecret==")

        assert "AQBadminsecret==" not in repr(identity)
        assert "AQBmonsecret==" not in repr(identity)
        assert "AQBtopsecret==" not in repr(credential)

    def test_credential_scope_default(self) -> None:
        credential = ExternalCredential(username="client.healthchecker", secret="k")

        assert credential.scope == CredentialScope.SERVICE


class TestConfigDocument:
    """Test the INI document model."""

    def test_get_with_default(self) -> None:
        document = ConfigDocument(sections={"global": {"fsid": "x"}})

        assert document.get("global", "fsid") == "x"
        assert document.get("global", "missing") is None
        assert document.get("osd", "fsid", "fallback") == "fallback"

    def test_section_creates_missing(self) -> None:
        document = ConfigDocument()

        document.section("client.admin")["keyring"] = "/tmp/keyring"

        assert document.sections == {"client.admin": {"keyring": "/tmp/keyring"}}

    def test_network_info_optional(self) -> None:
        network = NetworkInfo()

        assert network.public_network is None
        assert network.cluster_addr is None

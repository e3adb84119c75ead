"""Pytest configuration and shared fixtures."""

import os
from typing import Any

import pytest

# Set test environment before importing settings
os.environ["ENV"] = "development"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["LOG_FORMAT"] = "text"


@pytest.fixture
def sample_identity_data() -> dict[str, Any]:
    """Sample cluster identity data for testing."""
    return {
        "name": "rook-ceph",
        "fsid": "2c7d4b8e-0bd1-4f4f-9b0e-6a0c2b1f6d11",
        "mon_secret": "AQBmonsecret==",
        "admin_secret": "AQBadminsecret==",
        "monitors": {
            "a": {"name": "a", "endpoint": "10.0.0.1:6789"},
            "b": {"name": "b", "endpoint": "10.0.0.2:6789", "msgr2_endpoint": "10.0.0.2:3300"},
        },
    }


@pytest.fixture
def sample_mapping_json() -> str:
    """Node pinning as persisted in the endpoints ConfigMap."""
    return (
        '{"node": {"a": {"Name": "node-0", "Hostname": "node-0", "Address": "10.0.0.1"},'
        ' "b": null}}'
    )


# =============================================================================
# Markers
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line(
        "markers", "integration: Integration tests (require a Kubernetes cluster)"
    )
    config.addinivalue_line("markers", "slow: Slow tests")

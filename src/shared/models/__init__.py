"""Shared data models for the Ceph cluster operator.

All models follow these conventions:
- Field names: lowercase snake_case
- Enums: uppercase SNAKE_CASE
- Persisted wire names are aliases
"""

# Base
from .base import CephBaseModel

# Cluster domain
from .cluster import (
    MSGR1_PORT,
    MSGR2_PORT,
    ClusterIdentity,
    CredentialScope,
    ExternalCredential,
    MonInfo,
    MonMapping,
    NetworkInfo,
    NodeInfo,
    join_host_port,
    split_endpoint,
)

# Config documents
from .config import ConfigDocument

__all__ = [
    # Base
    "CephBaseModel",
    # Cluster
    "ClusterIdentity",
    "CredentialScope",
    "ExternalCredential",
    "MonInfo",
    "MonMapping",
    "NetworkInfo",
    "NodeInfo",
    "MSGR1_PORT",
    "MSGR2_PORT",
    "join_host_port",
    "split_endpoint",
    # Config
    "ConfigDocument",
]

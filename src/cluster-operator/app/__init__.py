"""Ceph cluster operator: identity, membership and config synthesis."""

__version__ = "0.1.0"

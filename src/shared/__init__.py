"""Rook Ceph operator shared package.

This package contains shared components used by the operator:
- models: Pydantic data models
- config: Configuration management
- observability: Structured logging
"""

__version__ = "0.1.0"

"""Configuration management module.

This module provides:
- Environment-based configuration with validation
- Operator-specific settings classes
- Cached settings access via get_settings()
"""

from .settings import (
    CSISettings,
    DriverGatePolicy,
    Environment,
    LogFormat,
    LogLevel,
    OperatorSettings,
    Settings,
    get_settings,
)

__all__ = [
    # Main settings
    "Settings",
    "get_settings",
    # Enums
    "Environment",
    "LogLevel",
    "LogFormat",
    "DriverGatePolicy",
    # Component settings
    "CSISettings",
    # Service-specific settings
    "OperatorSettings",
]

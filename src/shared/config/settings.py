"""Configuration management with Pydantic Settings.

Environment variables are loaded from:
1. Environment variables (highest priority)
2. .env file (development)
3. Defaults (lowest priority)
"""

from enum import Enum
from functools import lru_cache

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Logging format."""

    JSON = "json"
    TEXT = "text"


class DriverGatePolicy(str, Enum):
    """How the CSI driver gate reacts to later version checks.

    STICKY keeps a closed gate closed until the process restarts.
    REEVALUATE recomputes the decision on every check.
    """

    STICKY = "sticky"
    REEVALUATE = "reevaluate"


class CSISettings(BaseSettings):
    """CSI driver configuration."""

    model_config = SettingsConfigDict(env_prefix="CSI_")

    enable_rbd: bool = Field(default=True, description="Start the RBD CSI driver")
    enable_cephfs: bool = Field(default=True, description="Start the CephFS CSI driver")
    min_major: int = Field(default=1, description="Minimum Kubernetes major version")
    min_minor: int = Field(default=13, description="Minimum Kubernetes minor version")
    gate_policy: DriverGatePolicy = Field(
        default=DriverGatePolicy.STICKY,
        description="Whether a closed driver gate may reopen",
    )


class Settings(BaseSettings):
    """Main application settings.

    All settings can be overridden via environment variables.
    For nested settings, use the appropriate prefix (e.g., CSI_ENABLE_RBD).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="rook-ceph-operator", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        alias="ENV",
        description="Deployment environment",
    )

    # Logging configuration
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: LogFormat = Field(default=LogFormat.JSON, description="Logging format")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PRODUCTION


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses LRU cache to avoid re-parsing environment variables.
    """
    return Settings()


class OperatorSettings(Settings):
    """Settings specific to the cluster operator."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    operator_namespace: str = Field(
        default="",
        validation_alias=AliasChoices("POD_NAMESPACE", "operator_namespace"),
        description="Namespace the operator runs in (downward API)",
    )
    pod_name: str = Field(
        default="",
        validation_alias=AliasChoices("POD_NAME", "pod_name"),
        description="Name of the operator pod (downward API)",
    )
    config_dir: str = Field(
        default="/var/lib/rook",
        description="Directory holding generated config and keyrings",
    )
    current_namespace_only: bool = Field(
        default=False,
        validation_alias=AliasChoices("ROOK_CURRENT_NAMESPACE_ONLY", "current_namespace_only"),
        description="Watch only the operator namespace for clusters",
    )
    external_connection_retry_seconds: float = Field(
        default=60.0,
        description="Fixed interval between external credential lookups",
    )
    keygen_tool: str = Field(
        default="ceph-authtool",
        description="Executable used to generate keyrings",
    )

    csi: CSISettings = Field(default_factory=CSISettings)

    @field_validator("external_connection_retry_seconds")
    @classmethod
    def validate_retry(cls, v: float) -> float:
        """Reject non-positive poll intervals."""
        if v <= 0:
            raise ValueError("external_connection_retry_seconds must be positive")
        return v

"""Ceph configuration document model."""

from pydantic import Field

from .base import CephBaseModel


class ConfigDocument(CephBaseModel):
    """Ordered INI sections, each a mapping of key to string value."""

    cluster_name: str = ""
    sections: dict[str, dict[str, str]] = Field(default_factory=dict)

    def get(self, section: str, key: str, default: str | None = None) -> str | None:
        return self.sections.get(section, {}).get(key, default)

    def section(self, name: str) -> dict[str, str]:
        """Return the named section, creating it if missing."""
        return self.sections.setdefault(name, {})

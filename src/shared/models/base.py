"""Base model configuration for all Pydantic models."""

from pydantic import BaseModel, ConfigDict


class CephBaseModel(BaseModel):
    """Base model with common configuration.

    Conventions:
    - Field names are lowercase snake_case
    - Persisted wire names are expressed as aliases
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=True,
    )

"""
Base schema classes with common configuration.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

__all__ = [
    "BaseSchema",
    "BaseInputSchema",
]


class BaseSchema(BaseModel):
    """
    Base schema with common Pydantic configuration.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        # Keep enums as Enum instances; callers can use `.value`
        use_enum_values=False,
        arbitrary_types_allowed=True,
        str_strip_whitespace=True,
    )


class BaseInputSchema(BaseSchema):
    """
    Base schema for caller-supplied input: unknown keys are rejected.
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
    )

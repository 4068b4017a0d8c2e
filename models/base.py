"""
Base schemas and mixins for all models.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class BaseSchema(BaseModel):
    """
    Base for all schemas.

    Features:
        - Auto-trim whitespace from strings
        - Validate on attribute assignment
        - Allow ORM objects (from_attributes)
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True
    )


class RecordSchema(BaseSchema):
    """
    Base for rows read from the document store.

    Unknown columns are ignored and naive timestamps are read as UTC,
    so every datetime leaving a record is timezone-aware.
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        extra="ignore"
    )

    @field_validator("*", mode="after")
    @classmethod
    def _timestamps_as_utc(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            if value.tzinfo is None or value.utcoffset() is None:
                return value.replace(tzinfo=timezone.utc)
            return value.astimezone(timezone.utc)
        return value

"""
API Schema Base
===============

Base Pydantic model for every request/response schema: camelCase aliases on
the wire, snake_case in Python, ORM objects accepted directly and datetimes
rendered as UTC with a ``Z`` suffix.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel


def serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Render a datetime as ISO 8601 UTC with a ``Z`` suffix."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.isoformat() + "Z"


class HTTPSchemaModel(BaseModel):
    """
    Base model for all HTTP API schemas.

    Accepts both ``created_at`` and ``createdAt`` on input and always
    serializes with the camelCase alias.
    """

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_serializer("*", mode="wrap")
    @classmethod
    def serialize_any_datetime(cls, value: Any, handler: Any) -> Any:
        if isinstance(value, datetime):
            return serialize_datetime(value)
        return handler(value)

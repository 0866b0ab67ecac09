"""Base schema configuration for API models.

Usage:
    - APIRequest: incoming request bodies (unknown fields ignored)
    - APIResponse: outgoing response bodies (unknown fields rejected)

Both are camelCase on the wire and accept snake_case on input.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _BaseSchema(BaseModel):
    """Private base schema with common configuration.

    Do not use directly - inherit from one of the public subclasses.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
        serialize_by_alias=True,
    )


class APIRequest(_BaseSchema):
    """Base class for incoming API request schemas.

    Clients may send properties we don't recognize; they are ignored.
    """

    model_config = ConfigDict(
        extra="ignore",
    )


class APIResponse(_BaseSchema):
    """Base class for outgoing API response schemas.

    Only explicitly defined properties are returned.
    """

    model_config = ConfigDict(
        extra="forbid",
    )

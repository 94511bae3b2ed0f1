"""Common models shared across resources."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class MksModel(BaseModel):
    """Base model for Morpheus API records.

    The API speaks camelCase; attributes are snake_case.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        from_attributes=True,
        populate_by_name=True,
    )


class Ref(MksModel):
    """Reference to another Morpheus object ({"id": ..., "name": ...})."""

    id: int | None = None
    name: str | None = None

"""Base model for request bodies.

Request bodies are camelCase on the wire and snake_case in Python; both
spellings are accepted. Timestamps are normalised to UTC on the way in.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar, Dict, FrozenSet

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from core.utils import to_utc


class CamelModel(BaseModel):
    """Request model accepting camelCase or snake_case keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        str_strip_whitespace=True,
    )

    # Fields a partial update may explicitly clear with null
    nullable: ClassVar[FrozenSet[str]] = frozenset()

    @field_validator("*", mode="after")
    @classmethod
    def timestamps_to_utc(cls, value: Any) -> Any:
        return to_utc(value) if isinstance(value, datetime) else value

    def provided(self) -> Dict[str, Any]:
        """Fields with a value, for creates."""
        return self.model_dump(exclude_none=True)

    def changes(self) -> Dict[str, Any]:
        """Fields the client actually sent, for partial updates."""
        sent = self.model_dump(exclude_unset=True)
        return {key: value for key, value in sent.items() if value is not None or key in self.nullable}


__all__ = ["CamelModel"]

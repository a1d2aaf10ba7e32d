"""Shared pydantic configuration and identifier helpers for storyforge models."""

from __future__ import annotations

from collections.abc import Callable
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


IdFactory = Callable[[], str]
"""Callable producing a fresh identifier, unique within a game session."""


def new_id() -> str:
    """Generate a fresh entity identifier.

    Returns:
        A random UUID4 string.
    """
    return str(uuid4())


class StoryModel(BaseModel):
    """Base class for immutable storyforge records.

    Records are frozen and updated with ``model_copy(update=...)``. They
    serialize with camelCase aliases (``baseStats``, ``isUserTurn``) and
    accept either the alias or the Python field name on input. Unknown
    keys are ignored so save files may carry ancillary UI state.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict:
        """Serialize to a JSON-compatible dict using camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


__all__ = [
    "IdFactory",
    "new_id",
    "StoryModel",
]

"""Persisted story graph records.

These mirror the records owned by the external graph store. They are
UUID-keyed and supplied to (and returned from) the sync bridge, which
never writes them anywhere itself.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from storydsl.models.document import SpeakerType  # noqa: TC001 - pydantic needs it at runtime


def _utc_now() -> datetime:
    return datetime.now(UTC)


class StoryStack(BaseModel):
    """A story: the container for cards and its entry point."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    name: str = ""
    description: str | None = None
    first_card_id: str | None = None


class StoryCard(BaseModel):
    """A persisted card."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    story_stack_id: str = ""
    title: str = ""
    content: str = ""
    image_prompt: str | None = None
    image_description: str | None = None
    message: str | None = None
    speaker: str | None = None
    speaker_type: SpeakerType | None = None
    order_index: int = 0
    version: int = 1
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class Choice(BaseModel):
    """A persisted choice linking two cards by UUID."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    story_card_id: str = Field(min_length=1)
    target_card_id: str = Field(min_length=1)
    label: str = ""
    order_index: int = 0
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class GraphSnapshot(BaseModel):
    """A complete graph as exchanged with the persistence layer."""

    stack: StoryStack
    cards: list[StoryCard] = Field(default_factory=list)
    choices: list[Choice] = Field(default_factory=list)

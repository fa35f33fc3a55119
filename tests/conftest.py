"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import itertools
from collections.abc import Callable
from datetime import UTC, datetime

import pytest

from storydsl.models.graph import Choice, GraphSnapshot, StoryCard, StoryStack

FIXED_NOW = datetime(2024, 1, 1, tzinfo=UTC)

CAVE_UUID = "c0ffee00-0000-4000-8000-000000000001"
TUNNEL_UUID = "decade00-0000-4000-8000-000000000002"
FOREST_UUID = "facade00-0000-4000-8000-000000000003"


def _make_card(
    card_id: str, title: str, content: str = "", order_index: int = 0, **extra: object
) -> StoryCard:
    """Helper to create a persisted card with fixed timestamps."""
    return StoryCard(
        id=card_id,
        story_stack_id="stack-1",
        title=title,
        content=content,
        order_index=order_index,
        created_at=FIXED_NOW,
        updated_at=FIXED_NOW,
        **extra,
    )


def _make_choice(
    choice_id: str, source: str, target: str, label: str, order_index: int = 0
) -> Choice:
    """Helper to create a persisted choice with fixed timestamps."""
    return Choice(
        id=choice_id,
        story_card_id=source,
        target_card_id=target,
        label=label,
        order_index=order_index,
        created_at=FIXED_NOW,
        updated_at=FIXED_NOW,
    )


@pytest.fixture
def stack() -> StoryStack:
    return StoryStack(
        id="stack-1",
        name="The Cave",
        description="A short descent",
        first_card_id=CAVE_UUID,
    )


@pytest.fixture
def cards() -> list[StoryCard]:
    return [
        _make_card(CAVE_UUID, "Cave Entrance", "You stand before a dark cave.", 0),
        _make_card(
            TUNNEL_UUID,
            "Tunnel",
            "Water drips somewhere ahead.",
            1,
            speaker="Guide",
            speaker_type="character",
        ),
        _make_card(FOREST_UUID, "Forest", "Birdsong. The end.", 2),
    ]


@pytest.fixture
def choices() -> list[Choice]:
    return [
        _make_choice("choice-1", CAVE_UUID, TUNNEL_UUID, "Enter", 0),
        _make_choice("choice-2", CAVE_UUID, FOREST_UUID, "Turn back", 1),
        _make_choice("choice-3", TUNNEL_UUID, FOREST_UUID, "Climb out", 0),
    ]


@pytest.fixture
def snapshot(
    stack: StoryStack, cards: list[StoryCard], choices: list[Choice]
) -> GraphSnapshot:
    return GraphSnapshot(stack=stack, cards=cards, choices=choices)


@pytest.fixture
def id_factory() -> Callable[[], str]:
    """Deterministic UUID source for new records."""
    counter = itertools.count(1)
    return lambda: f"00000000-0000-4000-8000-{next(counter):012d}"


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW

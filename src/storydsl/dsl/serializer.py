"""Story DSL serializer.

Converts a persisted story graph (stack, cards, choices) into DSL text
plus the slug <-> UUID mapping needed to reconcile edits later. The
output parses back into the same structure as long as content lines do
not collide with DSL syntax, which :func:`escape_content` guarantees.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from storydsl.dsl.id_mapping import IdMapping
from storydsl.dsl.slugs import generate_slug_id, unique_id
from storydsl.dsl.syntax import CHOICE_MARKER, SEPARATOR, ZERO_WIDTH_SPACE, needs_escape
from storydsl.graph.algorithms import breadth_first_order
from storydsl.models.document import SerializeOptions
from storydsl.models.graph import StoryStack
from storydsl.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from storydsl.models.graph import Choice, StoryCard

log = get_logger(__name__)

UNKNOWN_TARGET = "unknown"
EXPORT_STACK_NAME = "Exported Cards"


@dataclass(frozen=True)
class SerializedStory:
    """DSL text together with the mapping used to produce its ids."""

    text: str
    id_mapping: IdMapping


def build_id_mapping(cards: Sequence[StoryCard]) -> IdMapping:
    """Map every card's generated slug id to its UUID.

    Two cards whose title and UUID prefix coincide get ``_1``, ``_2``...
    suffixes; a UUID listed twice keeps its first slug.
    """
    mapping = IdMapping()
    for card in cards:
        if mapping.dsl_id_for(card.id) is not None:
            continue
        mapping.bind(unique_id(generate_slug_id(card.title, card.id), mapping.dsl_to_db), card.id)
    return mapping


def escape_content(content: str) -> str:
    """Neutralize content lines that would otherwise parse as DSL syntax.

    Lines whose trimmed form starts with ``#``, ``->`` or ``@``, or is
    exactly ``---``, get a zero-width space inserted after their leading
    whitespace. The parser removes it again, see
    :func:`storydsl.dsl.syntax.unescape_line`.
    """
    escaped: list[str] = []
    for line in content.split("\n"):
        stripped = line.lstrip()
        if needs_escape(stripped):
            indent = line[: len(line) - len(stripped)]
            line = f"{indent}{ZERO_WIDTH_SPACE}{stripped}"
        escaped.append(line)
    return "\n".join(escaped)


def group_choices_by_card(choices: Sequence[Choice]) -> dict[str, list[Choice]]:
    """Group choices by source card UUID, each group sorted by ``order_index``."""
    grouped: dict[str, list[Choice]] = {}
    for choice in choices:
        grouped.setdefault(choice.story_card_id, []).append(choice)
    for group in grouped.values():
        group.sort(key=lambda c: c.order_index)
    return grouped


def order_cards(
    cards: Sequence[StoryCard],
    choices: Sequence[Choice],
    first_card_id: str | None,
) -> list[StoryCard]:
    """Order cards for output: breadth-first from the start card, then orphans.

    Traversal follows persisted choices from ``first_card_id`` (or the
    first card when unset). Cards never reached keep their input order
    and are appended at the end, so nothing is dropped.
    """
    if not cards:
        return []

    by_id = {card.id: card for card in cards}
    choices_by_card = group_choices_by_card(choices)

    def targets(card_id: str) -> list[str]:
        return [c.target_card_id for c in choices_by_card.get(card_id, [])]

    start_id = first_card_id or cards[0].id
    visited = breadth_first_order(start_id, targets)

    ordered = [by_id[card_id] for card_id in visited if card_id in by_id]
    seen = {card.id for card in ordered}
    ordered.extend(card for card in cards if card.id not in seen)
    return ordered


def _render_card(
    card: StoryCard,
    dsl_id: str,
    card_choices: list[Choice],
    id_mapping: IdMapping,
    *,
    is_start: bool,
    options: SerializeOptions,
) -> list[str]:
    lines: list[str] = []
    if is_start:
        lines.append("@start")

    if options.include_debug_info:
        lines.append(f"# ID: {card.id}")
        lines.append(f"# Order: {card.order_index}")

    lines.append(f"## {dsl_id}: {card.title}")

    if card.speaker:
        lines.append(f"@speaker: {card.speaker}")
    if card.speaker_type:
        lines.append(f"@speakerType: {card.speaker_type}")
    if card.message:
        lines.append(f"@message: {card.message}")
    if options.include_image_prompts and card.image_prompt:
        lines.append(f"@imagePrompt: {card.image_prompt}")
    if options.include_image_prompts and card.image_description:
        lines.append(f"@imageDescription: {card.image_description}")

    if card.content:
        lines.append(escape_content(card.content))

    if card.content and card_choices:
        lines.append("")

    for choice in card_choices:
        target = id_mapping.dsl_id_for(choice.target_card_id) or UNKNOWN_TARGET
        lines.append(f"{CHOICE_MARKER} {choice.label} {CHOICE_MARKER} {target}")

    return lines


def serialize_story_to_dsl(
    stack: StoryStack,
    cards: Sequence[StoryCard],
    choices: Sequence[Choice],
    options: SerializeOptions | None = None,
) -> SerializedStory:
    """Serialize a story graph to DSL text.

    Pure function of its inputs; nothing passed in is modified.

    Args:
        stack: Story record (name, description, start card).
        cards: All cards of the story.
        choices: All choices of the story.
        options: Output switches. Defaults to :class:`SerializeOptions()`.

    Returns:
        The text and the id mapping its slug ids were drawn from. A
        choice whose target has no mapping entry is written with the
        target ``unknown``.
    """
    opts = options or SerializeOptions()
    id_mapping = build_id_mapping(cards)
    choices_by_card = group_choices_by_card(choices)
    lines: list[str] = []

    if opts.include_metadata:
        lines.append(f"# Story: {stack.name}")
        if stack.description:
            lines.append(f"# Description: {stack.description}")
        lines.append("")

    ordered = order_cards(cards, choices, stack.first_card_id)
    for index, card in enumerate(ordered):
        if index > 0:
            lines.extend(["", SEPARATOR, ""])
        dsl_id = id_mapping.dsl_id_for(card.id) or generate_slug_id(card.title, card.id)
        lines.extend(
            _render_card(
                card,
                dsl_id,
                choices_by_card.get(card.id, []),
                id_mapping,
                is_start=card.id == stack.first_card_id,
                options=opts,
            )
        )

    lines.append("")
    text = "\n".join(lines)

    log.debug("dsl_serialized", stack=stack.id, cards=len(ordered), choices=len(choices))
    return SerializedStory(text=text, id_mapping=id_mapping)


def serialize_cards_to_dsl(
    cards: Sequence[StoryCard],
    choices: Sequence[Choice],
    first_card_id: str | None = None,
) -> str:
    """Serialize a set of cards without a full story context.

    A placeholder stack stands in for the story; the metadata header is
    omitted and image prompts are included.
    """
    placeholder = StoryStack(id="temp", name=EXPORT_STACK_NAME, first_card_id=first_card_id)
    options = SerializeOptions(include_metadata=False, include_image_prompts=True)
    return serialize_story_to_dsl(placeholder, cards, choices, options).text

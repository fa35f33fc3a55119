"""Card-level diff between two parsed documents."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from storydsl.models.document import DslCard, DslChoice, StoryDocument

# Card fields compared one by one; choices are compared as a whole list.
DIFF_FIELDS = ("title", "content", "speaker", "speaker_type", "message", "image_prompt")


@dataclass(frozen=True)
class CardChange:
    """Fields of one card that differ, with their new values.

    ``changes["choices"]`` holds the entire new choice list whenever the
    choice list differs at all.
    """

    id: str
    changes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DslDiff:
    added_cards: list[DslCard] = field(default_factory=list)
    removed_cards: list[DslCard] = field(default_factory=list)
    modified_cards: list[CardChange] = field(default_factory=list)
    start_card_changed: bool = False
    new_start_card_id: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (
            self.added_cards or self.removed_cards or self.modified_cards or self.start_card_changed
        )


def choice_signature(choices: tuple[DslChoice, ...] | list[DslChoice]) -> str:
    """Ordered ``label:target`` keys joined with ``|``."""
    return "|".join(choice.key for choice in choices)


def _card_changes(old: DslCard, new: DslCard) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    for name in DIFF_FIELDS:
        new_value = getattr(new, name)
        if getattr(old, name) != new_value:
            changes[name] = new_value
    if choice_signature(old.choices) != choice_signature(new.choices):
        changes["choices"] = list(new.choices)
    return changes


def compute_dsl_diff(old_doc: StoryDocument, new_doc: StoryDocument) -> DslDiff:
    """Compare two documents card by card, keyed by DSL id.

    Args:
        old_doc: Baseline document.
        new_doc: Edited document.

    Returns:
        Added cards (new only), removed cards (old only), per-card field
        changes for ids present in both, and whether the start card moved.
    """
    old_cards = {card.id: card for card in old_doc.cards}
    new_cards = {card.id: card for card in new_doc.cards}

    added: list[DslCard] = []
    modified: list[CardChange] = []
    for card_id, new_card in new_cards.items():
        old_card = old_cards.get(card_id)
        if old_card is None:
            added.append(new_card)
            continue
        changes = _card_changes(old_card, new_card)
        if changes:
            modified.append(CardChange(id=card_id, changes=changes))

    removed = [card for card_id, card in old_cards.items() if card_id not in new_cards]

    return DslDiff(
        added_cards=added,
        removed_cards=removed,
        modified_cards=modified,
        start_card_changed=old_doc.start_card_id != new_doc.start_card_id,
        new_start_card_id=new_doc.start_card_id,
    )

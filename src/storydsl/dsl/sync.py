"""Sync bridge between DSL text and the live story graph.

Keeps a :class:`SyncState` for an editing session and reconciles a
parsed document against the persisted graph. Reconciliation only
*plans* changes: :func:`apply_dsl_to_graph` returns an
:class:`ApplyResult` describing what to create, update and delete, and
the persistence layer carries it out. When executing the plan, create
cards before the choices that target them, and delete choices before
the cards they reference.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, fields
from datetime import UTC, datetime

from storydsl.dsl.diff import DslDiff, compute_dsl_diff
from storydsl.dsl.id_mapping import IdMapping
from storydsl.dsl.parser import parse_story_dsl
from storydsl.dsl.serializer import serialize_story_to_dsl
from storydsl.models.document import (
    CardTarget,
    DslCard,
    EndTarget,
    ParseError,
    ParseOptions,
    ParseWarning,
    SerializeOptions,
    StoryDocument,
)
from storydsl.models.graph import Choice, StoryCard, StoryStack
from storydsl.observability.logging import get_logger

log = get_logger(__name__)

IdFactory = Callable[[], str]
Clock = Callable[[], datetime]

# Persisted card fields that an apply may change.
_CARD_FIELDS = (
    "title",
    "content",
    "image_prompt",
    "image_description",
    "message",
    "speaker",
    "speaker_type",
    "order_index",
)


def _new_uuid() -> str:
    return str(uuid.uuid4())


def _utc_now() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


@dataclass
class ApplyResult:
    """Plan produced by reconciling a document against the graph.

    The id lists name what changed. ``cards`` and ``choices`` are the
    complete resulting record sets (cards in document order), so they can
    be fed straight back into the next apply together with
    ``id_mapping``.
    """

    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    choices_created: list[str] = field(default_factory=list)
    choices_updated: list[str] = field(default_factory=list)
    choices_deleted: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    id_mapping: IdMapping = field(default_factory=IdMapping)
    cards: list[StoryCard] = field(default_factory=list)
    choices: list[Choice] = field(default_factory=list)
    start_card_id: str | None = None

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def has_changes(self) -> bool:
        return any(
            (
                self.created,
                self.updated,
                self.deleted,
                self.choices_created,
                self.choices_updated,
                self.choices_deleted,
            )
        )

    def cards_to_create(self) -> list[StoryCard]:
        ids = set(self.created)
        return [card for card in self.cards if card.id in ids]

    def cards_to_update(self) -> list[StoryCard]:
        ids = set(self.updated)
        return [card for card in self.cards if card.id in ids]

    def choices_to_create(self) -> list[Choice]:
        ids = set(self.choices_created)
        return [choice for choice in self.choices if choice.id in ids]

    def choices_to_update(self) -> list[Choice]:
        ids = set(self.choices_updated)
        return [choice for choice in self.choices if choice.id in ids]


def _card_state(card: StoryCard) -> tuple[object, ...]:
    return tuple(getattr(card, name) for name in _CARD_FIELDS)


def _create_card(
    dsl_card: DslCard, card_id: str, stack_id: str, order_index: int, now: datetime
) -> StoryCard:
    return StoryCard(
        id=card_id,
        story_stack_id=stack_id,
        title=dsl_card.title,
        content=dsl_card.content,
        image_prompt=dsl_card.image_prompt,
        image_description=dsl_card.image_description,
        message=dsl_card.message,
        speaker=dsl_card.speaker,
        speaker_type=dsl_card.speaker_type,
        order_index=order_index,
        created_at=now,
        updated_at=now,
    )


def _merge_card(existing: StoryCard, dsl_card: DslCard, order_index: int) -> StoryCard:
    """Overlay DSL fields on an existing card.

    Title and content always come from the DSL. Optional fields the DSL
    leaves unset keep their persisted values.
    """

    def pick(dsl_value: str | None, current: str | None) -> str | None:
        return dsl_value if dsl_value is not None else current

    return existing.model_copy(
        update={
            "title": dsl_card.title,
            "content": dsl_card.content,
            "image_prompt": pick(dsl_card.image_prompt, existing.image_prompt),
            "image_description": pick(dsl_card.image_description, existing.image_description),
            "message": pick(dsl_card.message, existing.message),
            "speaker": pick(dsl_card.speaker, existing.speaker),
            "speaker_type": pick(dsl_card.speaker_type, existing.speaker_type),
            "order_index": order_index,
        }
    )


def apply_dsl_to_graph(
    document: StoryDocument,
    stack: StoryStack,
    existing_cards: Sequence[StoryCard],
    existing_choices: Sequence[Choice],
    id_mapping: IdMapping,
    *,
    id_factory: IdFactory | None = None,
    clock: Clock | None = None,
) -> ApplyResult:
    """Reconcile a parsed document against the live graph.

    Pure and side-effect free: inputs are not modified and nothing is
    persisted.

    Algorithm:
        1. Walk the document's cards in order. A card whose DSL id maps
           to a UUID still in the graph is merged over that record;
           anything else becomes a new card with a fresh UUID and a new
           mapping entry. Document position becomes ``order_index``.
        2. Existing cards left untouched are deleted and unmapped.
        3. Choices are matched on ``source_uuid:label``. Terminal choices
           are not persisted. Choices whose target cannot be resolved are
           reported in ``errors`` and skipped. Existing choices left
           untouched are deleted.

    Args:
        document: Parsed DSL document.
        stack: Story the cards belong to.
        existing_cards: Current persisted cards.
        existing_choices: Current persisted choices.
        id_mapping: Slug <-> UUID mapping from the last sync.
        id_factory: UUID source for new records. Defaults to ``uuid4``.
        clock: Timestamp source for new and changed records. Defaults to UTC now.

    Returns:
        The change plan. ``success`` is False when any choice could not
        be resolved, but everything that could be resolved is still
        planned.
    """
    make_id = id_factory or _new_uuid
    now = (clock or _utc_now)()
    result = ApplyResult()

    existing_by_id = {card.id: card for card in existing_cards}
    mapping = id_mapping.copy()
    used_card_ids: set[str] = set()

    for order_index, dsl_card in enumerate(document.cards):
        db_id = mapping.db_id_for(dsl_card.id)
        existing = existing_by_id.get(db_id) if db_id is not None else None

        if existing is not None:
            merged = _merge_card(existing, dsl_card, order_index)
            if _card_state(merged) != _card_state(existing):
                merged = merged.model_copy(update={"updated_at": now})
                result.updated.append(existing.id)
            result.cards.append(merged)
            used_card_ids.add(existing.id)
            continue

        if db_id is not None:
            mapping.unbind_dsl(dsl_card.id)
        new_card = _create_card(dsl_card, make_id(), stack.id, order_index, now)
        mapping.bind(dsl_card.id, new_card.id)
        result.cards.append(new_card)
        result.created.append(new_card.id)
        used_card_ids.add(new_card.id)

    for card in existing_cards:
        if card.id not in used_card_ids and card.id not in result.deleted:
            result.deleted.append(card.id)
            mapping.unbind_db(card.id)

    # Entries pointing at cards that are gone are stale.
    mapping.retain_db_ids(used_card_ids)

    _plan_choices(document, existing_choices, mapping, result, make_id, now)

    result.id_mapping = mapping
    if document.start_card_id is not None:
        result.start_card_id = mapping.db_id_for(document.start_card_id)

    log.info(
        "dsl_apply_planned",
        stack=stack.id,
        created=len(result.created),
        updated=len(result.updated),
        deleted=len(result.deleted),
        choices_created=len(result.choices_created),
        choices_updated=len(result.choices_updated),
        choices_deleted=len(result.choices_deleted),
        errors=len(result.errors),
    )
    return result


def _plan_choices(
    document: StoryDocument,
    existing_choices: Sequence[Choice],
    mapping: IdMapping,
    result: ApplyResult,
    make_id: IdFactory,
    now: datetime,
) -> None:
    existing_by_key: dict[str, Choice] = {}
    for choice in existing_choices:
        existing_by_key.setdefault(f"{choice.story_card_id}:{choice.label}", choice)

    used_choice_ids: set[str] = set()
    for dsl_card in document.cards:
        source_id = mapping.db_id_for(dsl_card.id)
        if source_id is None:
            continue

        order_index = 0
        seen_keys: set[str] = set()
        for dsl_choice in dsl_card.choices:
            target: CardTarget | EndTarget = dsl_choice.target
            if isinstance(target, EndTarget):
                # Story endings have no card to point at and are not persisted.
                continue

            target_id = mapping.db_id_for(target.card_id)
            if target_id is None:
                result.errors.append(
                    f'Choice "{dsl_choice.label}" targets unknown card "{target.card_id}"'
                )
                continue

            key = f"{source_id}:{dsl_choice.label}"
            if key in seen_keys:
                result.errors.append(
                    f'Choice "{dsl_choice.label}" appears more than once in card "{dsl_card.id}"'
                )
                continue
            seen_keys.add(key)

            existing = existing_by_key.get(key)
            if existing is not None:
                used_choice_ids.add(existing.id)
                record = existing
                if existing.target_card_id != target_id or existing.order_index != order_index:
                    record = existing.model_copy(
                        update={
                            "target_card_id": target_id,
                            "order_index": order_index,
                            "updated_at": now,
                        }
                    )
                    result.choices_updated.append(existing.id)
            else:
                record = Choice(
                    id=make_id(),
                    story_card_id=source_id,
                    target_card_id=target_id,
                    label=dsl_choice.label,
                    order_index=order_index,
                    created_at=now,
                    updated_at=now,
                )
                result.choices_created.append(record.id)

            result.choices.append(record)
            order_index += 1

    for choice in existing_choices:
        if choice.id not in used_choice_ids and choice.id not in result.choices_deleted:
            result.choices_deleted.append(choice.id)


# ---------------------------------------------------------------------------
# Sync state
# ---------------------------------------------------------------------------


@dataclass
class SyncState:
    """Text view of a story and its relation to the graph.

    Long-lived: the update functions below change it in place and hand
    the same object back.

    Attributes:
        text: Current DSL text.
        document: Parse of ``text``.
        id_mapping: Slug <-> UUID mapping from the last graph sync.
        is_dirty: True once the text has been edited since the last graph sync.
        last_sync_at: When the state was last derived from the graph.
        parse_errors: Errors from parsing ``text``.
        parse_warnings: Warnings from parsing ``text``.
    """

    text: str
    document: StoryDocument | None
    id_mapping: IdMapping
    is_dirty: bool
    last_sync_at: datetime
    parse_errors: tuple[ParseError, ...] = ()
    parse_warnings: tuple[ParseWarning, ...] = ()

    @property
    def can_apply(self) -> bool:
        return self.document is not None and not self.parse_errors


def create_sync_state(
    stack: StoryStack,
    cards: Sequence[StoryCard],
    choices: Sequence[Choice],
    *,
    serialize_options: SerializeOptions | None = None,
    parse_options: ParseOptions | None = None,
    clock: Clock | None = None,
) -> SyncState:
    """Derive a clean sync state from the graph (serialize, then parse)."""
    serialized = serialize_story_to_dsl(stack, cards, choices, serialize_options)
    parsed = parse_story_dsl(serialized.text, parse_options)
    return SyncState(
        text=serialized.text,
        document=parsed.document,
        id_mapping=serialized.id_mapping,
        is_dirty=False,
        last_sync_at=(clock or _utc_now)(),
        parse_errors=parsed.errors,
        parse_warnings=parsed.warnings,
    )


def update_sync_state_from_dsl(
    state: SyncState,
    new_text: str,
    *,
    parse_options: ParseOptions | None = None,
) -> SyncState:
    """Re-parse edited text into ``state``. The graph and id mapping are left alone."""
    parsed = parse_story_dsl(new_text, parse_options)
    state.text = new_text
    state.document = parsed.document
    state.is_dirty = True
    state.parse_errors = parsed.errors
    state.parse_warnings = parsed.warnings
    return state


def update_sync_state_from_graph(
    stack: StoryStack,
    cards: Sequence[StoryCard],
    choices: Sequence[Choice],
    *,
    serialize_options: SerializeOptions | None = None,
    parse_options: ParseOptions | None = None,
    clock: Clock | None = None,
    state: SyncState | None = None,
) -> SyncState:
    """Catch the text view up with an external graph change.

    Same as :func:`create_sync_state`, except that an existing ``state``
    is overwritten in place (text, mapping and diagnostics) instead of a
    new one being built.
    """
    fresh = create_sync_state(
        stack,
        cards,
        choices,
        serialize_options=serialize_options,
        parse_options=parse_options,
        clock=clock,
    )
    if state is None:
        return fresh
    for name in (f.name for f in fields(SyncState)):
        setattr(state, name, getattr(fresh, name))
    return state


class SyncBridge:
    """Owns the sync state of one editing session.

    Text edits only re-parse; the graph changes only through
    :meth:`apply`, whose plan the caller persists before calling
    :meth:`refresh_from_graph` with the new graph.
    """

    def __init__(
        self,
        *,
        parse_options: ParseOptions | None = None,
        serialize_options: SerializeOptions | None = None,
        id_factory: IdFactory | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.parse_options = parse_options or ParseOptions()
        self.serialize_options = serialize_options or SerializeOptions()
        self._id_factory = id_factory
        self._clock = clock
        self._state: SyncState | None = None
        self._baseline: StoryDocument | None = None

    @property
    def state(self) -> SyncState:
        if self._state is None:
            msg = "SyncBridge has no state; call load() first"
            raise RuntimeError(msg)
        return self._state

    def load(
        self, stack: StoryStack, cards: Sequence[StoryCard], choices: Sequence[Choice]
    ) -> SyncState:
        """Start (or restart) the session from a graph snapshot."""
        self._state = create_sync_state(
            stack,
            cards,
            choices,
            serialize_options=self.serialize_options,
            parse_options=self.parse_options,
            clock=self._clock,
        )
        self._baseline = self._state.document
        log.debug("sync_state_loaded", stack=stack.id, cards=len(cards))
        return self._state

    def refresh_from_graph(
        self, stack: StoryStack, cards: Sequence[StoryCard], choices: Sequence[Choice]
    ) -> SyncState:
        if self._state is None:
            return self.load(stack, cards, choices)
        update_sync_state_from_graph(
            stack,
            cards,
            choices,
            serialize_options=self.serialize_options,
            parse_options=self.parse_options,
            clock=self._clock,
            state=self._state,
        )
        self._baseline = self._state.document
        return self._state

    def edit_text(self, text: str) -> SyncState:
        return update_sync_state_from_dsl(self.state, text, parse_options=self.parse_options)

    def pending_diff(self) -> DslDiff:
        """Diff between the last graph-derived document and the current text."""
        state = self.state
        if self._baseline is None or state.document is None:
            return DslDiff()
        return compute_dsl_diff(self._baseline, state.document)

    def apply(
        self, stack: StoryStack, cards: Sequence[StoryCard], choices: Sequence[Choice]
    ) -> ApplyResult:
        """Plan the graph changes for the current text.

        Text with parse errors is not applied; the result then carries the
        parse error messages and leaves the graph as it is.
        """
        state = self.state
        if state.document is None or not state.can_apply:
            log.info("sync_apply_blocked", parse_errors=len(state.parse_errors))
            return ApplyResult(
                errors=[f"Line {e.line}: {e.message}" for e in state.parse_errors],
                id_mapping=state.id_mapping.copy(),
                cards=list(cards),
                choices=list(choices),
                start_card_id=stack.first_card_id,
            )

        result = apply_dsl_to_graph(
            state.document,
            stack,
            cards,
            choices,
            state.id_mapping,
            id_factory=self._id_factory,
            clock=self._clock,
        )
        state.id_mapping = result.id_mapping
        return result

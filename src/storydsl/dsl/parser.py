"""Story DSL parser.

Turns DSL text into a :class:`~storydsl.models.StoryDocument` plus
errors and warnings. The format is line oriented:

- ``# Key: Value`` - story metadata (single ``#`` only)
- ``## id: Title`` or ``## Title`` - card header
- ``@key`` / ``@key: value`` - card attribute
- ``-> Label -> target`` - choice (``end``/``terminal``/``finish`` end the story)
- ``---`` - card separator
- anything else - card content

Parsing never raises on malformed input; every problem is reported as a
diagnostic in the returned :class:`~storydsl.models.ParseResult`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from storydsl.dsl.attributes import (
    ImageDescriptionAttribute,
    ImagePromptAttribute,
    MessageAttribute,
    SpeakerAttribute,
    SpeakerTypeAttribute,
    StartAttribute,
    parse_attribute,
)
from storydsl.dsl.slugs import normalize_id, slugify, unique_id
from storydsl.dsl.syntax import (
    ATTRIBUTE_MARKER,
    CHOICE_MARKER,
    HEADER_MARKER,
    METADATA_MARKER,
    SEPARATOR,
    TERMINAL_TARGETS,
    unescape_line,
)
from storydsl.graph.algorithms import reachable_from
from storydsl.models.document import (
    CardTarget,
    DslCard,
    DslChoice,
    DslMetadata,
    DslValidationSummary,
    EndTarget,
    ParseError,
    ParseErrorCode,
    ParseOptions,
    ParseResult,
    ParseWarning,
    ParseWarningCode,
    StoryDocument,
)
from storydsl.observability.logging import get_logger

log = get_logger(__name__)

_THE_END = "the end"


def is_metadata_line(trimmed: str) -> bool:
    return trimmed.startswith(METADATA_MARKER) and not trimmed.startswith(HEADER_MARKER)


def parse_metadata(lines: list[str]) -> DslMetadata:
    """Collect ``# Key: Value`` lines from anywhere in the text.

    ``story`` and ``title`` set the title, ``description`` sets the
    description, and every other key lands in ``properties``. Lines
    without a key before the colon are ignored.
    """
    title: str | None = None
    description: str | None = None
    properties: dict[str, str] = {}

    for line in lines:
        trimmed = line.strip()
        if not is_metadata_line(trimmed):
            continue
        content = trimmed[len(METADATA_MARKER) :].strip()
        colon = content.find(":")
        if colon <= 0:
            continue
        key = content[:colon].strip().lower()
        value = content[colon + 1 :].strip()
        if key in ("story", "title"):
            title = value
        elif key == "description":
            description = value
        else:
            properties[key] = value

    return DslMetadata(title=title, description=description, properties=properties)


def parse_choice(line: str, line_number: int | None = None) -> DslChoice | None:
    """Parse a ``-> Label -> target`` line.

    Returns:
        The choice, or None if the line has no second ``->``.
    """
    trimmed = line.strip()
    if not trimmed.startswith(CHOICE_MARKER):
        return None

    parts = trimmed[len(CHOICE_MARKER) :].strip().split(CHOICE_MARKER)
    if len(parts) < 2:
        return None

    label = parts[0].strip()
    raw_target = normalize_id(parts[1])
    if raw_target in TERMINAL_TARGETS:
        return DslChoice(label=label, target=EndTarget(), source_line=line_number)
    return DslChoice(label=label, target=CardTarget(raw_target), source_line=line_number)


@dataclass
class _OpenCard:
    """A card whose header has been read but which is not finalized yet."""

    id: str
    title: str
    line: int
    is_start: bool = False
    content_lines: list[str] = field(default_factory=list)
    choices: list[DslChoice] = field(default_factory=list)
    speaker: str | None = None
    speaker_type: str | None = None
    image_prompt: str | None = None
    image_description: str | None = None
    message: str | None = None


@dataclass
class _ParseState:
    options: ParseOptions
    cards: list[DslCard] = field(default_factory=list)
    seen_ids: set[str] = field(default_factory=set)
    errors: list[ParseError] = field(default_factory=list)
    warnings: list[ParseWarning] = field(default_factory=list)
    current: _OpenCard | None = None
    start_card_id: str | None = None

    def finalize(self) -> None:
        """Close the open card, if any, and run the per-card checks."""
        card = self.current
        self.current = None
        if card is None:
            return

        content = "\n".join(card.content_lines).strip()
        if not content and not card.choices:
            self.warnings.append(
                ParseWarning(
                    code=ParseWarningCode.EMPTY_CONTENT,
                    message=f'Card "{card.title}" has no content or choices',
                    line=card.line,
                )
            )
        if not card.choices and _THE_END not in content.lower():
            self.warnings.append(
                ParseWarning(
                    code=ParseWarningCode.DEAD_END,
                    message=f'Card "{card.title}" has no choices (dead end)',
                    line=card.line,
                )
            )

        self.cards.append(
            DslCard(
                id=card.id,
                title=card.title,
                content=content,
                is_start=card.is_start,
                choices=tuple(card.choices),
                speaker=card.speaker,
                speaker_type=card.speaker_type,  # type: ignore[arg-type]
                image_prompt=card.image_prompt,
                image_description=card.image_description,
                message=card.message,
                source_line=card.line if self.options.preserve_line_numbers else None,
            )
        )
        self.seen_ids.add(card.id)

    def open_card(self, trimmed: str, line_number: int) -> None:
        content = trimmed[len(HEADER_MARKER) :].strip()
        if not content:
            self.errors.append(
                ParseError(
                    code=ParseErrorCode.INVALID_CARD_HEADER_FORMAT,
                    message="Invalid card header format",
                    line=line_number,
                    suggestion="Use format: ## card_id: Card Title",
                )
            )
            return

        self.finalize()

        colon = content.find(":")
        if colon > 0:
            card_id = normalize_id(content[:colon])
            title = content[colon + 1 :].strip()
        else:
            title = content
            card_id = slugify(title)
            if self.options.auto_generate_ids:
                card_id = unique_id(card_id, self.seen_ids)

        if card_id in self.seen_ids:
            self.warnings.append(
                ParseWarning(
                    code=ParseWarningCode.DUPLICATE_ID,
                    message=f'Duplicate card ID "{card_id}"',
                    line=line_number,
                )
            )
            card_id = unique_id(card_id, self.seen_ids)

        self.current = _OpenCard(id=card_id, title=title, line=line_number)

    def apply_attribute(self, line: str) -> None:
        card = self.current
        if card is None:
            return

        attribute = parse_attribute(line)
        if isinstance(attribute, StartAttribute):
            card.is_start = True
            self.start_card_id = card.id
        elif isinstance(attribute, SpeakerAttribute):
            card.speaker = attribute.value
        elif isinstance(attribute, SpeakerTypeAttribute):
            if attribute.value is not None:
                card.speaker_type = attribute.value
        elif isinstance(attribute, ImagePromptAttribute):
            card.image_prompt = attribute.value
        elif isinstance(attribute, ImageDescriptionAttribute):
            card.image_description = attribute.value
        elif isinstance(attribute, MessageAttribute):
            card.message = attribute.value
        # UnrecognizedAttribute: ignored

    def add_choice(self, line: str, line_number: int) -> None:
        if self.current is None:
            self.errors.append(
                ParseError(
                    code=ParseErrorCode.CHOICE_OUTSIDE_CARD,
                    message="Choice found outside of a card",
                    line=line_number,
                    suggestion="Add a card header (## Title) before choices",
                )
            )
            return

        source_line = line_number if self.options.preserve_line_numbers else None
        choice = parse_choice(line, source_line)
        if choice is not None:
            self.current.choices.append(choice)


def parse_story_dsl(text: str, options: ParseOptions | None = None) -> ParseResult:
    """Parse DSL text into a story document.

    Args:
        text: DSL source.
        options: Parser switches. Defaults to :class:`ParseOptions()`.

    Returns:
        Parse result. ``success`` is False only when errors were found;
        warnings never affect it.
    """
    opts = options or ParseOptions()
    lines = text.split("\n")
    metadata = parse_metadata(lines)
    state = _ParseState(options=opts)

    for index, line in enumerate(lines):
        line_number = index + 1
        trimmed = line.strip()

        if trimmed == SEPARATOR:
            state.finalize()
        elif is_metadata_line(trimmed):
            continue
        elif trimmed.startswith(HEADER_MARKER):
            state.open_card(trimmed, line_number)
        elif trimmed.startswith(ATTRIBUTE_MARKER):
            state.apply_attribute(line)
        elif trimmed.startswith(CHOICE_MARKER):
            state.add_choice(line, line_number)
        elif state.current is not None:
            state.current.content_lines.append(unescape_line(line))

    state.finalize()

    cards = state.cards
    start_card_id = state.start_card_id
    if start_card_id is None and cards:
        cards[0] = replace(cards[0], is_start=True)
        start_card_id = cards[0].id

    warnings = state.warnings
    if opts.validate_targets:
        warnings.extend(_validate_targets(cards))
        warnings.extend(_find_orphans(cards, start_card_id))

    document = StoryDocument(metadata=metadata, cards=tuple(cards), start_card_id=start_card_id)
    result = ParseResult(document=document, errors=tuple(state.errors), warnings=tuple(warnings))

    log.debug(
        "dsl_parsed",
        cards=len(cards),
        start_card=start_card_id,
        errors=len(result.errors),
        warnings=len(result.warnings),
    )
    return result


def _validate_targets(cards: list[DslCard]) -> list[ParseWarning]:
    """Warn about non-terminal choices pointing at cards that do not exist."""
    known = {card.id for card in cards}
    warnings: list[ParseWarning] = []
    for card in cards:
        for choice in card.choices:
            if choice.is_terminal or choice.target_id in known:
                continue
            warnings.append(
                ParseWarning(
                    code=ParseWarningCode.INVALID_TARGET,
                    message=(
                        f'Choice "{choice.label}" in card "{card.title}" '
                        f'targets non-existent card "{choice.target_id}"'
                    ),
                    line=choice.source_line or 0,
                )
            )
    return warnings


def _find_orphans(cards: list[DslCard], start_card_id: str | None) -> list[ParseWarning]:
    """Warn about cards that cannot be reached from the start card."""
    if start_card_id is None:
        return []

    by_id = {card.id: card for card in cards}

    def targets(card_id: str) -> list[str]:
        card = by_id.get(card_id)
        if card is None:
            return []
        return [c.target_id for c in card.choices if not c.is_terminal]

    reachable = reachable_from(start_card_id, targets)
    return [
        ParseWarning(
            code=ParseWarningCode.ORPHANED_CARD,
            message=f'Card "{card.title}" is not reachable from the start',
            line=card.source_line or 0,
        )
        for card in cards
        if card.id not in reachable
    ]


def validate_story_dsl(text: str) -> DslValidationSummary:
    """Quick validation returning only counts."""
    result = parse_story_dsl(text)
    return DslValidationSummary(
        valid=result.success,
        error_count=len(result.errors),
        warning_count=len(result.warnings),
    )

"""DSL-space value types.

These are produced fresh by every parse and never mutated afterwards.
Card identity inside a document is the slug ``id``; the persisted graph
uses UUIDs instead (see :mod:`storydsl.models.graph`).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Literal

SpeakerType = Literal["character", "narrator", "system"]

SPEAKER_TYPES: frozenset[str] = frozenset({"character", "narrator", "system"})

# Sentinel written in place of a target id for choices that end the story.
END_TARGET_ID = "END"


@dataclass(frozen=True)
class CardTarget:
    """Choice target pointing at another card by DSL id."""

    card_id: str
    kind: Literal["card"] = "card"


@dataclass(frozen=True)
class EndTarget:
    """Choice target that ends the story."""

    kind: Literal["end"] = "end"


ChoiceTarget = CardTarget | EndTarget


@dataclass(frozen=True)
class DslChoice:
    """A choice parsed from a ``-> Label -> target`` line."""

    label: str
    target: ChoiceTarget
    source_line: int | None = None

    @property
    def is_terminal(self) -> bool:
        return isinstance(self.target, EndTarget)

    @property
    def target_id(self) -> str:
        """Target card id, or ``"END"`` for terminal choices."""
        if isinstance(self.target, CardTarget):
            return self.target.card_id
        return END_TARGET_ID

    @property
    def key(self) -> str:
        """Identity used when comparing choice lists between documents."""
        return f"{self.label}:{self.target_id}"


@dataclass(frozen=True)
class DslCard:
    """A card parsed from a ``##`` header and the lines that follow it."""

    id: str
    title: str
    content: str = ""
    is_start: bool = False
    choices: tuple[DslChoice, ...] = ()
    speaker: str | None = None
    speaker_type: SpeakerType | None = None
    image_prompt: str | None = None
    image_description: str | None = None
    message: str | None = None
    source_line: int | None = None


@dataclass(frozen=True)
class DslMetadata:
    """Story-level metadata from ``# Key: Value`` lines."""

    title: str | None = None
    description: str | None = None
    properties: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class StoryDocument:
    """A complete parsed story."""

    metadata: DslMetadata = field(default_factory=DslMetadata)
    cards: tuple[DslCard, ...] = ()
    start_card_id: str | None = None

    def get_card(self, card_id: str) -> DslCard | None:
        return next((c for c in self.cards if c.id == card_id), None)

    @property
    def card_ids(self) -> list[str]:
        return [c.id for c in self.cards]


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


class ParseErrorCode(StrEnum):
    """Problems that make a parse unsuccessful."""

    INVALID_CARD_HEADER_FORMAT = "invalid_card_header_format"
    CHOICE_OUTSIDE_CARD = "choice_outside_card"


class ParseWarningCode(StrEnum):
    """Advisory findings that never block success."""

    EMPTY_CONTENT = "empty_content"
    DEAD_END = "dead_end"
    DUPLICATE_ID = "duplicate_id"
    INVALID_TARGET = "invalid_target"
    ORPHANED_CARD = "orphaned_card"


@dataclass(frozen=True)
class ParseError:
    """A syntax error at a specific line.

    Attributes:
        code: Error category.
        message: Human-readable description.
        line: 1-based source line.
        suggestion: How the author can fix it.
    """

    code: ParseErrorCode
    message: str
    line: int
    suggestion: str = ""


@dataclass(frozen=True)
class ParseWarning:
    """A non-fatal finding about the story structure."""

    code: ParseWarningCode
    message: str
    line: int = 0


@dataclass(frozen=True)
class ParseResult:
    """Outcome of parsing DSL text.

    A document is always produced, even when errors were found; callers
    decide whether to use it based on ``success``.
    """

    document: StoryDocument
    errors: tuple[ParseError, ...] = ()
    warnings: tuple[ParseWarning, ...] = ()

    @property
    def success(self) -> bool:
        return not self.errors

    def warnings_of(self, code: ParseWarningCode) -> list[ParseWarning]:
        """Return the warnings with the given code, in source order."""
        return [w for w in self.warnings if w.code == code]


@dataclass(frozen=True)
class DslValidationSummary:
    """Counts-only result of a quick validation pass."""

    valid: bool
    error_count: int
    warning_count: int


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParseOptions:
    """Parser behaviour switches.

    Attributes:
        validate_targets: Run the target and reachability checks after parsing.
        auto_generate_ids: Disambiguate title-derived ids as headers are read.
            When off, repeated titles are caught by the duplicate id check.
        preserve_line_numbers: Record ``source_line`` on cards and choices.
    """

    validate_targets: bool = True
    auto_generate_ids: bool = True
    preserve_line_numbers: bool = True


@dataclass(frozen=True)
class SerializeOptions:
    """Serializer output switches.

    Attributes:
        include_metadata: Emit the ``# Story:`` / ``# Description:`` header.
        include_image_prompts: Emit image prompt and description attributes.
        include_debug_info: Emit ``# ID:`` and ``# Order:`` comments per card.
    """

    include_metadata: bool = True
    include_image_prompts: bool = False
    include_debug_info: bool = False

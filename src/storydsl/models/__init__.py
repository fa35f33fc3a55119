"""Value types for the story DSL engine.

DSL-space types (documents, cards and choices keyed by slug ids) are
frozen dataclasses produced by the parser. Persisted-graph records
(keyed by UUIDs) are pydantic models validated at the boundary with the
graph store.
"""

from storydsl.models.document import (
    END_TARGET_ID,
    SPEAKER_TYPES,
    CardTarget,
    ChoiceTarget,
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
    SerializeOptions,
    SpeakerType,
    StoryDocument,
)
from storydsl.models.graph import Choice, GraphSnapshot, StoryCard, StoryStack

__all__ = [
    "END_TARGET_ID",
    "SPEAKER_TYPES",
    "CardTarget",
    "Choice",
    "ChoiceTarget",
    "DslCard",
    "DslChoice",
    "DslMetadata",
    "DslValidationSummary",
    "EndTarget",
    "GraphSnapshot",
    "ParseError",
    "ParseErrorCode",
    "ParseOptions",
    "ParseResult",
    "ParseWarning",
    "ParseWarningCode",
    "SerializeOptions",
    "SpeakerType",
    "StoryCard",
    "StoryDocument",
    "StoryStack",
]

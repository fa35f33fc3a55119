"""Story DSL engine: parser, serializer and graph sync bridge.

The parser and serializer are independent leaves. The sync bridge is the
only part that holds both a parsed document and a graph snapshot, and
it computes change plans without performing any I/O.
"""

from storydsl.dsl.diff import CardChange, DslDiff, compute_dsl_diff
from storydsl.dsl.errors import IdConflictError, IdMappingError
from storydsl.dsl.id_mapping import IdMapping
from storydsl.dsl.parser import parse_story_dsl, validate_story_dsl
from storydsl.dsl.serializer import (
    SerializedStory,
    build_id_mapping,
    escape_content,
    order_cards,
    serialize_cards_to_dsl,
    serialize_story_to_dsl,
)
from storydsl.dsl.slugs import generate_slug_id, slugify
from storydsl.dsl.sync import (
    ApplyResult,
    SyncBridge,
    SyncState,
    apply_dsl_to_graph,
    create_sync_state,
    update_sync_state_from_dsl,
    update_sync_state_from_graph,
)

__all__ = [
    "ApplyResult",
    "CardChange",
    "DslDiff",
    "IdConflictError",
    "IdMapping",
    "IdMappingError",
    "SerializedStory",
    "SyncBridge",
    "SyncState",
    "apply_dsl_to_graph",
    "build_id_mapping",
    "compute_dsl_diff",
    "create_sync_state",
    "escape_content",
    "generate_slug_id",
    "order_cards",
    "parse_story_dsl",
    "serialize_cards_to_dsl",
    "serialize_story_to_dsl",
    "slugify",
    "update_sync_state_from_dsl",
    "update_sync_state_from_graph",
    "validate_story_dsl",
]

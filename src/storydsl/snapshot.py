"""Graph snapshot files.

A snapshot is a JSON document holding a story stack with its cards and
choices, as exported by the graph store. The engine never reads or
writes files itself; this module is the CLI's bridge to disk.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from pydantic import ValidationError

from storydsl.models.graph import GraphSnapshot

if TYPE_CHECKING:
    from pathlib import Path

    from storydsl.dsl.sync import ApplyResult


class SnapshotError(Exception):
    """Raised when a snapshot file cannot be read."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load snapshot at {path}: {reason}")


def load_snapshot(path: Path) -> GraphSnapshot:
    """Read and validate a snapshot file.

    Raises:
        SnapshotError: If the file is missing, not JSON, or fails validation.
    """
    if not path.exists():
        raise SnapshotError(path, "File not found")
    try:
        return GraphSnapshot.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        raise SnapshotError(path, f"{e.error_count()} validation error(s): {e}") from e
    except (OSError, ValueError) as e:
        raise SnapshotError(path, str(e)) from e


def save_snapshot(snapshot: GraphSnapshot, path: Path) -> Path:
    """Write a snapshot as indented JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = snapshot.model_dump(mode="json")
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return path


def snapshot_after_apply(snapshot: GraphSnapshot, result: ApplyResult) -> GraphSnapshot:
    """The graph a persistence layer would hold after executing ``result``."""
    stack = snapshot.stack
    first_card_id = result.start_card_id
    if first_card_id is None and stack.first_card_id in {card.id for card in result.cards}:
        first_card_id = stack.first_card_id
    stack = stack.model_copy(update={"first_card_id": first_card_id})
    return GraphSnapshot(stack=stack, cards=list(result.cards), choices=list(result.choices))

"""Id mapping integrity errors.

The slug <-> UUID mapping must stay a bijection. These errors are raised
when an operation would break that, similar to a unique constraint
violation in a database. Author mistakes in DSL text are never raised;
they are reported as parse diagnostics instead.
"""

from __future__ import annotations

from dataclasses import dataclass


class IdMappingError(Exception):
    """Base class for id mapping violations."""


@dataclass
class IdConflictError(IdMappingError):
    """Raised when binding a pair would leave either id bound twice.

    Attributes:
        dsl_id: Slug id being bound.
        db_id: UUID being bound.
        existing_db_id: UUID the slug is already bound to, if any.
        existing_dsl_id: Slug the UUID is already bound to, if any.
    """

    dsl_id: str
    db_id: str
    existing_db_id: str | None = None
    existing_dsl_id: str | None = None

    def __post_init__(self) -> None:
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        reasons: list[str] = []
        if self.existing_db_id is not None:
            reasons.append(f"'{self.dsl_id}' is already bound to '{self.existing_db_id}'")
        if self.existing_dsl_id is not None:
            reasons.append(f"'{self.db_id}' is already bound to '{self.existing_dsl_id}'")
        msg = f"Cannot bind '{self.dsl_id}' <-> '{self.db_id}'"
        if reasons:
            msg += ": " + "; ".join(reasons)
        return msg

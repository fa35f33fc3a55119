"""Bidirectional slug <-> UUID mapping.

DSL text names cards by slug; the graph store names them by UUID. The
mapping joins the two id spaces and is the seed for every reconciliation
cycle. Both directions live behind one type so they cannot drift apart.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

from storydsl.dsl.errors import IdConflictError


class IdMapping:
    """A bijection between DSL slug ids and persisted UUIDs."""

    __slots__ = ("_db_to_dsl", "_dsl_to_db")

    def __init__(self, pairs: Iterable[tuple[str, str]] = ()) -> None:
        self._dsl_to_db: dict[str, str] = {}
        self._db_to_dsl: dict[str, str] = {}
        for dsl_id, db_id in pairs:
            self.bind(dsl_id, db_id)

    # -- lookups ------------------------------------------------------------

    @property
    def dsl_to_db(self) -> Mapping[str, str]:
        """Read-only view of slug -> UUID."""
        return MappingProxyType(self._dsl_to_db)

    @property
    def db_to_dsl(self) -> Mapping[str, str]:
        """Read-only view of UUID -> slug."""
        return MappingProxyType(self._db_to_dsl)

    def db_id_for(self, dsl_id: str) -> str | None:
        return self._dsl_to_db.get(dsl_id)

    def dsl_id_for(self, db_id: str) -> str | None:
        return self._db_to_dsl.get(db_id)

    def __len__(self) -> int:
        return len(self._dsl_to_db)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(list(self._dsl_to_db.items()))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IdMapping):
            return NotImplemented
        return self._dsl_to_db == other._dsl_to_db

    def __repr__(self) -> str:
        return f"IdMapping({self._dsl_to_db!r})"

    # -- mutation -----------------------------------------------------------

    def bind(self, dsl_id: str, db_id: str) -> None:
        """Bind a slug to a UUID.

        Re-binding an identical pair is a no-op.

        Raises:
            IdConflictError: If either id is already bound to something else.
        """
        existing_db = self._dsl_to_db.get(dsl_id)
        existing_dsl = self._db_to_dsl.get(db_id)
        if existing_db == db_id and existing_dsl == dsl_id:
            return
        if existing_db is not None or existing_dsl is not None:
            raise IdConflictError(
                dsl_id=dsl_id,
                db_id=db_id,
                existing_db_id=existing_db,
                existing_dsl_id=existing_dsl,
            )
        self._dsl_to_db[dsl_id] = db_id
        self._db_to_dsl[db_id] = dsl_id

    def unbind_db(self, db_id: str) -> str | None:
        """Remove the pair for a UUID. Returns the slug that was bound, if any."""
        dsl_id = self._db_to_dsl.pop(db_id, None)
        if dsl_id is not None:
            del self._dsl_to_db[dsl_id]
        return dsl_id

    def unbind_dsl(self, dsl_id: str) -> str | None:
        """Remove the pair for a slug. Returns the UUID that was bound, if any."""
        db_id = self._dsl_to_db.pop(dsl_id, None)
        if db_id is not None:
            del self._db_to_dsl[db_id]
        return db_id

    def retain_db_ids(self, db_ids: Iterable[str]) -> list[str]:
        """Drop every pair whose UUID is not in ``db_ids``.

        Returns:
            The UUIDs that were dropped.
        """
        keep = set(db_ids)
        dropped = [db_id for db_id in self._db_to_dsl if db_id not in keep]
        for db_id in dropped:
            self.unbind_db(db_id)
        return dropped

    def copy(self) -> IdMapping:
        clone = IdMapping()
        clone._dsl_to_db = dict(self._dsl_to_db)
        clone._db_to_dsl = dict(self._db_to_dsl)
        return clone

    # -- serialization ------------------------------------------------------

    def to_dict(self) -> dict[str, str]:
        """Slug -> UUID pairs as a plain dict."""
        return dict(self._dsl_to_db)

    @classmethod
    def from_dict(cls, data: Mapping[str, str]) -> IdMapping:
        return cls(data.items())

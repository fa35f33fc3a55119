"""Slug id generation shared by the parser and serializer."""

from __future__ import annotations

import re
from collections.abc import Container

_DISALLOWED = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")

DEFAULT_SLUG = "card"
PARSER_SLUG_LENGTH = 50
SERIALIZER_SLUG_LENGTH = 30


def slugify(text: str, max_length: int = PARSER_SLUG_LENGTH) -> str:
    """Turn a title into a lower-case underscore slug.

    Characters outside ``[a-z0-9]``, whitespace and hyphens are dropped;
    whitespace and hyphen runs become ``_``. Falls back to ``"card"``
    when nothing survives.
    """
    slug = _DISALLOWED.sub("", text.lower())
    slug = _WHITESPACE.sub("_", slug)
    slug = _HYPHENS.sub("_", slug)
    slug = slug.strip("_")[:max_length]
    return slug or DEFAULT_SLUG


def normalize_id(raw: str) -> str:
    """Normalize an explicit id or choice target: lower-case, spaces to ``_``."""
    return _WHITESPACE.sub("_", raw.strip().lower())


def unique_id(base: str, existing: Container[str]) -> str:
    """Return ``base``, or ``base_1``, ``base_2``... whichever is unused."""
    if base not in existing:
        return base
    counter = 1
    while f"{base}_{counter}" in existing:
        counter += 1
    return f"{base}_{counter}"


def generate_slug_id(title: str, uuid: str) -> str:
    """Stable DSL id for a persisted card.

    Depends only on the title and UUID, never on position, so repeated
    serializations of the same card agree. The result is already in the
    form :func:`normalize_id` gives header ids, so mixed-case UUIDs still
    match after a parse.
    """
    return normalize_id(f"{slugify(title, SERIALIZER_SLUG_LENGTH)}_{uuid[:8]}")

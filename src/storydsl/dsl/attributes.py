"""Card attribute lines (``@key`` and ``@key: value``).

Attribute keys are resolved once into a closed set of attribute kinds.
Keys the parser does not know become :class:`UnrecognizedAttribute` and
are ignored by the caller, keeping the parser forgiving.
"""

from __future__ import annotations

from dataclasses import dataclass

from storydsl.models.document import SPEAKER_TYPES


@dataclass(frozen=True)
class StartAttribute:
    """``@start`` (aliases ``@first``, ``@entry``): marks the entry card."""


@dataclass(frozen=True)
class SpeakerAttribute:
    value: str | None


@dataclass(frozen=True)
class SpeakerTypeAttribute:
    """``@speakerType``; ``value`` is None unless it names a known speaker type."""

    value: str | None


@dataclass(frozen=True)
class ImagePromptAttribute:
    value: str | None


@dataclass(frozen=True)
class ImageDescriptionAttribute:
    value: str | None


@dataclass(frozen=True)
class MessageAttribute:
    value: str | None


@dataclass(frozen=True)
class UnrecognizedAttribute:
    key: str
    value: str | None


CardAttribute = (
    StartAttribute
    | SpeakerAttribute
    | SpeakerTypeAttribute
    | ImagePromptAttribute
    | ImageDescriptionAttribute
    | MessageAttribute
    | UnrecognizedAttribute
)

_ValueAttribute = SpeakerAttribute | ImagePromptAttribute | ImageDescriptionAttribute | MessageAttribute

_START_KEYS = frozenset({"start", "first", "entry"})
_VALUE_KINDS: dict[str, type[_ValueAttribute]] = {
    "speaker": SpeakerAttribute,
    "image": ImagePromptAttribute,
    "imageprompt": ImagePromptAttribute,
    "image_prompt": ImagePromptAttribute,
    "imagedesc": ImageDescriptionAttribute,
    "imagedescription": ImageDescriptionAttribute,
    "image_description": ImageDescriptionAttribute,
    "message": MessageAttribute,
}
_SPEAKER_TYPE_KEYS = frozenset({"speakertype", "speaker_type"})


def split_attribute(line: str) -> tuple[str, str | None]:
    """Split an attribute line into a lower-cased key and an optional value.

    ``@key`` yields ``(key, None)``; ``@key: value`` yields ``(key, value)``.
    A colon in first position does not count as a separator.
    """
    content = line.strip()[1:]
    colon = content.find(":")
    if colon > 0:
        return content[:colon].strip().lower(), content[colon + 1 :].strip()
    return content.strip().lower(), None


def parse_attribute(line: str) -> CardAttribute:
    """Resolve an attribute line into its attribute kind."""
    key, value = split_attribute(line)

    if key in _START_KEYS:
        return StartAttribute()
    if key in _SPEAKER_TYPE_KEYS:
        normalized = value.lower() if value is not None else None
        return SpeakerTypeAttribute(normalized if normalized in SPEAKER_TYPES else None)
    kind = _VALUE_KINDS.get(key)
    if kind is not None:
        return kind(value)
    return UnrecognizedAttribute(key, value)

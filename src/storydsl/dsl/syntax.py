"""Line markers of the story DSL and content escaping."""

METADATA_MARKER = "#"
HEADER_MARKER = "##"
ATTRIBUTE_MARKER = "@"
CHOICE_MARKER = "->"
SEPARATOR = "---"

# Choice targets (after normalization) that end the story.
TERMINAL_TARGETS = frozenset({"end", "terminal", "finish"})

ZERO_WIDTH_SPACE = "\u200b"


def needs_escape(text: str) -> bool:
    """Whether a left-trimmed content line would collide with DSL syntax.

    A line that already starts with a zero-width space in front of a
    marker counts too, so that escaping stays reversible.
    """
    if text.startswith((METADATA_MARKER, CHOICE_MARKER, ATTRIBUTE_MARKER)):
        return True
    if text.strip() == SEPARATOR:
        return True
    return text.startswith(ZERO_WIDTH_SPACE) and needs_escape(text[1:])


def unescape_line(line: str) -> str:
    """Drop the zero-width space the serializer put in front of a marker."""
    stripped = line.lstrip()
    if stripped.startswith(ZERO_WIDTH_SPACE) and needs_escape(stripped[1:]):
        indent = line[: len(line) - len(stripped)]
        return f"{indent}{stripped[1:]}"
    return line

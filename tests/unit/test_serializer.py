"""Tests for the story DSL serializer."""

from __future__ import annotations

from datetime import UTC, datetime

from storydsl.dsl.serializer import (
    ZERO_WIDTH_SPACE,
    build_id_mapping,
    escape_content,
    group_choices_by_card,
    order_cards,
    serialize_cards_to_dsl,
    serialize_story_to_dsl,
)
from storydsl.models.document import SerializeOptions
from storydsl.models.graph import Choice, StoryCard, StoryStack

CAVE_DSL = """\
# Story: The Cave
# Description: A short descent

@start
## cave_entrance_c0ffee00: Cave Entrance
You stand before a dark cave.

-> Enter -> tunnel_decade00
-> Turn back -> forest_facade00

---

## tunnel_decade00: Tunnel
@speaker: Guide
@speakerType: character
Water drips somewhere ahead.

-> Climb out -> forest_facade00

---

## forest_facade00: Forest
Birdsong. The end.
"""

_WHEN = datetime(2024, 1, 1, tzinfo=UTC)


def _card(card_id: str, title: str, content: str = "", **extra: object) -> StoryCard:
    return StoryCard(
        id=card_id, title=title, content=content, created_at=_WHEN, updated_at=_WHEN, **extra
    )


def _choice(choice_id: str, source: str, target: str, label: str, order: int = 0) -> Choice:
    return Choice(
        id=choice_id,
        story_card_id=source,
        target_card_id=target,
        label=label,
        order_index=order,
        created_at=_WHEN,
        updated_at=_WHEN,
    )


class TestSerializeStory:
    """Full-story serialization."""

    def test_reference_output(self, stack, cards, choices) -> None:
        result = serialize_story_to_dsl(stack, cards, choices)

        assert result.text == CAVE_DSL

    def test_mapping_covers_every_card(self, stack, cards, choices) -> None:
        mapping = serialize_story_to_dsl(stack, cards, choices).id_mapping

        assert len(mapping) == 3
        assert mapping.db_id_for("tunnel_decade00") == cards[1].id
        assert mapping.dsl_id_for(cards[2].id) == "forest_facade00"

    def test_inputs_are_not_modified(self, stack, cards, choices) -> None:
        before = [c.model_copy() for c in cards]

        serialize_story_to_dsl(stack, cards, choices)

        assert cards == before

    def test_deterministic(self, stack, cards, choices) -> None:
        first = serialize_story_to_dsl(stack, cards, choices)
        second = serialize_story_to_dsl(stack, list(reversed(cards)), choices)

        assert first.text == second.text
        assert first.id_mapping == second.id_mapping

    def test_without_metadata(self, stack, cards, choices) -> None:
        text = serialize_story_to_dsl(
            stack, cards, choices, SerializeOptions(include_metadata=False)
        ).text

        assert text.startswith("@start\n## cave_entrance_c0ffee00: Cave Entrance\n")
        assert "# Story" not in text

    def test_description_is_optional(self, cards, choices) -> None:
        stack = StoryStack(id="s", name="Bare", first_card_id=cards[0].id)

        text = serialize_story_to_dsl(stack, cards, choices).text

        assert text.startswith("# Story: Bare\n\n@start\n")

    def test_no_start_marker_without_first_card(self, cards, choices) -> None:
        stack = StoryStack(id="s", name="No start")

        text = serialize_story_to_dsl(stack, cards, choices).text

        assert "@start" not in text
        # Order still starts from the first input card.
        assert text.index("Cave Entrance") < text.index("Tunnel")

    def test_empty_story(self) -> None:
        result = serialize_story_to_dsl(StoryStack(id="s", name="Empty"), [], [])

        assert result.text == "# Story: Empty\n\n"
        assert len(result.id_mapping) == 0

    def test_unknown_target(self, stack, cards) -> None:
        dangling = [_choice("c1", cards[0].id, "gone-uuid", "Into the void")]

        text = serialize_story_to_dsl(stack, cards, dangling).text

        assert "-> Into the void -> unknown" in text

    def test_choices_sorted_by_order_index(self, stack, cards) -> None:
        unordered = [
            _choice("c2", cards[0].id, cards[2].id, "Second", order=5),
            _choice("c1", cards[0].id, cards[1].id, "First", order=1),
        ]

        text = serialize_story_to_dsl(stack, cards, unordered).text

        assert text.index("-> First") < text.index("-> Second")


class TestOptionalAttributes:
    def test_image_attributes_need_option(self, stack) -> None:
        card = _card(
            "aaaaaaaa-1", "Hall", "A hall.", image_prompt="gothic hall", image_description="wide"
        )

        plain = serialize_story_to_dsl(stack, [card], []).text
        with_images = serialize_story_to_dsl(
            stack, [card], [], SerializeOptions(include_image_prompts=True)
        ).text

        assert "@imagePrompt" not in plain
        assert "@imagePrompt: gothic hall\n@imageDescription: wide\n" in with_images

    def test_message_is_always_written(self, stack) -> None:
        card = _card("aaaaaaaa-1", "Hall", "A hall.", message="Welcome!")

        text = serialize_story_to_dsl(stack, [card], []).text

        assert "@message: Welcome!" in text

    def test_debug_info(self, stack, cards, choices) -> None:
        text = serialize_story_to_dsl(
            stack, cards, choices, SerializeOptions(include_debug_info=True)
        ).text

        assert f"@start\n# ID: {cards[0].id}\n# Order: 0\n## cave_entrance_c0ffee00" in text

    def test_card_without_content_has_no_blank_line(self, stack, cards) -> None:
        bare = _card(cards[0].id, "Crossroads")
        choice = _choice("c1", bare.id, cards[1].id, "Left")

        text = serialize_story_to_dsl(stack, [bare, cards[1]], [choice]).text

        assert "## crossroads_c0ffee00: Crossroads\n-> Left -> tunnel_decade00\n" in text


class TestEscapeContent:
    def test_plain_lines_untouched(self) -> None:
        assert escape_content("Just text\n  indented") == "Just text\n  indented"

    def test_syntax_lines_are_escaped(self) -> None:
        escaped = escape_content("# heading\n-> arrow\n@handle\n---")

        for line in escaped.split("\n"):
            assert line.startswith(ZERO_WIDTH_SPACE)

    def test_indent_is_kept(self) -> None:
        assert escape_content("   -> go") == f"   {ZERO_WIDTH_SPACE}-> go"

    def test_separator_with_trailing_space(self) -> None:
        assert escape_content("--- ") == f"{ZERO_WIDTH_SPACE}--- "

    def test_longer_rules_are_plain(self) -> None:
        assert escape_content("----") == "----"

    def test_existing_zero_width_prefix_is_escaped_again(self) -> None:
        line = f"{ZERO_WIDTH_SPACE}# kept"

        assert escape_content(line) == f"{ZERO_WIDTH_SPACE}{line}"


class TestOrdering:
    def test_breadth_first_with_orphans_last(self) -> None:
        a, b, c, orphan = (
            _card("a", "A"),
            _card("b", "B"),
            _card("c", "C"),
            _card("o", "Orphan"),
        )
        links = [_choice("1", "a", "c", "to c"), _choice("2", "c", "b", "to b")]

        ordered = order_cards([orphan, b, c, a], links, "a")

        assert [card.id for card in ordered] == ["a", "c", "b", "o"]

    def test_cycles_visit_once(self) -> None:
        a, b = _card("a", "A"), _card("b", "B")
        links = [_choice("1", "a", "b", "go"), _choice("2", "b", "a", "back")]

        assert [card.id for card in order_cards([a, b], links, "a")] == ["a", "b"]

    def test_missing_start_falls_back_to_first_card(self) -> None:
        a, b = _card("a", "A"), _card("b", "B")

        assert [card.id for card in order_cards([b, a], [], None)] == ["b", "a"]

    def test_dangling_targets_are_skipped(self) -> None:
        a = _card("a", "A")

        assert order_cards([a], [_choice("1", "a", "ghost", "boo")], "a") == [a]

    def test_grouping(self) -> None:
        grouped = group_choices_by_card(
            [_choice("1", "a", "x", "late", 3), _choice("2", "a", "y", "early", 1)]
        )

        assert [c.label for c in grouped["a"]] == ["early", "late"]


class TestBuildIdMapping:
    def test_colliding_slugs_get_suffixes(self) -> None:
        first = _card("12345678-aaaa", "Same")
        second = _card("12345678-bbbb", "Same")

        mapping = build_id_mapping([first, second])

        assert mapping.dsl_id_for(first.id) == "same_12345678"
        assert mapping.dsl_id_for(second.id) == "same_12345678_1"

    def test_repeated_uuid_keeps_first_slug(self) -> None:
        card = _card("abcdef01-0000", "Once")

        mapping = build_id_mapping([card, card])

        assert len(mapping) == 1


class TestSerializeCards:
    def test_cards_without_story(self, cards, choices) -> None:
        text = serialize_cards_to_dsl(cards, choices, cards[0].id)

        assert not text.startswith("#")
        assert text.startswith("@start\n## cave_entrance_c0ffee00")

    def test_includes_image_prompts(self) -> None:
        card = _card("aaaaaaaa-1", "Hall", "A hall.", image_prompt="gothic hall")

        assert "@imagePrompt: gothic hall" in serialize_cards_to_dsl([card], [])

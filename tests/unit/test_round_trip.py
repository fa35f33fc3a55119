"""Serialize -> parse -> apply round trips through the whole engine."""

from __future__ import annotations

from datetime import UTC, datetime

from storydsl.dsl.parser import parse_story_dsl
from storydsl.dsl.serializer import serialize_story_to_dsl
from storydsl.dsl.sync import apply_dsl_to_graph
from storydsl.models.document import ParseWarningCode, SerializeOptions
from storydsl.models.graph import Choice, StoryCard, StoryStack

_WHEN = datetime(2024, 1, 1, tzinfo=UTC)


def _card(card_id: str, title: str, content: str, order: int) -> StoryCard:
    return StoryCard(
        id=card_id,
        story_stack_id="s",
        title=title,
        content=content,
        order_index=order,
        created_at=_WHEN,
        updated_at=_WHEN,
    )


class TestRoundTrip:
    def test_structure_survives(self, stack, cards, choices) -> None:
        serialized = serialize_story_to_dsl(stack, cards, choices)

        result = parse_story_dsl(serialized.text)

        assert result.success
        assert result.warnings == ()
        doc = result.document
        assert doc.metadata.title == "The Cave"
        assert doc.metadata.description == "A short descent"
        assert [serialized.id_mapping.db_id_for(c.id) for c in doc.cards] == [
            c.id for c in cards
        ]
        assert serialized.id_mapping.db_id_for(doc.start_card_id) == stack.first_card_id
        assert [(c.title, c.content) for c in doc.cards] == [(c.title, c.content) for c in cards]
        assert doc.cards[1].speaker == "Guide"
        assert doc.cards[1].speaker_type == "character"

    def test_choices_survive(self, stack, cards, choices) -> None:
        serialized = serialize_story_to_dsl(stack, cards, choices)
        doc = parse_story_dsl(serialized.text).document
        mapping = serialized.id_mapping

        edges = {
            (mapping.db_id_for(card.id), choice.label, mapping.db_id_for(choice.target_id))
            for card in doc.cards
            for choice in card.choices
        }

        assert edges == {(c.story_card_id, c.label, c.target_card_id) for c in choices}

    def test_syntax_in_content_survives(self) -> None:
        tricky = "# not metadata\n-> not a choice -> nowhere\n@not_an_attribute\n---\n## not a card"
        card = _card("11111111-aaaa", "Tricky", tricky, 0)
        stack = StoryStack(id="s", name="Escapes", first_card_id=card.id)

        serialized = serialize_story_to_dsl(stack, [card], [])
        result = parse_story_dsl(serialized.text)

        (parsed,) = result.document.cards
        assert parsed.choices == ()
        assert parsed.title == "Tricky"
        assert parsed.content == tricky
        assert result.document.metadata.properties == {}

    def test_apply_of_escaped_content_is_a_no_op(self) -> None:
        intro = _card("11111111-aaaa", "Intro", "Intro\n# not metadata", 0)
        rules = _card("22222222-bbbb", "Rules", "Rules\n  -> indented\n---\nThe end.", 1)
        stack = StoryStack(id="s", name="Escapes", first_card_id=intro.id)
        choice = Choice(
            id="choice-1",
            story_card_id=intro.id,
            target_card_id=rules.id,
            label="Read on",
            created_at=_WHEN,
            updated_at=_WHEN,
        )

        serialized = serialize_story_to_dsl(stack, [intro, rules], [choice])
        doc = parse_story_dsl(serialized.text).document
        result = apply_dsl_to_graph(doc, stack, [intro, rules], [choice], serialized.id_mapping)

        assert result.success
        assert not result.has_changes
        assert [c.content for c in result.cards] == [intro.content, rules.content]

    def test_zero_width_prefix_in_content_survives(self) -> None:
        content = "Before\n\u200b# looks escaped"
        card = _card("11111111-aaaa", "Odd", content, 0)
        stack = StoryStack(id="s", name="Escapes", first_card_id=card.id)

        serialized = serialize_story_to_dsl(stack, [card], [])

        assert parse_story_dsl(serialized.text).document.cards[0].content == content

    def test_upper_case_uuids_reapply_as_a_no_op(self) -> None:
        gate = _card("ABCDEF12-0000-4000-8000-000000000001", "Gate", "A locked gate.", 0)
        yard = _card("ABCDEF13-0000-4000-8000-000000000002", "Yard", "Weeds. The end.", 1)
        stack = StoryStack(id="s", name="Upper", first_card_id=gate.id)
        choice = Choice(
            id="CHOICE-1",
            story_card_id=gate.id,
            target_card_id=yard.id,
            label="Climb over",
            created_at=_WHEN,
            updated_at=_WHEN,
        )

        serialized = serialize_story_to_dsl(stack, [gate, yard], [choice])
        doc = parse_story_dsl(serialized.text).document
        result = apply_dsl_to_graph(doc, stack, [gate, yard], [choice], serialized.id_mapping)

        assert [c.id for c in doc.cards] == ["gate_abcdef12", "yard_abcdef13"]
        assert result.success
        assert not result.has_changes
        assert [c.id for c in result.cards] == [gate.id, yard.id]
        assert [c.id for c in result.choices] == [choice.id]

    def test_apply_after_round_trip_is_a_no_op(self, stack, cards, choices) -> None:
        options = SerializeOptions(include_image_prompts=True, include_debug_info=True)
        serialized = serialize_story_to_dsl(stack, cards, choices, options)
        doc = parse_story_dsl(serialized.text).document

        result = apply_dsl_to_graph(doc, stack, cards, choices, serialized.id_mapping)

        assert result.success
        assert not result.has_changes

    def test_orphans_are_kept_and_flagged(self, stack, cards, choices) -> None:
        lost = _card("99999999-0000", "Lost Room", "Nobody finds this. The end.", 3)
        link = Choice(
            id="choice-x",
            story_card_id=lost.id,
            target_card_id=cards[0].id,
            label="Leave",
            created_at=_WHEN,
            updated_at=_WHEN,
        )

        serialized = serialize_story_to_dsl(stack, [*cards, lost], [*choices, link])
        result = parse_story_dsl(serialized.text)

        assert result.document.cards[-1].id == "lost_room_99999999"
        (orphan,) = result.warnings_of(ParseWarningCode.ORPHANED_CARD)
        assert "Lost Room" in orphan.message

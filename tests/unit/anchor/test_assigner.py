"""Tests for anchor assignment."""

import pytest

from marginalia.core.modules.anchor.assigner import assign_anchors, base_slug
from marginalia.core.modules.anchor.models import GENERAL_ANCHOR, ContentNode, NodeKind


def nodes(*items: tuple[NodeKind, str]) -> list[ContentNode]:
    return [ContentNode(kind=kind, text=text, position=i) for i, (kind, text) in enumerate(items)]


def ids(content: list[ContentNode]) -> list[str]:
    return [anchor.id for anchor in assign_anchors(content)]


class TestBaseSlug:
    """Tests for base_slug function."""

    def test_uses_text(self):
        node = ContentNode(kind=NodeKind.HEADING2, text="Overview", position=0)
        assert base_slug(node) == "overview"

    @pytest.mark.parametrize(
        ("kind", "expected"),
        [
            (NodeKind.PARAGRAPH, "paragraph"),
            (NodeKind.LIST_ITEM, "list-item"),
            (NodeKind.HEADING3, "heading3"),
            (NodeKind.CODEBLOCK, "codeblock"),
        ],
    )
    def test_punctuation_only_text_falls_back_to_kind(self, kind, expected):
        """Test that nodes without usable text are named after their kind."""
        assert base_slug(ContentNode(kind=kind, text=" ... !? ", position=0)) == expected
        assert base_slug(ContentNode(kind=kind, text="", position=0)) == expected


class TestAssignAnchors:
    """Tests for assign_anchors function."""

    def test_empty_sequence(self):
        assert assign_anchors([]) == []

    def test_collision_suffixing(self):
        """Test that two paragraphs flattening to "Overview" get overview and overview-2."""
        content = nodes((NodeKind.PARAGRAPH, "Overview"), (NodeKind.PARAGRAPH, "Overview"))
        assert ids(content) == ["overview", "overview-2"]

    def test_nth_occurrence_suffix(self):
        """Test that later occurrences count up independently per base slug."""
        content = nodes(
            (NodeKind.HEADING2, "Example"),
            (NodeKind.PARAGRAPH, "Note"),
            (NodeKind.HEADING2, "Example"),
            (NodeKind.PARAGRAPH, "Note"),
            (NodeKind.HEADING2, "Example"),
        )
        assert ids(content) == ["example", "note", "example-2", "note-2", "example-3"]

    def test_kind_does_not_affect_collision(self):
        """Test that a heading and a paragraph with the same text still collide."""
        content = nodes((NodeKind.HEADING1, "Intro"), (NodeKind.PARAGRAPH, "intro!"))
        assert ids(content) == ["intro", "intro-2"]

    def test_fallback_anchors_are_suffixed(self):
        """Test that several text-less nodes of one kind get distinct fallback anchors."""
        content = nodes((NodeKind.PARAGRAPH, "---"), (NodeKind.PARAGRAPH, "***"), (NodeKind.CODEBLOCK, ""))
        assert ids(content) == ["paragraph", "paragraph-2", "codeblock"]

    def test_literal_suffix_text_does_not_collide(self):
        """Test that a node whose own text looks like a suffixed anchor stays unique."""
        content = nodes(
            (NodeKind.PARAGRAPH, "Intro"),
            (NodeKind.PARAGRAPH, "Intro"),
            (NodeKind.PARAGRAPH, "Intro 2"),
        )
        result = ids(content)
        assert result == ["intro", "intro-2", "intro-2-2"]
        assert len(set(result)) == len(result)

    def test_suffix_skips_ids_taken_by_literal_text(self):
        """Test that generated suffixes skip over ids already issued from literal text."""
        content = nodes(
            (NodeKind.PARAGRAPH, "Intro 2"),
            (NodeKind.PARAGRAPH, "Intro"),
            (NodeKind.PARAGRAPH, "Intro"),
            (NodeKind.PARAGRAPH, "Intro"),
        )
        assert ids(content) == ["intro-2", "intro", "intro-3", "intro-4"]

    def test_general_anchor_is_reserved(self):
        """Test that no node is ever given the general anchor."""
        content = nodes((NodeKind.PARAGRAPH, "Doc root"), (NodeKind.PARAGRAPH, "doc-root"))
        result = ids(content)
        assert GENERAL_ANCHOR not in result
        assert result == ["doc-root-2", "doc-root-3"]

    def test_anchors_carry_kind_and_position(self):
        content = nodes((NodeKind.HEADING1, "Title"), (NodeKind.LIST_ITEM, "First"))
        anchors = assign_anchors(content)
        assert [(a.node_kind, a.position) for a in anchors] == [(NodeKind.HEADING1, 0), (NodeKind.LIST_ITEM, 1)]

    def test_deterministic(self):
        """Test that running twice on identical input yields identical anchors."""
        content = nodes(
            (NodeKind.HEADING1, "Guide"),
            (NodeKind.PARAGRAPH, "Setup"),
            (NodeKind.PARAGRAPH, "Setup"),
            (NodeKind.BLOCKQUOTE, "!!"),
        )
        assert assign_anchors(content) == assign_anchors(list(content))

    def test_unique_within_pass(self):
        """Test that a larger mixed document never repeats an anchor."""
        texts = ["A", "a", "A 2", "a-2", "", "!", "B", "A", "a 3", "doc root"] * 5
        content = nodes(*[(NodeKind.PARAGRAPH, text) for text in texts])
        result = ids(content)
        assert len(set(result)) == len(result) == len(texts)

    def test_removing_earlier_duplicate_relabels_later_node(self):
        """Test the accepted fragility: dropping the first duplicate shifts later suffixes."""
        before = nodes((NodeKind.PARAGRAPH, "Intro"), (NodeKind.PARAGRAPH, "Body"), (NodeKind.PARAGRAPH, "Intro"))
        after = nodes((NodeKind.PARAGRAPH, "Body"), (NodeKind.PARAGRAPH, "Intro"))
        assert ids(before)[2] == "intro-2"
        assert ids(after)[1] == "intro"

    def test_unchanged_prefix_keeps_anchors(self):
        """Test that appending content leaves existing anchors untouched."""
        base = [(NodeKind.HEADING1, "Title"), (NodeKind.PARAGRAPH, "Intro"), (NodeKind.PARAGRAPH, "Intro")]
        extended = [*base, (NodeKind.PARAGRAPH, "Intro"), (NodeKind.PARAGRAPH, "Outro")]
        assert ids(nodes(*extended))[:3] == ids(nodes(*base))

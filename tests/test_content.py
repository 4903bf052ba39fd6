"""Tests for content tree helpers."""

import json

import pytest

from conftest import doc, inline_canvas, paragraph
from prdpad.services.canvas import DEFAULT_CANVAS_NAME, Canvas, CanvasData
from prdpad.services.content import (
    assign_missing_canvas_ids,
    build_ai_context,
    extract_plain_text,
    find_inline_canvases,
    parse_content,
    remove_inline_canvas,
    serialize_content,
    summarize_elements,
)


class TestParseContent:
    """Test cases for reading serialized content."""

    @pytest.mark.parametrize("text", [None, "", "{broken", "[1, 2]"])
    def test_unreadable_content(self, text):
        assert parse_content(text) is None

    def test_round_trip(self):
        tree = doc(paragraph("Hello"))
        assert parse_content(serialize_content(tree)) == tree


class TestPlainText:
    """Test cases for plain text extraction."""

    def test_nested_text_is_joined_with_spaces(self):
        tree = doc(paragraph("Checkout flow"), paragraph("Guest users"))
        assert extract_plain_text(tree) == "Checkout flow Guest users"

    def test_nodes_without_text_are_skipped(self):
        tree = doc(paragraph("Checkout flow"), inline_canvas("c1"))
        assert extract_plain_text(tree) == "Checkout flow"

    def test_bare_string(self):
        assert extract_plain_text("plain") == "plain"


class TestInlineCanvases:
    """Test cases for inline canvas nodes."""

    def test_assign_missing_canvas_ids(self):
        tree = doc(inline_canvas(), inline_canvas("c1"))

        assert assign_missing_canvas_ids(tree) is True

        ids = [node["attrs"]["canvasId"] for node in tree["content"]]
        assert ids[0].startswith("canvas-")
        assert ids[1] == "c1"
        assert assign_missing_canvas_ids(tree) is False

    def test_assign_missing_canvas_ids_without_tree(self):
        assert assign_missing_canvas_ids(None) is False

    def test_find_inline_canvases(self):
        rect = {"id": "r1", "type": "rectangle", "x": 0, "y": 0}
        tree = doc(
            paragraph("Intro"),
            inline_canvas("c1", "Architecture", [rect]),
            {"type": "blockquote", "content": [inline_canvas("c2")]},
            inline_canvas(),
            inline_canvas("c1", "Duplicate"),
        )

        canvases = find_inline_canvases(tree)

        assert [(c.id, c.name) for c in canvases] == [
            ("c1", "Architecture"),
            ("c2", DEFAULT_CANVAS_NAME),
        ]
        assert canvases[0].data.elements == [rect]
        assert canvases[0].created_at == ""

    def test_remove_inline_canvas(self):
        tree = doc(
            inline_canvas("c1"),
            {"type": "blockquote", "content": [inline_canvas("c2")]},
        )

        assert remove_inline_canvas(tree, "c2") is True

        assert tree["content"][1]["content"] == []
        assert remove_inline_canvas(tree, "c2") is False
        assert [c.id for c in find_inline_canvases(tree)] == ["c1"]


class TestSummaries:
    """Test cases for diagram summaries and AI context."""

    def test_summarize_elements(self):
        elements = [
            {"id": "1", "type": "rectangle", "text": "Login"},
            {"id": "2", "type": "rectangle"},
            {"id": "3", "type": "arrow"},
            {"id": "4", "type": "text", "text": "Login"},
            {"id": "5", "type": "ellipse", "isDeleted": True},
        ]

        assert summarize_elements(elements) == (
            "2 rectangles, 1 arrow, 1 text including: Login"
        )

    def test_summary_labels_are_truncated(self):
        elements = [{"id": "1", "type": "text", "text": "A" * 40}]
        assert summarize_elements(elements) == f"1 text including: {'A' * 20}"

    def test_summarize_nothing(self):
        assert summarize_elements([]) == ""

    def test_build_ai_context(self):
        cart = {"id": "e1", "type": "rectangle", "text": "Cart"}
        content = json.dumps(
            doc(paragraph("Checkout flow"), inline_canvas("c1", "Flow", [cart]))
        )
        canvases = [
            Canvas(id="c1", name="Flow", data=CanvasData(elements=[cart])),
            Canvas(
                id="c2",
                name="Sequence",
                data=CanvasData(elements=[{"id": "e2", "type": "arrow"}]),
            ),
        ]

        context = build_ai_context(content, canvases)

        assert context == (
            "Checkout flow\n\n[Existing diagrams: 1 rectangle, 1 arrow including: Cart]"
        )

    def test_build_ai_context_without_diagrams(self):
        content = json.dumps(doc(paragraph("Checkout flow")))
        assert build_ai_context(content) == "Checkout flow"

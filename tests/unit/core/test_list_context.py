"""Unit tests for md2tree.core.list_context."""

from __future__ import annotations

import pytest

from md2tree.core.list_context import (
    NO_LIST,
    append_inline_to_last_list_item,
    compute_safe_indent,
    get_list_context,
    is_list_item_line,
    splice_block_markup,
)


@pytest.mark.unit
class TestGetListContext:
    """Test list ownership detection."""

    def test_block_after_list_item(self):
        text = "- parent\n  ```mermaid\nA-->B\n```"
        context = get_list_context(text, text.index("  ```"))
        assert context.is_list
        assert context.indent == ""
        assert context.child_indent == "  "

    def test_nested_item_indent(self):
        text = "- a\n    1. b\n\n```dot\n```"
        context = get_list_context(text, text.index("```dot"))
        assert context.is_list
        assert context.indent == "    "
        assert context.child_indent == "      "

    def test_block_after_heading(self):
        text = "# Title\n```mermaid\n```"
        assert get_list_context(text, text.index("```")) == NO_LIST

    def test_block_at_document_start(self):
        assert not get_list_context("```mermaid\n```", 0).is_list


@pytest.mark.unit
class TestComputeSafeIndent:
    """Test indent clamping for new list markers."""

    def test_deep_indent_owned_by_list_is_kept(self):
        text = "- parent\n    ```mermaid\nA-->B\n```"
        assert compute_safe_indent("    ", text, text.index("```")) == "    "

    def test_deep_indent_without_list_is_clamped_by_one(self):
        text = "Intro\n    ```mermaid\nA-->B\n```"
        assert compute_safe_indent("    ", text, text.index("```")) == "   "

    def test_shallow_indent_is_unchanged(self):
        assert compute_safe_indent("  ", "text\n  ```", 7) == "  "
        assert compute_safe_indent("", "", 0) == ""

    def test_tab_indent_is_clamped(self):
        text = "para\n\t\t\t\t```"
        assert compute_safe_indent("\t\t\t\t", text, text.index("```")) == "\t\t\t"


@pytest.mark.unit
class TestSpliceBlockMarkup:
    """Test placement of rendered images."""

    def test_appends_to_owning_item(self):
        out = "- parent\n"
        context = get_list_context("- parent\n```m\n```", 9)
        assert splice_block_markup(out, "<img>", context, "") == "- parent <img>"

    def test_adds_child_item_when_last_line_is_not_an_item(self):
        out = "- parent\n  continued text\n"
        context = get_list_context("- parent\n```m", 9)
        assert splice_block_markup(out, "<img>", context, "") == "- parent\n  continued text\n  - <img>"

    def test_adds_top_level_item_outside_lists(self):
        out = "# Heading\n"
        assert splice_block_markup(out, "<img>", NO_LIST, "") == "# Heading\n- <img>"

    def test_append_inline_drops_trailing_blank_lines(self):
        assert append_inline_to_last_list_item("- a\n\n\n", "<img>") == "- a <img>"

    def test_append_inline_requires_list_item(self):
        assert append_inline_to_last_list_item("## heading\n", "<img>") is None
        assert append_inline_to_last_list_item("", "<img>") is None


@pytest.mark.unit
@pytest.mark.parametrize(
    "line, expected",
    [
        ("- item", True),
        ("* item", True),
        ("+ item", True),
        ("  12. item", True),
        ("3) item", True),
        ("-item", False),
        ("# heading", False),
        ("1.5 is a number", False),
    ],
)
def test_is_list_item_line(line, expected):
    """Test bullet and ordered list markers are recognized."""
    assert is_list_item_line(line) is expected

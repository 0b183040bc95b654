#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/core/normalize.py
"""Structural normalization of loosely formatted markdown.

The tree visualization only understands headings and list items, so prose
has to be turned into headings and list content has to stay inside its list.
:class:`StructuralNormalizer` walks the document line by line and produces
canonical markdown:

- setext headings become ATX headings
- freeform paragraphs become headings one level below the last literal heading
- blank lines between list items are removed (tight lists)
- fences opened inside a list are re-indented under the owning item
- fenced code and ``$$`` math blocks pass through untouched

Running the normalizer on its own output returns the output unchanged.

"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from md2tree.constants import (
    ATX_HEADING_PATTERN,
    BLOCKQUOTE_LINE_PATTERN,
    HORIZONTAL_RULE_PATTERN,
    HTML_BLOCK_LINE_PATTERN,
    LIST_ITEM_PATTERN,
    MATH_BLOCK_DELIMITER,
    MAX_HEADING_LEVEL,
    SETEXT_UNDERLINE_PATTERN,
    TABLE_LINE_PATTERN,
)
from md2tree.core.fences import (
    FenceOpening,
    is_fence_closing,
    normalize_newlines,
    parse_fence_opening,
    unwrap_container_fence,
)
from md2tree.options.normalize import NormalizeOptions

logger = logging.getLogger(__name__)

# Widest indent a fence may have and still be pulled under a list item
_MAX_REINDENT_WIDTH = 3


class NormalizerMode(Enum):
    """Line-level state of the normalizer."""

    NORMAL = "normal"
    IN_FENCE = "in_fence"
    IN_MATH_BLOCK = "in_math_block"


class _Emitted(Enum):
    NONE = "none"
    LIST_ITEM = "list_item"
    FENCE_CLOSE = "fence_close"
    OTHER = "other"


@dataclass
class HeadingState:
    """Heading levels seen so far.

    Only literal heading lines move ``last_explicit_heading_level``; promoted
    freeform headings update ``last_heading_level`` alone, so consecutive
    paragraphs under one heading all land at the same level.
    """

    last_heading_level: int = 3
    last_explicit_heading_level: int = 3

    @property
    def promotion_level(self) -> int:
        """Heading level for the next freeform paragraph."""
        return min(self.last_explicit_heading_level + 1, MAX_HEADING_LEVEL)

    def record_literal(self, level: int) -> None:
        self.last_heading_level = level
        self.last_explicit_heading_level = level

    def record_promoted(self, level: int) -> None:
        self.last_heading_level = level


@dataclass(frozen=True)
class _OpenItem:
    indent: str
    indent_width: int
    content_indent: int


@dataclass
class NormalizerState:
    """Mutable state for one normalization run.

    Attributes
    ----------
    mode : NormalizerMode
        Whether the current line is inside a fence or a ``$$`` block.
    headings : HeadingState
        Heading levels used for freeform promotion.
    open_items : list
        Stack of list items whose content may still continue, outermost first.
    fence : FenceOpening or None
        The open fence while ``mode`` is IN_FENCE.
    fence_reindent : tuple of (int, str) or None
        Indent width to strip from, and indent to prepend to, every line of the
        open fence when it is being pulled under a list item.

    """

    mode: NormalizerMode = NormalizerMode.NORMAL
    headings: HeadingState = field(default_factory=HeadingState)
    open_items: list[_OpenItem] = field(default_factory=list)
    fence: Optional[FenceOpening] = None
    fence_reindent: Optional[tuple[int, str]] = None

    @property
    def in_list_context(self) -> bool:
        return bool(self.open_items)

    @property
    def list_content_indent(self) -> int:
        """Indent a line needs to continue the outermost open list item."""
        return self.open_items[0].content_indent if self.open_items else 0

    @property
    def last_list_indent(self) -> str:
        """Indent of the innermost open list item."""
        return self.open_items[-1].indent if self.open_items else ""

    def exit_list(self) -> None:
        self.open_items.clear()


def _indent_width(text: str) -> int:
    stripped = text.lstrip(" \t")
    return len(text[: len(text) - len(stripped)].expandtabs(4))


def _is_math_delimiter(line: str) -> bool:
    return line.strip() == MATH_BLOCK_DELIMITER


def _is_passthrough_block(line: str) -> bool:
    """Table, blockquote, HTML or single-line ``$$`` lines: kept as is, list context untouched."""
    return bool(
        TABLE_LINE_PATTERN.match(line)
        or BLOCKQUOTE_LINE_PATTERN.match(line)
        or HTML_BLOCK_LINE_PATTERN.match(line)
        or line.strip().startswith(MATH_BLOCK_DELIMITER)
    )


def _is_paragraph_boundary(line: str) -> bool:
    return bool(
        not line.strip()
        or parse_fence_opening(line)
        or LIST_ITEM_PATTERN.match(line)
        or ATX_HEADING_PATTERN.match(line)
        or HORIZONTAL_RULE_PATTERN.match(line)
        or _is_passthrough_block(line)
    )


def convert_setext_headings(text: str) -> str:
    """Rewrite setext headings as ATX headings.

    ``Title`` over ``===`` becomes ``# Title`` and over ``---`` becomes
    ``## Title``. The title must be a plain text line indented at most three
    spaces. Lines inside fences and ``$$`` blocks are never touched.

    """
    lines = text.split("\n")
    result: list[str] = []
    fence: Optional[FenceOpening] = None
    in_math = False
    i = 0

    while i < len(lines):
        line = lines[i]
        if fence is not None:
            if is_fence_closing(line, fence.marker_char, fence.marker_len):
                fence = None
        elif in_math:
            in_math = not _is_math_delimiter(line)
        elif (opening := parse_fence_opening(line)) is not None:
            fence = opening
        elif _is_math_delimiter(line):
            in_math = True
        elif i + 1 < len(lines) and _is_setext_title(line):
            underline = SETEXT_UNDERLINE_PATTERN.match(lines[i + 1])
            if underline:
                marker = "#" if underline.group("underline")[0] == "=" else "##"
                result.append(f"{marker} {line.strip()}")
                i += 2
                continue
        result.append(line)
        i += 1

    return "\n".join(result)


def _is_setext_title(line: str) -> bool:
    return _indent_width(line) <= _MAX_REINDENT_WIDTH and not _is_paragraph_boundary(line)


class StructuralNormalizer:
    """Rewrite raw markdown into canonical heading/list markdown.

    Parameters
    ----------
    options : NormalizeOptions, optional
        Normalization switches; defaults are used when omitted.

    Examples
    --------
        >>> StructuralNormalizer().normalize("# Root\\nFreeform paragraph\\n")
        '# Root\\n## Freeform paragraph\\n'

    """

    def __init__(self, options: NormalizeOptions | None = None):
        self.options = options or NormalizeOptions()

    def normalize(self, text: str) -> str:
        """Normalize ``text`` and return canonical markdown ending in one newline."""
        text = normalize_newlines(text)
        if self.options.unwrap_container:
            text = unwrap_container_fence(text)
        if self.options.convert_setext:
            text = convert_setext_headings(text)

        lines = self._rewrite(text.split("\n"))
        return "\n".join(lines).rstrip() + "\n"

    def _rewrite(self, lines: list[str]) -> list[str]:
        level = self.options.initial_heading_level
        state = NormalizerState(headings=HeadingState(level, level))
        out: list[str] = []
        pending_blank = False
        previous = _Emitted.NONE

        def emit(line: str, kind: _Emitted, keep_blank: bool = True) -> None:
            nonlocal pending_blank, previous
            if pending_blank and out and keep_blank:
                out.append("")
            pending_blank = False
            previous = kind
            out.append(line)

        i = 0
        while i < len(lines):
            line = lines[i]
            i += 1

            if state.mode is NormalizerMode.IN_FENCE:
                assert state.fence is not None
                closing = is_fence_closing(line, state.fence.marker_char, state.fence.marker_len)
                out.append(self._reindent_fence_line(line, state.fence_reindent))
                if closing:
                    state.mode = NormalizerMode.NORMAL
                    state.fence = None
                    state.fence_reindent = None
                    previous = _Emitted.FENCE_CLOSE
                continue

            if state.mode is NormalizerMode.IN_MATH_BLOCK:
                out.append(line)
                if _is_math_delimiter(line):
                    state.mode = NormalizerMode.NORMAL
                    previous = _Emitted.OTHER
                continue

            if not line.strip():
                pending_blank = bool(out)
                continue

            opening = parse_fence_opening(line)
            if opening is not None:
                state.mode = NormalizerMode.IN_FENCE
                state.fence = opening
                state.fence_reindent = self._fence_reindent(opening, state)
                emit(self._reindent_fence_line(line, state.fence_reindent), _Emitted.OTHER)
                continue

            if _is_math_delimiter(line):
                state.mode = NormalizerMode.IN_MATH_BLOCK
                emit(line, _Emitted.OTHER)
                continue

            heading = ATX_HEADING_PATTERN.match(line)
            if heading:
                state.headings.record_literal(len(heading.group("hashes")))
                state.exit_list()
                emit(line, _Emitted.OTHER)
                continue

            if HORIZONTAL_RULE_PATTERN.match(line):
                state.exit_list()
                emit(line, _Emitted.OTHER)
                continue

            item = LIST_ITEM_PATTERN.match(line)
            if item:
                emit(line, _Emitted.LIST_ITEM, keep_blank=not self._tightens(previous, item.group("indent"), state))
                self._push_list_item(state, item.group("indent"), item.group("marker"), item.group("gap"))
                continue

            if _is_passthrough_block(line):
                emit(line, _Emitted.OTHER)
                continue

            width = _indent_width(line)
            if state.in_list_context and width >= state.list_content_indent:
                while state.open_items and state.open_items[-1].content_indent > width:
                    state.open_items.pop()
                emit(line, _Emitted.OTHER)
                continue

            # Freeform paragraph: join the run of plain lines into one heading
            paragraph = [line.strip()]
            while i < len(lines) and not _is_paragraph_boundary(lines[i]):
                paragraph.append(lines[i].strip())
                i += 1
            promoted = state.headings.promotion_level
            state.headings.record_promoted(promoted)
            state.exit_list()
            emit(f"{'#' * promoted} {' '.join(paragraph)}", _Emitted.OTHER)

        if state.mode is not NormalizerMode.NORMAL:
            logger.debug("Document ended inside %s", state.mode.value)
        return out

    def _tightens(self, previous: _Emitted, indent: str, state: NormalizerState) -> bool:
        """Whether a pending blank line before a list item should be dropped."""
        if not self.options.tighten_lists:
            return False
        if previous is _Emitted.LIST_ITEM:
            return True
        if previous is _Emitted.FENCE_CLOSE and state.in_list_context:
            return _indent_width(indent) <= _indent_width(state.last_list_indent)
        return False

    @staticmethod
    def _push_list_item(state: NormalizerState, indent: str, marker: str, gap: str) -> None:
        width = _indent_width(indent)
        gap_width = len(gap.expandtabs(4))
        # Five or more spaces after the marker start indented code inside the item
        content_indent = width + len(marker) + (gap_width if gap_width <= 4 else 1)
        while state.open_items and state.open_items[-1].indent_width >= width:
            state.open_items.pop()
        state.open_items.append(_OpenItem(indent=indent, indent_width=width, content_indent=content_indent))

    @staticmethod
    def _fence_reindent(opening: FenceOpening, state: NormalizerState) -> Optional[tuple[int, str]]:
        if not state.in_list_context:
            return None
        child_indent = state.last_list_indent + "  "
        if _indent_width(opening.indent) > _MAX_REINDENT_WIDTH or opening.indent.startswith(child_indent):
            return None
        return len(opening.indent), child_indent

    @staticmethod
    def _reindent_fence_line(line: str, reindent: Optional[tuple[int, str]]) -> str:
        if reindent is None or not line.strip():
            return line
        strip_width, child_indent = reindent
        cut = 0
        while cut < strip_width and cut < len(line) and line[cut] in " \t":
            cut += 1
        return child_indent + line[cut:]


def normalize_markdown(text: str, options: NormalizeOptions | None = None) -> str:
    """Normalize ``text`` into canonical heading/list markdown.

    Parameters
    ----------
    text : str
        Raw markdown.
    options : NormalizeOptions, optional
        Normalization switches.

    Returns
    -------
    str
        Canonical markdown ending in exactly one newline.

    """
    return StructuralNormalizer(options).normalize(text)

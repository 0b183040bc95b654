#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/core/fences.py
"""Fenced code block scanning.

A fence opens on a line holding three or more backticks or tildes (after any
indent), optionally followed by a language token and a hint token. It closes
on a later line made of at least as many of the same character and nothing
else. Fences do not nest: while one is open, fence-like lines that cannot close
it are content. An unterminated fence runs to the end of the text.

"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from md2tree.constants import CONTAINER_FENCE_LANGUAGES, MIN_FENCE_LENGTH, FenceMarkerChar

logger = logging.getLogger(__name__)

_FENCE_MARKER = rf"`{{{MIN_FENCE_LENGTH},}}|~{{{MIN_FENCE_LENGTH},}}"
_FENCE_OPEN_RE = re.compile(rf"^(?P<indent>[ \t]*)(?P<marker>{_FENCE_MARKER})(?P<info>.*)$")


@dataclass(frozen=True)
class FenceOpening:
    """Parsed opening line of a fence."""

    indent: str
    marker_char: FenceMarkerChar
    marker_len: int
    lang: str
    hint: Optional[str]
    info: str


@dataclass(frozen=True)
class FenceBlock:
    """A fenced region of a document.

    Parameters
    ----------
    start : int
        Offset of the first character of the opening line (its indent included).
    end : int
        Offset just past the closing line, excluding its newline. ``len(text)``
        for an unterminated fence.
    indent : str
        Leading whitespace of the opening line.
    marker_char : {"`", "~"}
        Fence character.
    marker_len : int
        Length of the opening marker run (at least 3).
    lang : str
        Lower-cased first info token, or "".
    hint : str or None
        Second info token, if present.
    content : str
        Text between the opening and closing lines, without the newline that
        precedes the closing line.
    info : str
        The stripped info string after the marker.
    closed : bool
        Whether a closing line was found.

    """

    start: int
    end: int
    indent: str
    marker_char: FenceMarkerChar
    marker_len: int
    lang: str
    hint: Optional[str]
    content: str
    info: str
    closed: bool = True

    def source(self, text: str) -> str:
        """Return the exact fence text (opening line through closing line)."""
        return text[self.start : self.end]


def normalize_newlines(text: str) -> str:
    """Convert CRLF and lone CR line endings to LF."""
    return (text or "").replace("\r\n", "\n").replace("\r", "\n")


def parse_fence_opening(line: str) -> Optional[FenceOpening]:
    """Parse ``line`` as a fence opening.

    Parameters
    ----------
    line : str
        One line of text, without its newline.

    Returns
    -------
    FenceOpening or None
        The parsed opening, or None if the line does not open a fence.

    """
    match = _FENCE_OPEN_RE.match(line)
    if not match:
        return None
    marker = match.group("marker")
    info = match.group("info").strip()
    # A backtick info string may not contain backticks (that is inline code)
    if marker[0] == "`" and "`" in info:
        return None
    tokens = info.split()
    return FenceOpening(
        indent=match.group("indent"),
        marker_char="`" if marker[0] == "`" else "~",
        marker_len=len(marker),
        lang=tokens[0].lower() if tokens else "",
        hint=tokens[1] if len(tokens) > 1 else None,
        info=info,
    )


def is_fence_closing(line: str, marker_char: str, marker_len: int) -> bool:
    """Return True if ``line`` closes a fence of ``marker_char`` x ``marker_len``."""
    stripped = line.strip()
    if len(stripped) < marker_len:
        return False
    return stripped == marker_char * len(stripped)


def scan_fences(text: str) -> list[FenceBlock]:
    """Find every fenced block in ``text``.

    Parameters
    ----------
    text : str
        Markdown with LF line endings.

    Returns
    -------
    list of FenceBlock
        Blocks ordered by ``start``; they never overlap.

    """
    blocks: list[FenceBlock] = []
    opening: Optional[FenceOpening] = None
    open_start = 0
    content_start = 0
    pos = 0
    length = len(text)

    while pos <= length:
        newline = text.find("\n", pos)
        line_end = length if newline == -1 else newline
        line = text[pos:line_end]

        if opening is None:
            opening = parse_fence_opening(line)
            if opening is not None:
                open_start = pos
                content_start = line_end + 1
        elif is_fence_closing(line, opening.marker_char, opening.marker_len):
            content_end = max(content_start, pos - 1)
            blocks.append(_make_block(text, opening, open_start, line_end, content_start, content_end, True))
            opening = None

        if newline == -1:
            break
        pos = newline + 1

    if opening is not None:
        logger.debug("Unterminated %s fence at offset %d runs to end of text", opening.marker_char * 3, open_start)
        blocks.append(_make_block(text, opening, open_start, length, content_start, length, False))

    return blocks


def _make_block(
    text: str,
    opening: FenceOpening,
    start: int,
    end: int,
    content_start: int,
    content_end: int,
    closed: bool,
) -> FenceBlock:
    return FenceBlock(
        start=start,
        end=end,
        indent=opening.indent,
        marker_char=opening.marker_char,
        marker_len=opening.marker_len,
        lang=opening.lang,
        hint=opening.hint,
        content=text[content_start:content_end] if content_start <= content_end else "",
        info=opening.info,
        closed=closed,
    )


def unwrap_container_fence(text: str) -> str:
    """Replace a document that is exactly one ``markdown``/``md`` fence with its content.

    The check repeats so that nested container fences are all removed. Text
    that is not a single closed container fence is returned unchanged.

    Parameters
    ----------
    text : str
        Markdown with LF line endings.

    Returns
    -------
    str
        The unwrapped document.

    """
    while True:
        trimmed = text.strip()
        blocks = scan_fences(trimmed)
        if len(blocks) != 1:
            return text
        block = blocks[0]
        if not (block.closed and block.start == 0 and block.end == len(trimmed)):
            return text
        if block.lang not in CONTAINER_FENCE_LANGUAGES:
            return text
        logger.debug("Unwrapping %s container fence", block.lang)
        text = block.content

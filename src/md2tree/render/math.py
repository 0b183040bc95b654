#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/render/math.py
"""Replace TeX math spans with pre-rendered SVG images.

The document is scanned one character at a time. Fenced code and inline code
are copied verbatim and never searched for math. Outside them:

- ``$$...$$`` is block math, rendered in display mode and placed like a diagram
  (appended to the owning list item, or as a new list item)
- ``$...$`` on a single line is inline math, rendered only when it does not
  look like a price or a numeric range
- ``\\$`` is a literal dollar sign

A span whose render fails or comes back empty is kept as written.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Optional

from md2tree.constants import (
    CURRENCY_LIKE_PATTERN,
    LATEX_TOKEN_PATTERN,
    LETTER_PATTERN,
    MATH_BLOCK_CLASS,
    MATH_INLINE_CLASS,
)
from md2tree.core.fences import FenceOpening, is_fence_closing, parse_fence_opening
from md2tree.core.list_context import compute_safe_indent, get_list_context, splice_block_markup
from md2tree.exceptions import RendererUnavailableError
from md2tree.options.render import RenderOptions
from md2tree.render.generation import Generation
from md2tree.render.renderers import ExtractionResult, MathRenderer, maybe_await
from md2tree.render.svg import (
    parse_svg_size,
    parse_svg_size_with_unit,
    sanitize_svg_for_xml,
    set_svg_pixel_size,
    svg_to_data_url,
)

if TYPE_CHECKING:
    from md2tree.render.math_lines import MathLineFlattener

logger = logging.getLogger(__name__)

_SVG_ELEMENT_RE = re.compile(r"<svg\b.*</svg\s*>", re.IGNORECASE | re.DOTALL)


class _Stale(Exception):
    """The render attempt was superseded while math was being rendered."""


def should_render_inline_math(expr: str) -> bool:
    """Decide whether a ``$...$`` span is TeX rather than money.

    Amounts and ranges such as ``100``, ``1,000.50 usd`` or ``100 to 200``
    are rejected. Anything else is accepted when it holds a TeX token
    (``\\ ^ _ { } =``) or a letter.

    Examples
    --------
        >>> should_render_inline_math("100 to 200")
        False
        >>> should_render_inline_math("x^2")
        True
        >>> should_render_inline_math(" ")
        False

    """
    trimmed = (expr or "").strip()
    if not trimmed:
        return False
    if CURRENCY_LIKE_PATTERN.match(trimmed):
        return False
    if LATEX_TOKEN_PATTERN.search(trimmed):
        return True
    return LETTER_PATTERN.search(trimmed) is not None


def build_math_markup(svg: str, display: bool, options: RenderOptions) -> str:
    """Size ``svg`` and wrap it in an ``<img>`` tag with a data URL."""
    size = parse_svg_size_with_unit(svg, options.base_font_px) or parse_svg_size(
        svg, default=(options.default_math_width, options.default_math_height)
    )
    assert size is not None
    width, height = size
    sized = set_svg_pixel_size(sanitize_svg_for_xml(svg), width, height)
    css_class = MATH_BLOCK_CLASS if display else MATH_INLINE_CLASS
    return (
        f'<img class="{css_class}" alt="math" src="{svg_to_data_url(sized)}" '
        f'width="{width}" height="{height}" style="width:{width}px;height:{height}px;">'
    )


class _MathScanner:
    """Single forward pass over one document."""

    def __init__(self, text: str, generation: Generation, renderer: MathRenderer, options: RenderOptions):
        self.text = text
        self.generation = generation
        self.renderer = renderer
        self.options = options
        self.out = ""
        self.fence: Optional[FenceOpening] = None
        self.inline_ticks = 0
        self.rendered = 0
        self.unavailable = False

    async def run(self) -> str:
        text = self.text
        i = 0
        while i < len(text):
            if (i == 0 or text[i - 1] == "\n") and not self.inline_ticks:
                consumed = self._copy_fence_line(i)
                if consumed:
                    i = consumed
                    continue

            char = text[i]
            if char == "`":
                i = self._handle_backticks(i)
            elif self.fence is not None or self.inline_ticks:
                self.out += char
                i += 1
            elif char == "\\":
                self.out += text[i : i + 2]
                i += 2
            elif text.startswith("$$", i):
                i = await self._handle_block(i)
            elif char == "$":
                i = await self._handle_inline(i)
            else:
                self.out += char
                i += 1
        return self.out

    def _copy_fence_line(self, start: int) -> int:
        """Copy a fence line (or a line inside a fence) and return the next offset, or 0."""
        newline = self.text.find("\n", start)
        end = len(self.text) if newline == -1 else newline + 1
        line = self.text[start : end].rstrip("\n")

        if self.fence is None:
            opening = parse_fence_opening(line)
            if opening is None:
                return 0
            self.fence = opening
        elif is_fence_closing(line, self.fence.marker_char, self.fence.marker_len):
            self.fence = None

        self.out += self.text[start:end]
        return end

    def _handle_backticks(self, start: int) -> int:
        run = 0
        while start + run < len(self.text) and self.text[start + run] == "`":
            run += 1
        if not self.inline_ticks:
            # An unmatched run is literal text, not the start of inline code
            limit = self._paragraph_end(start + run)
            if re.compile(f"`{{{run},}}").search(self.text, start + run, limit):
                self.inline_ticks = run
        elif run >= self.inline_ticks:
            self.inline_ticks = 0
        self.out += self.text[start : start + run]
        return start + run

    def _paragraph_end(self, start: int) -> int:
        """Offset of the next blank or fence-opening line after ``start``."""
        newline = self.text.find("\n", start)
        while newline != -1:
            line_start = newline + 1
            newline = self.text.find("\n", line_start)
            line = self.text[line_start : len(self.text) if newline == -1 else newline]
            if not line.strip() or parse_fence_opening(line) is not None:
                return line_start
        return len(self.text)

    def _find_closing(self, start: int, needle: str, same_line: bool) -> int:
        pos = start
        while pos < len(self.text):
            char = self.text[pos]
            if char == "\\":
                pos += 2
                continue
            if same_line and char == "\n":
                return -1
            if self.text.startswith(needle, pos):
                return pos
            pos += 1
        return -1

    async def _render(self, expr: str, display: bool) -> Optional[str]:
        if self.unavailable:
            return None
        if not self.generation.is_current():
            raise _Stale()
        try:
            svg = await maybe_await(self.renderer.tex_to_svg(expr, display=display))
        except RendererUnavailableError as exc:
            # The rest of the document is passed through untouched
            self.unavailable = True
            svg = None
            logger.info("Math renderer unavailable: %s", exc)
        except Exception as exc:
            svg = None
            logger.warning("Math render failed; keeping %r: %s", expr, exc)
        if not self.generation.is_current():
            raise _Stale()
        if not svg:
            return None
        match = _SVG_ELEMENT_RE.search(str(svg))
        if match is None:
            logger.debug("Math renderer returned no <svg> element for %r", expr)
            return None
        self.rendered += 1
        return build_math_markup(match.group(0), display, self.options)

    async def _handle_block(self, start: int) -> int:
        end = self._find_closing(start + 2, "$$", same_line=False)
        if end == -1:
            self.out += "$$"
            return start + 2
        expr = self.text[start + 2 : end].strip()
        markup = await self._render(expr, display=True) if expr else None
        if markup is None:
            self.out += self.text[start : end + 2]
            return end + 2

        line_start = self.text.rfind("\n", 0, start) + 1
        prefix = self.text[line_start:start]
        if prefix.strip():
            # Math shares its line with other content, so it stays inline
            self.out += markup
        else:
            if prefix:
                self.out = self.out[: -len(prefix)]
            context = get_list_context(self.text, line_start)
            indent = compute_safe_indent(prefix, self.text, line_start)
            self.out = splice_block_markup(self.out, markup, context, indent)
        return end + 2

    async def _handle_inline(self, start: int) -> int:
        end = self._find_closing(start + 1, "$", same_line=True)
        if end == -1:
            self.out += "$"
            return start + 1
        expr = self.text[start + 1 : end]
        markup = await self._render(expr, display=False) if should_render_inline_math(expr) else None
        self.out += markup if markup is not None else self.text[start : end + 1]
        return end + 1


async def extract_math(
    text: str,
    generation: Generation,
    *,
    renderer: Optional[MathRenderer],
    options: RenderOptions | None = None,
    flattener: Optional["MathLineFlattener"] = None,
) -> Optional[ExtractionResult]:
    """Render math spans in ``text`` and splice images in their place.

    Parameters
    ----------
    text : str
        Canonical markdown.
    generation : Generation
        Token of the calling render attempt.
    renderer : MathRenderer or None
        TeX renderer. When None, math extraction is a passthrough.
    options : RenderOptions, optional
        Sizing options.
    flattener : MathLineFlattener, optional
        When given, list lines that mix text and inline math are flattened
        into one image each after the scan.

    Returns
    -------
    ExtractionResult or None
        Rewritten text and the blobs allocated by line flattening, or None when
        the attempt went stale (any blobs allocated here are already revoked).

    """
    if renderer is None:
        return ExtractionResult(text=text)

    scanner = _MathScanner(text, generation, renderer, options or RenderOptions())
    try:
        out = await scanner.run()
    except _Stale:
        logger.debug("Math extraction for generation %d went stale", generation.token)
        return None
    logger.debug("Rendered %d math expression(s)", scanner.rendered)

    if flattener is None or not scanner.rendered:
        return ExtractionResult(text=out)

    from md2tree.render.math_lines import flatten_math_lines

    return await flatten_math_lines(out, generation, flattener)

#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/render/svg.py
"""Helpers for sizing, styling and cleaning SVG markup.

Renderers hand back SVG in many shapes: sized by ``viewBox`` only, sized in
``pt`` or ``ex`` units, or carrying HTML entities that are not valid XML. These
helpers turn such markup into something that can be embedded as an image
with a known pixel size.
"""

from __future__ import annotations

import base64
import re
from typing import Optional

from md2tree.constants import DEFAULT_DIAGRAM_HEIGHT, DEFAULT_DIAGRAM_WIDTH

Size = tuple[int, int]

_SVG_TAG_RE = re.compile(r"<svg\b[^>]*>", re.IGNORECASE)
_VIEWBOX_RE = re.compile(
    r"""\bviewBox\s*=\s*["']\s*([-\d.eE+]+)[\s,]+([-\d.eE+]+)[\s,]+([\d.eE+]+)[\s,]+([\d.eE+]+)"""
)
_LENGTH_RE = re.compile(r"^\s*([\d.]+(?:[eE][-+]?\d+)?)\s*([a-z%]*)\s*$", re.IGNORECASE)

_UNIT_PX = {
    "": 1.0,
    "px": 1.0,
    "pt": 96.0 / 72.0,
    "pc": 16.0,
    "in": 96.0,
    "cm": 96.0 / 2.54,
    "mm": 96.0 / 25.4,
}

_XML_ENTITIES = frozenset({"amp", "lt", "gt", "quot", "apos"})
_NBSP = " "


def _root_tag(svg: str) -> Optional[re.Match[str]]:
    return _SVG_TAG_RE.search(svg or "")


def _attribute(tag: str, name: str) -> Optional[str]:
    match = re.search(rf"""\s{name}\s*=\s*(["'])(.*?)\1""", tag)
    return match.group(2) if match else None


def parse_svg_size(
    svg: str, default: Optional[Size] = (DEFAULT_DIAGRAM_WIDTH, DEFAULT_DIAGRAM_HEIGHT)
) -> Optional[Size]:
    """Read the pixel size of an SVG.

    The ``viewBox`` width/height win; otherwise plain numeric ``width`` and
    ``height`` attributes are used; otherwise ``default``.

    Examples
    --------
        >>> parse_svg_size('<svg viewBox="0 0 120 80"></svg>')
        (120, 80)
        >>> parse_svg_size("<svg></svg>")
        (480, 240)

    """
    tag = _root_tag(svg)
    if tag is None:
        return default
    viewbox = _VIEWBOX_RE.search(tag.group(0))
    if viewbox:
        width, height = float(viewbox.group(3)), float(viewbox.group(4))
        if width > 0 and height > 0:
            return round(width), round(height)
    width_attr = _attribute(tag.group(0), "width")
    height_attr = _attribute(tag.group(0), "height")
    if width_attr and height_attr:
        width_match = _LENGTH_RE.match(width_attr)
        height_match = _LENGTH_RE.match(height_attr)
        if width_match and height_match and width_match.group(2) in ("", "px") and height_match.group(2) in ("", "px"):
            width, height = float(width_match.group(1)), float(height_match.group(1))
            if width > 0 and height > 0:
                return round(width), round(height)
    return default


def _length_to_px(value: str, base_px: float) -> Optional[float]:
    match = _LENGTH_RE.match(value)
    if not match:
        return None
    number, unit = float(match.group(1)), match.group(2).lower()
    if unit == "em":
        return number * base_px
    if unit == "ex":
        return number * base_px / 2
    factor = _UNIT_PX.get(unit)
    return number * factor if factor is not None else None


def parse_svg_size_with_unit(svg: str, base_px: float) -> Optional[Size]:
    """Convert the root ``width``/``height`` attributes to pixels.

    Supports px, pt, pc, in, cm, mm, em and ex (half an em). Returns None when
    either attribute is missing, relative (``%``) or not positive.

    Examples
    --------
        >>> parse_svg_size_with_unit('<svg width="72pt" height="36pt"></svg>', 16)
        (96, 48)

    """
    tag = _root_tag(svg)
    if tag is None:
        return None
    width_attr = _attribute(tag.group(0), "width")
    height_attr = _attribute(tag.group(0), "height")
    if not width_attr or not height_attr:
        return None
    width = _length_to_px(width_attr, base_px)
    height = _length_to_px(height_attr, base_px)
    if not width or not height or width <= 0 or height <= 0:
        return None
    return round(width), round(height)


def set_svg_pixel_size(svg: str, width: int, height: int) -> str:
    """Give the root element explicit pixel ``width``/``height`` and an inline size style."""
    tag = _root_tag(svg)
    if tag is None:
        return svg
    new_tag = tag.group(0)
    for name in ("width", "height", "style"):
        new_tag = re.sub(rf"""\s{name}\s*=\s*(["']).*?\1""", "", new_tag)
    closing = "/>" if new_tag.endswith("/>") else ">"
    body = new_tag[: -len(closing)].rstrip()
    new_tag = f'{body} width="{width}" height="{height}" style="width:{width}px;height:{height}px;"{closing}'
    return svg[: tag.start()] + new_tag + svg[tag.end() :]


def svg_to_data_url(svg: str) -> str:
    """Encode ``svg`` as a base64 ``data:image/svg+xml`` URL."""
    encoded = base64.b64encode(svg.encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


def sanitize_svg_for_xml(svg: str) -> str:
    """Make renderer SVG output well-formed XML.

    Non-breaking space entities (``&nbsp;``, an unterminated ``&nbsp``, the
    double-escaped ``&amp;nbsp;`` and escaped forms split across two adjacent
    text runs such as ``&amp;nbs</tspan><tspan>p;``) become plain spaces.
    Other named entities XML does not define are escaped as text. The five XML
    entities and numeric references are kept.
    """
    # Escaped entity split across sibling elements: "&amp;nb" + tags + "sp;"
    svg = re.sub(
        r"&amp;(n|nb|nbs)((?:\s*</?[a-zA-Z][^>]*>\s*)+)(bsp|sp|p);",
        lambda m: (_NBSP + m.group(2)) if m.group(1) + m.group(3) == "nbsp" else m.group(0),
        svg,
    )
    svg = re.sub(r"&amp;nbsp;?", _NBSP, svg)
    svg = re.sub(r"&nbsp;?", _NBSP, svg)

    def escape_unknown(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in _XML_ENTITIES:
            return match.group(0)
        return f"&amp;{name};"

    return re.sub(r"&([a-zA-Z][a-zA-Z0-9]*);", escape_unknown, svg)

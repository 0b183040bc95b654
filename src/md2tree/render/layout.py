#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/render/layout.py
"""Post-commit layout fixes for HTML hosted in SVG foreignObject elements."""

from __future__ import annotations

import logging

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)


def _local_name(tag: Tag) -> str:
    return (tag.name or "").split(":")[-1].lower()


def unwrap_foreign_object_paragraphs(markup: str, parser: str = "html.parser") -> str:
    """Replace every ``<p>`` inside a ``<foreignObject>`` with its children.

    At least one engine draws paragraph elements inside a foreignObject at the
    SVG origin, so embedded images end up in the wrong place.

    Parameters
    ----------
    markup : str
        Serialized visualization markup.
    parser : str, default "html.parser"
        BeautifulSoup parser. ``html.parser`` lower-cases attribute names; pass
        ``"xml"`` to keep SVG attributes such as ``viewBox`` intact.

    Returns
    -------
    str
        The markup with foreignObject paragraphs unwrapped, or the input
        unchanged when there was nothing to unwrap.

    """
    soup = BeautifulSoup(markup, parser)
    unwrapped = 0
    for host in soup.find_all(lambda tag: _local_name(tag) == "foreignobject"):
        for paragraph in host.find_all(lambda tag: _local_name(tag) == "p"):
            paragraph.unwrap()
            unwrapped += 1
    if not unwrapped:
        return markup
    logger.debug("Unwrapped %d foreignObject paragraph(s)", unwrapped)
    return str(soup)

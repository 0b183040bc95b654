#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/render/diagrams.py
"""Replace diagram fences with pre-rendered images.

Each fence whose language names a diagram family is handed to the registered
renderer. A successful result is materialized as a blob and spliced back as
a sized ``<img>`` inside the list item that owned the fence, or as a new list
item of its own. A block whose renderer fails is kept verbatim, so one broken
diagram never hides the rest of the document.
"""

from __future__ import annotations

import html
import logging
import math
from typing import Optional

from md2tree.constants import DIAGRAM_WRAP_CLASS
from md2tree.core.fences import FenceBlock, normalize_newlines, scan_fences
from md2tree.core.list_context import compute_safe_indent, get_list_context, splice_block_markup
from md2tree.exceptions import RendererUnavailableError
from md2tree.options.render import RenderOptions
from md2tree.render.blobs import BlobHandle, BlobSet, BlobStore
from md2tree.render.generation import Generation
from md2tree.render.renderers import (
    ExtractionResult,
    RenderContext,
    RendererRegistry,
    RenderResult,
    maybe_await,
)
from md2tree.render.svg import sanitize_svg_for_xml

logger = logging.getLogger(__name__)


def _pixel_size(value: Optional[float], default: int) -> int:
    if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value) and value > 0:
        return math.ceil(value)
    return default


def build_diagram_markup(url: str, width: int, height: int, class_name: str, alt: str) -> str:
    """Build the inline-block wrapper and ``<img>`` for a rendered diagram.

    The wrapper is sized with inline styles only. It must not be absolutely
    positioned: some engines draw positioned descendants of a foreignObject at
    the SVG root.
    """
    wrap_style = f"display:inline-block;width:{width}px;height:{height}px;line-height:0;vertical-align:top;"
    img_style = f"display:block;width:{width}px;height:{height}px;"
    return (
        f'<span class="{DIAGRAM_WRAP_CLASS}" style="{wrap_style}">'
        f'<img class="{html.escape(class_name)}" alt="{html.escape(alt)}" src="{url}" '
        f'width="{width}" height="{height}" style="{img_style}"></span>'
    )


def _materialize(result: RenderResult, blob_store: BlobStore) -> BlobHandle:
    data = result.data
    mime = result.mime or ""
    if isinstance(data, str) and "svg" in mime:
        data = sanitize_svg_for_xml(data)
    assert data is not None
    return blob_store.create(data, mime)


def _first_line(source: str) -> str:
    return next((line.strip() for line in source.split("\n") if line.strip()), "")


async def extract_diagrams(
    text: str,
    generation: Generation,
    *,
    registry: RendererRegistry,
    blob_store: BlobStore,
    options: RenderOptions | None = None,
) -> Optional[ExtractionResult]:
    """Render diagram fences in ``text`` and splice images in their place.

    Parameters
    ----------
    text : str
        Canonical markdown.
    generation : Generation
        Token of the calling render attempt. Polled before and after each
        renderer call.
    registry : RendererRegistry
        Available diagram renderers. Fences with no renderer are kept verbatim.
    blob_store : BlobStore
        Where rendered images are materialized.
    options : RenderOptions, optional
        Default sizes and class names.

    Returns
    -------
    ExtractionResult or None
        The rewritten text and every blob allocated, or None when the attempt
        went stale. On None, the blobs allocated by this call are already revoked.

    """
    options = options or RenderOptions()
    text = normalize_newlines(text)
    allocated = BlobSet(blob_store)
    out = ""
    last_index = 0

    for block in scan_fences(text):
        out += text[last_index : block.start]
        last_index = block.end
        source = block.source(text)

        resolved = registry.resolve(block.lang)
        if resolved is None:
            out += source
            continue
        kind, renderer = resolved
        name = getattr(renderer, "name", None) or kind.value

        if not generation.is_current():
            return _cancel(allocated, generation, name)

        context = RenderContext(
            md_text=text,
            match_index=block.start,
            token=generation.token,
            format_hint=(block.hint or "").lower(),
        )
        error: Optional[Exception] = None
        result: Optional[RenderResult] = None
        try:
            result = RenderResult.coerce(await maybe_await(renderer.render(block.content, context)))
        except Exception as exc:
            error = exc

        if not generation.is_current():
            return _cancel(allocated, generation, name)

        if isinstance(error, RendererUnavailableError):
            logger.info("%s renderer unavailable; keeping block (%s)", name, _first_line(block.content))
            out += source
            continue
        if error is not None:
            logger.warning("%s render failed; keeping block (%s): %s", name, _first_line(block.content), error)
            out += source
            continue
        if result is None or not result.is_usable:
            logger.info("%s renderer produced no image; keeping block (%s)", name, _first_line(block.content))
            out += source
            continue

        handle = _materialize(result, blob_store)
        allocated.add(handle)
        out = _splice(out, text, block, handle, result, name, options)

    out += text[last_index:]
    return ExtractionResult(text=out, blob_handles=allocated.handles)


def _splice(
    out: str,
    text: str,
    block: FenceBlock,
    handle: BlobHandle,
    result: RenderResult,
    name: str,
    options: RenderOptions,
) -> str:
    width = _pixel_size(result.width, options.default_diagram_width)
    height = _pixel_size(result.height, options.default_diagram_height)
    markup = build_diagram_markup(
        handle.url,
        width,
        height,
        result.class_name or options.diagram_class,
        result.alt or f"{name} diagram",
    )
    context = get_list_context(text, block.start)
    indent = compute_safe_indent(block.indent, text, block.start)
    return splice_block_markup(out, markup, context, indent)


def _cancel(allocated: BlobSet, generation: Generation, name: str) -> None:
    released = allocated.release()
    logger.debug(
        "Diagram extraction for generation %d went stale at %s; released %d blob(s)", generation.token, name, released
    )
    return None

#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/render/math_lines.py
"""Flatten list lines that mix text and inline math into a single image.

Inline math images sit on the text baseline differently in every browser
engine. When that matters, each list-item line holding inline math is drawn
onto one raster (text runs with a font, math images at their declared size)
and the line's content is replaced by that picture.

Pillow does the drawing. SVG math images need an SVG rasterizer callable
because Pillow cannot decode SVG; without one such lines are left as they are.
"""

from __future__ import annotations

import base64
import binascii
import html
import io
import logging
import math
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional, Union
from urllib.parse import unquote_to_bytes

import mistune
from bs4 import BeautifulSoup

from md2tree.constants import LIST_ITEM_PATTERN, MATH_LINE_CLASS
from md2tree.core.fences import FenceOpening, is_fence_closing, parse_fence_opening
from md2tree.exceptions import RasterizationError
from md2tree.render.blobs import BlobHandle, BlobSet, BlobStore
from md2tree.render.frames import next_frame
from md2tree.render.generation import Generation
from md2tree.render.renderers import ExtractionResult
from md2tree.utils.decorators import requires_dependencies

if TYPE_CHECKING:
    from PIL import Image as PILImage

logger = logging.getLogger(__name__)

SvgRasterizer = Callable[[str, int, int], Union[bytes, "PILImage.Image"]]
"""Callable ``(svg_text, width_px, height_px)`` returning PNG bytes or a PIL image."""

_IMG_TAG_RE = re.compile(r"(<img\b[^>]*>)", re.IGNORECASE)
_DATA_URL_RE = re.compile(r"^data:(?P<mime>[^;,]*)(?P<params>(?:;[^;,]*)*?),(?P<payload>.*)$", re.DOTALL)
_INLINE_MARKDOWN = mistune.create_markdown(escape=False)


@dataclass
class _Run:
    text: str = ""
    image: Any = None
    width: int = 0
    height: int = 0


def _is_inline_math_img(tag: str) -> bool:
    soup = BeautifulSoup(tag, "html.parser")
    img = soup.find("img")
    if img is None:
        return False
    classes = img.get("class") or []
    return "math-img" in classes and "math-block" not in classes


def is_flattenable_math_line(line: str) -> bool:
    """Return True for a list-item line that mixes inline math images with text."""
    match = LIST_ITEM_PATTERN.match(line)
    if not match:
        return False
    parts = _IMG_TAG_RE.split(line[match.end() :])
    has_math = any(_is_inline_math_img(part) for part in parts[1::2])
    has_other = any(part.strip() for part in parts[0::2]) or any(
        not _is_inline_math_img(part) for part in parts[1::2]
    )
    return has_math and has_other


def _plain_text(fragment: str) -> str:
    """Render an inline markdown fragment and keep only its text."""
    if not fragment.strip():
        return " " if fragment else ""
    rendered = _INLINE_MARKDOWN(fragment.strip())
    text = " ".join(BeautifulSoup(rendered, "html.parser").get_text().split())
    lead = " " if fragment[:1].isspace() else ""
    trail = " " if fragment[-1:].isspace() else ""
    return f"{lead}{text}{trail}"


class MathLineFlattener:
    """Draw one list line (text runs plus images) onto a single PNG.

    Parameters
    ----------
    blob_store : BlobStore
        Where flattened PNGs are materialized.
    font_size : float, default 16.0
        Text size in CSS pixels.
    scale : float, default 1.0
        Device pixel ratio; the raster is ``scale`` times the display size.
    font_path : str, optional
        TrueType font to draw text with. Pillow's default font otherwise.
    svg_rasterizer : callable, optional
        Converts SVG images to rasters. Lines holding SVG images are left
        untouched when this is not provided.
    text_color : tuple, default opaque black
        RGBA text color.

    Raises
    ------
    DependencyError
        If Pillow is not installed.

    """

    def __init__(
        self,
        blob_store: BlobStore,
        *,
        font_size: float = 16.0,
        scale: float = 1.0,
        font_path: Optional[str] = None,
        svg_rasterizer: Optional[SvgRasterizer] = None,
        text_color: tuple[int, int, int, int] = (0, 0, 0, 255),
    ):
        self.blob_store = blob_store
        self.font_size = font_size
        self.scale = max(1.0, min(2.0, scale))
        self.font_path = font_path
        self.svg_rasterizer = svg_rasterizer
        self.text_color = text_color
        self._font = self._load_font()

    @requires_dependencies("math-line flattening", [("Pillow", "PIL", ">=10.1.0")])
    def _load_font(self) -> Any:
        from PIL import ImageFont

        size = max(1, round(self.font_size * self.scale))
        if self.font_path:
            return ImageFont.truetype(self.font_path, size)
        return ImageFont.load_default(size=size)

    def flatten_line(self, line: str) -> tuple[str, BlobHandle]:
        """Flatten ``line`` and return the rewritten line with its new blob.

        Raises
        ------
        RasterizationError
            If any image on the line cannot be decoded or drawn.

        """
        match = LIST_ITEM_PATTERN.match(line)
        if not match:
            raise RasterizationError("Not a list item line", line=line)
        prefix, body = line[: match.end()], line[match.end() :]

        try:
            runs = self._build_runs(body)
            png, width, height = self._draw(runs)
        except RasterizationError:
            raise
        except (OSError, ValueError) as exc:
            raise RasterizationError(f"Could not draw line: {exc}", line=line, original_error=exc) from exc

        handle = self.blob_store.create(png, "image/png")
        alt = "".join(run.text if run.image is None else "[math]" for run in runs).strip()
        markup = (
            f'<img class="{MATH_LINE_CLASS}" alt="{html.escape(alt)}" src="{handle.url}" '
            f'width="{width}" height="{height}" style="width:{width}px;height:{height}px;">'
        )
        return f"{prefix}{markup}", handle

    def _build_runs(self, body: str) -> list[_Run]:
        runs: list[_Run] = []
        for index, part in enumerate(_IMG_TAG_RE.split(body)):
            if index % 2 == 0:
                text = _plain_text(part)
                if text:
                    runs.append(_Run(text=text))
                continue
            img = BeautifulSoup(part, "html.parser").find("img")
            src = str(img.get("src") or "") if img is not None else ""
            try:
                width = math.ceil(float(img.get("width")))  # type: ignore[union-attr,arg-type]
                height = math.ceil(float(img.get("height")))  # type: ignore[union-attr,arg-type]
            except (TypeError, ValueError) as exc:
                raise RasterizationError(f"Image without a usable size: {part}", original_error=exc) from exc
            runs.append(_Run(image=self._decode_image(src, width, height), width=width, height=height))
        return runs

    def _decode_image(self, src: str, width: int, height: int) -> Any:
        from PIL import Image

        mime, payload = self._read_source(src)
        target = (max(1, round(width * self.scale)), max(1, round(height * self.scale)))
        if "svg" in mime:
            if self.svg_rasterizer is None:
                raise RasterizationError("No SVG rasterizer configured")
            raster = self.svg_rasterizer(payload.decode("utf-8"), *target)
            image = raster if isinstance(raster, Image.Image) else Image.open(io.BytesIO(raster))
        else:
            image = Image.open(io.BytesIO(payload))
        return image.convert("RGBA").resize(target)

    def _read_source(self, src: str) -> tuple[str, bytes]:
        data_url = _DATA_URL_RE.match(src)
        if data_url:
            payload = data_url.group("payload")
            try:
                if ";base64" in data_url.group("params"):
                    return data_url.group("mime"), base64.b64decode(payload)
                return data_url.group("mime"), unquote_to_bytes(payload)
            except (binascii.Error, ValueError) as exc:
                raise RasterizationError("Malformed data URL", original_error=exc) from exc
        stored = self.blob_store.get(src)
        if stored is None:
            raise RasterizationError(f"Cannot read image source {src[:40]}")
        return stored

    def _draw(self, runs: list[_Run]) -> tuple[bytes, int, int]:
        from PIL import Image, ImageDraw

        measure = ImageDraw.Draw(Image.new("RGBA", (1, 1)))
        _, top, _, bottom = self._font.getbbox("Ag")
        text_height = bottom - top
        widths = []
        for run in runs:
            if run.image is not None:
                widths.append(run.image.width)
            else:
                widths.append(math.ceil(measure.textlength(run.text, font=self._font)))
        images = [run.image for run in runs if run.image is not None]
        canvas_height = max([text_height] + [image.height for image in images])
        canvas_width = max(1, sum(widths))

        canvas = Image.new("RGBA", (canvas_width, canvas_height), (0, 0, 0, 0))
        draw = ImageDraw.Draw(canvas)
        x = 0
        for run, width in zip(runs, widths):
            if run.image is not None:
                canvas.paste(run.image, (x, (canvas_height - run.image.height) // 2), run.image)
            else:
                draw.text((x, (canvas_height - text_height) // 2 - top), run.text, font=self._font, fill=self.text_color)
            x += width

        buffer = io.BytesIO()
        canvas.save(buffer, format="PNG")
        return buffer.getvalue(), math.ceil(canvas_width / self.scale), math.ceil(canvas_height / self.scale)


async def flatten_math_lines(
    text: str, generation: Generation, flattener: MathLineFlattener
) -> Optional[ExtractionResult]:
    """Flatten every eligible list line of ``text``.

    Lines inside fences are skipped. A line that fails to rasterize keeps its
    original markup. Returns None, after revoking the blobs allocated here,
    when ``generation`` goes stale between lines.
    """
    lines = text.split("\n")
    allocated = BlobSet(flattener.blob_store)
    fence: Optional[FenceOpening] = None

    for index, line in enumerate(lines):
        if fence is not None:
            if is_fence_closing(line, fence.marker_char, fence.marker_len):
                fence = None
            continue
        fence = parse_fence_opening(line)
        if fence is not None or not is_flattenable_math_line(line):
            continue

        if not generation.is_current():
            allocated.release()
            return None
        try:
            lines[index], handle = flattener.flatten_line(line)
        except RasterizationError as exc:
            logger.warning("Could not flatten math line; keeping markup: %s", exc)
            continue
        allocated.add(handle)

        await next_frame()
        if not generation.is_current():
            allocated.release()
            return None

    return ExtractionResult(text="\n".join(lines), blob_handles=allocated.handles)

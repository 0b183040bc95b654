#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/options/render.py
"""Options for diagram/math extraction and the render orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field

from md2tree.constants import (
    DEFAULT_BASE_FONT_PX,
    DEFAULT_DIAGRAM_CLASS,
    DEFAULT_DIAGRAM_HEIGHT,
    DEFAULT_DIAGRAM_WIDTH,
    DEFAULT_MATH_HEIGHT,
    DEFAULT_MATH_WIDTH,
    DEFAULT_SETTLE_FRAMES,
    MAX_RASTER_SCALE,
    MIN_RASTER_SCALE,
)
from md2tree.exceptions import ValidationError
from md2tree.options.base import CloneFrozenMixin


@dataclass(frozen=True)
class RenderOptions(CloneFrozenMixin):
    """Configuration for the render pipeline.

    Parameters
    ----------
    default_diagram_width, default_diagram_height : int
        Pixel size used when a diagram renderer reports no usable size.
    default_math_width, default_math_height : int
        Pixel size used when a math SVG carries no usable size.
    base_font_px : float, default 16.0
        Font size that ``em``/``ex`` SVG units are resolved against.
    flatten_math_lines : bool, default False
        Rasterize list lines that mix text and inline math into one image.
    raster_scale : float, default 1.0
        Device pixel ratio for flattened lines, clamped to [1, 2].
    settle_frames : int, default 2
        Frame ticks to wait after the first visualization commit.
    diagram_class : str, default "diagram-img"
        Class for diagram ``<img>`` tags when the renderer supplies none.

    """

    default_diagram_width: int = field(
        default=DEFAULT_DIAGRAM_WIDTH,
        metadata={"help": "Fallback diagram width in pixels", "type": int, "importance": "advanced"},
    )
    default_diagram_height: int = field(
        default=DEFAULT_DIAGRAM_HEIGHT,
        metadata={"help": "Fallback diagram height in pixels", "type": int, "importance": "advanced"},
    )
    default_math_width: int = field(
        default=DEFAULT_MATH_WIDTH,
        metadata={"help": "Fallback math image width in pixels", "type": int, "importance": "advanced"},
    )
    default_math_height: int = field(
        default=DEFAULT_MATH_HEIGHT,
        metadata={"help": "Fallback math image height in pixels", "type": int, "importance": "advanced"},
    )
    base_font_px: float = field(
        default=DEFAULT_BASE_FONT_PX,
        metadata={"help": "Base font size for em/ex SVG units", "type": float, "importance": "advanced"},
    )
    flatten_math_lines: bool = field(
        default=False,
        metadata={"help": "Flatten list lines containing inline math into single images", "importance": "core"},
    )
    raster_scale: float = field(
        default=MIN_RASTER_SCALE,
        metadata={"help": "Device pixel ratio for flattened math lines", "type": float, "importance": "advanced"},
    )
    settle_frames: int = field(
        default=DEFAULT_SETTLE_FRAMES,
        metadata={"help": "Frame ticks to wait after the first commit", "type": int, "importance": "advanced"},
    )
    diagram_class: str = field(
        default=DEFAULT_DIAGRAM_CLASS,
        metadata={"help": "Default class attribute for diagram images", "importance": "advanced"},
    )

    def __post_init__(self) -> None:
        """Validate sizes and clamp the raster scale.

        Raises
        ------
        ValidationError
            If any size or frame count is not positive.

        """
        for name in ("default_diagram_width", "default_diagram_height", "default_math_width", "default_math_height"):
            value = getattr(self, name)
            if value <= 0:
                raise ValidationError(f"{name} must be positive, got {value}", parameter_name=name, parameter_value=value)
        if self.base_font_px <= 0:
            raise ValidationError(
                f"base_font_px must be positive, got {self.base_font_px}",
                parameter_name="base_font_px",
                parameter_value=self.base_font_px,
            )
        if self.settle_frames < 0:
            raise ValidationError(
                f"settle_frames must not be negative, got {self.settle_frames}",
                parameter_name="settle_frames",
                parameter_value=self.settle_frames,
            )
        object.__setattr__(self, "raster_scale", max(MIN_RASTER_SCALE, min(MAX_RASTER_SCALE, float(self.raster_scale))))

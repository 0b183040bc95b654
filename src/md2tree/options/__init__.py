#  Copyright (c) 2025 Tom Villani, Ph.D.
"""Configuration options for md2tree.

Options are frozen dataclasses. Use ``create_updated`` to derive a modified
copy rather than mutating an instance.
"""

from __future__ import annotations

from md2tree.options.base import CloneFrozenMixin
from md2tree.options.normalize import NormalizeOptions
from md2tree.options.render import RenderOptions

__all__ = ["CloneFrozenMixin", "NormalizeOptions", "RenderOptions"]

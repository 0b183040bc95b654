#  Copyright (c) 2025 Tom Villani, Ph.D.
"""Line-oriented markdown analysis: fences, list context and normalization."""

from md2tree.core.fence_lang import normalize_fence_lang
from md2tree.core.fences import (
    FenceBlock,
    FenceOpening,
    is_fence_closing,
    normalize_newlines,
    parse_fence_opening,
    scan_fences,
    unwrap_container_fence,
)
from md2tree.core.list_context import (
    ListContext,
    append_inline_to_last_list_item,
    compute_safe_indent,
    get_list_context,
    splice_block_markup,
)
from md2tree.core.normalize import (
    HeadingState,
    NormalizerState,
    StructuralNormalizer,
    convert_setext_headings,
    normalize_markdown,
)

__all__ = [
    "FenceBlock",
    "FenceOpening",
    "HeadingState",
    "ListContext",
    "NormalizerState",
    "StructuralNormalizer",
    "append_inline_to_last_list_item",
    "compute_safe_indent",
    "convert_setext_headings",
    "get_list_context",
    "is_fence_closing",
    "normalize_fence_lang",
    "normalize_markdown",
    "normalize_newlines",
    "parse_fence_opening",
    "scan_fences",
    "splice_block_markup",
    "unwrap_container_fence",
]

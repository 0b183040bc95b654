#  Copyright (c) 2025 Tom Villani, Ph.D.
"""Constants and default values for md2tree.

This module centralizes hardcoded values, patterns and default configuration
constants used across the normalizer and the render pipeline.

Constants are organized by category:
1. Type Definitions - Literal types and type aliases
2. Structural Normalization - heading levels and line patterns
3. Rendering - default image sizes and class names
4. Configuration - config file discovery
"""

from __future__ import annotations

import re
from typing import Literal

# =============================================================================
# Type Definitions
# =============================================================================

FenceMarkerChar = Literal["`", "~"]
RenderStatus = Literal["committed", "cancelled", "skipped"]

# =============================================================================
# Structural Normalization
# =============================================================================

MIN_HEADING_LEVEL = 1
MAX_HEADING_LEVEL = 6
DEFAULT_INITIAL_HEADING_LEVEL = 3

# Indent at which CommonMark turns a line into an indented code block
INDENTED_CODE_THRESHOLD = 4

MIN_FENCE_LENGTH = 3
CONTAINER_FENCE_LANGUAGES = frozenset({"markdown", "md"})

DEFAULT_FENCE_LANGUAGE_ALIASES: dict[str, str] = {
    "js": "javascript",
    "ts": "typescript",
    "py": "python",
    "sh": "bash",
    "shell": "bash",
    "yml": "yaml",
}

LIST_ITEM_PATTERN = re.compile(r"^(?P<indent>[ \t]*)(?P<marker>[-*+]|\d{1,9}[.)])(?P<gap>[ \t]+)")
ATX_HEADING_PATTERN = re.compile(r"^ {0,3}(?P<hashes>#{1,6})(?:[ \t]+|$)")
SETEXT_UNDERLINE_PATTERN = re.compile(r"^ {0,3}(?P<underline>=+|-+)[ \t]*$")
HORIZONTAL_RULE_PATTERN = re.compile(r"^[ \t]*(?:-{3,}|\*{3,}|_{3,})[ \t]*$")
TABLE_LINE_PATTERN = re.compile(r"^[ \t]*\|")
BLOCKQUOTE_LINE_PATTERN = re.compile(r"^[ \t]*>")
HTML_BLOCK_LINE_PATTERN = re.compile(r"^[ \t]*<")
MATH_BLOCK_DELIMITER = "$$"

# =============================================================================
# Rendering
# =============================================================================

DEFAULT_DIAGRAM_WIDTH = 480
DEFAULT_DIAGRAM_HEIGHT = 240
DEFAULT_MATH_WIDTH = 120
DEFAULT_MATH_HEIGHT = 40
DEFAULT_BASE_FONT_PX = 16.0
DEFAULT_SETTLE_FRAMES = 2

MIN_RASTER_SCALE = 1.0
MAX_RASTER_SCALE = 2.0

DEFAULT_DIAGRAM_CLASS = "diagram-img"
DIAGRAM_WRAP_CLASS = "diagram-wrap"
MATH_INLINE_CLASS = "math-img"
MATH_BLOCK_CLASS = "math-img math-block"
MATH_LINE_CLASS = "math-line-img"

BLOB_URL_PREFIX = "blob:md2tree/"
BLOB_SRC_PATTERN = re.compile(r"""src=['"](blob:[^'"]+)['"]""")

# Inline "$...$" spans that look like prices or numeric ranges rather than TeX
_AMOUNT = r"\d[\d,]*(?:\.\d+)?(?:\s*(?:k|m|b|bn|mm|t))?(?:\s*(?:usd|eur|gbp|cad|aud|jpy|inr))?"
CURRENCY_LIKE_PATTERN = re.compile(rf"^{_AMOUNT}(?:\s*(?:to|–|-)\s*(?:{_AMOUNT})?)?$", re.IGNORECASE)
LATEX_TOKEN_PATTERN = re.compile(r"[\\^_{}=]")
LETTER_PATTERN = re.compile(r"[A-Za-z]")

# =============================================================================
# Configuration
# =============================================================================

CONFIG_BASENAME = ".md2tree"
CONFIG_EXTENSIONS = (".toml", ".yaml", ".yml", ".json")
PYPROJECT_TOOL_SECTION = "md2tree"
ENV_LOG_LEVEL = "MD2TREE_LOG_LEVEL"
ENV_CONFIG_PATH = "MD2TREE_CONFIG"
DEFAULT_LOG_LEVEL = "WARNING"

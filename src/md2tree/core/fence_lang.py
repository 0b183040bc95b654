#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/core/fence_lang.py
"""Fence language alias normalization.

Syntax highlighters and diagram renderers key on canonical language names, so
``py`` becomes ``python`` and ``ts`` becomes ``typescript`` on fence openings.
"""

from __future__ import annotations

from typing import Mapping, Optional

from md2tree.constants import DEFAULT_FENCE_LANGUAGE_ALIASES
from md2tree.core.fences import is_fence_closing, parse_fence_opening


def normalize_fence_lang(text: str, aliases: Optional[Mapping[str, str]] = None) -> str:
    """Rewrite fence-opening language tokens to canonical names.

    Parameters
    ----------
    text : str
        Markdown with LF line endings.
    aliases : mapping, optional
        Lower-case alias to canonical name. Defaults to the built-in table.

    Returns
    -------
    str
        The text with each fence language lower-cased and de-aliased. Fence
        content, inline code and any info tokens after the language are kept.

    """
    table = {k.lower(): v for k, v in (aliases if aliases is not None else DEFAULT_FENCE_LANGUAGE_ALIASES).items()}
    lines = text.split("\n")
    open_fence = None

    for index, line in enumerate(lines):
        if open_fence is not None:
            if is_fence_closing(line, open_fence.marker_char, open_fence.marker_len):
                open_fence = None
            continue

        opening = parse_fence_opening(line)
        if opening is None:
            continue
        open_fence = opening
        if not opening.lang:
            continue

        tokens = opening.info.split(None, 1)
        canonical = table.get(opening.lang, opening.lang)
        marker = opening.marker_char * opening.marker_len
        rest = f" {tokens[1]}" if len(tokens) > 1 else ""
        lines[index] = f"{opening.indent}{marker}{canonical}{rest}"

    return "\n".join(lines)

#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/options/normalize.py
"""Options for the structural normalizer."""

from __future__ import annotations

from dataclasses import dataclass, field

from md2tree.constants import (
    DEFAULT_FENCE_LANGUAGE_ALIASES,
    DEFAULT_INITIAL_HEADING_LEVEL,
    MAX_HEADING_LEVEL,
    MIN_HEADING_LEVEL,
)
from md2tree.exceptions import ValidationError
from md2tree.options.base import CloneFrozenMixin


@dataclass(frozen=True)
class NormalizeOptions(CloneFrozenMixin):
    """Configuration for turning raw markdown into canonical heading/list form.

    Parameters
    ----------
    unwrap_container : bool, default True
        Replace a document that is one ``markdown``/``md`` fence with its contents.
    convert_setext : bool, default True
        Rewrite setext headings (``Title`` over ``===``/``---``) as ATX headings.
    tighten_lists : bool, default True
        Drop blank lines between list items and after fences that close inside a list.
    initial_heading_level : int, default 3
        Heading level assumed before the first literal heading. Freeform text is
        promoted one level below the last literal heading.
    normalize_fence_languages : bool, default True
        Map fence language aliases (``py``, ``ts``...) to canonical names.
    fence_language_aliases : dict, default common aliases
        Alias table used when ``normalize_fence_languages`` is enabled.

    """

    unwrap_container: bool = field(
        default=True,
        metadata={"help": "Unwrap a document that is a single markdown/md fence", "importance": "core"},
    )
    convert_setext: bool = field(
        default=True,
        metadata={"help": "Convert setext headings to ATX headings", "importance": "core"},
    )
    tighten_lists: bool = field(
        default=True,
        metadata={"help": "Remove blank lines between list items", "importance": "core"},
    )
    initial_heading_level: int = field(
        default=DEFAULT_INITIAL_HEADING_LEVEL,
        metadata={"help": "Heading level assumed before the first literal heading", "importance": "advanced"},
    )
    normalize_fence_languages: bool = field(
        default=True,
        metadata={"help": "Normalize fence language aliases such as py and ts", "importance": "advanced"},
    )
    fence_language_aliases: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_FENCE_LANGUAGE_ALIASES),
        metadata={"help": "Alias table for fence language normalization", "importance": "advanced"},
    )

    def __post_init__(self) -> None:
        """Validate the heading level range.

        Raises
        ------
        ValidationError
            If ``initial_heading_level`` is outside 1..6.

        """
        if not MIN_HEADING_LEVEL <= self.initial_heading_level <= MAX_HEADING_LEVEL:
            raise ValidationError(
                f"initial_heading_level must be between {MIN_HEADING_LEVEL} and {MAX_HEADING_LEVEL}, "
                f"got {self.initial_heading_level}",
                parameter_name="initial_heading_level",
                parameter_value=self.initial_heading_level,
            )

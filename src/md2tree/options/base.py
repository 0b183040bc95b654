#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/options/base.py
"""Base classes for md2tree options."""

from __future__ import annotations

import sys
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self

from md2tree.exceptions import ValidationError


@dataclass(frozen=True)
class CloneFrozenMixin:
    """Mixin providing frozen dataclass cloning capabilities."""

    def create_updated(self, **kwargs: Any) -> Self:
        """Create a new instance with updated field values.

        Parameters
        ----------
        **kwargs : Any
            Field names and their new values

        Returns
        -------
        Self
            New instance with specified fields updated

        """
        return replace(self, **kwargs)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any] | None) -> Self:
        """Build an instance from a plain mapping such as a config file section.

        Keys may use dashes or underscores. Unknown keys are rejected.

        Raises
        ------
        ValidationError
            If the mapping holds a key that is not an option field.

        """
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in (values or {}).items():
            name = str(key).replace("-", "_")
            if name not in known:
                raise ValidationError(
                    f"Unknown option '{key}' for {cls.__name__}", parameter_name=str(key), parameter_value=value
                )
            kwargs[name] = value
        return cls(**kwargs)

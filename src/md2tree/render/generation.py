#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/render/generation.py
"""Generation tokens for cooperative cancellation.

Every render attempt takes the next token from a :class:`GenerationCounter`.
The attempt stays current only while its token equals the counter's pending
value; starting a newer attempt (or invalidating the counter) makes every
older one stale. Stale attempts notice by polling :meth:`Generation.is_current`
after each suspension point and then stop on their own.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class Generation:
    """One render attempt's token and its staleness check.

    Parameters
    ----------
    token : int
        Value of the counter when the attempt started.
    check : callable
        Returns True while ``token`` is still the pending value.

    """

    token: int
    check: Callable[[int], bool]

    def is_current(self) -> bool:
        """Return True while no newer attempt has started."""
        return self.check(self.token)

    @classmethod
    def always_current(cls, token: int = 0) -> "Generation":
        """Return a generation that never goes stale, for one-off extraction calls."""
        return cls(token, lambda _token: True)


class GenerationCounter:
    """The single pending counter owned by one orchestrator."""

    def __init__(self) -> None:
        self._pending = 0

    @property
    def pending(self) -> int:
        return self._pending

    def next(self) -> Generation:
        """Start a new attempt, invalidating every older one."""
        self._pending += 1
        return Generation(self._pending, self._is_pending)

    def invalidate(self) -> None:
        """Make every issued generation stale without starting a new attempt."""
        self._pending += 1

    def _is_pending(self, token: int) -> bool:
        return token == self._pending

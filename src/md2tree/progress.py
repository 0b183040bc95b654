#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/progress.py
"""Progress callback system for the render pipeline.

The RenderOrchestrator reports each stage of a render attempt to an optional
callback so embedders can drive spinners or status bars while slow renderers
are working.

Examples
--------
    >>> from md2tree.progress import ProgressEvent
    >>>
    >>> def on_progress(event: ProgressEvent) -> None:
    ...     print(event.metadata.get("stage"), event.message)
    >>>
    >>> orchestrator = RenderOrchestrator(visualization, progress_callback=on_progress)

"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Literal

EventType = Literal["started", "stage", "cancelled", "finished", "error"]


@dataclass
class ProgressEvent:
    """Progress event for one render attempt.

    Parameters
    ----------
    event_type : EventType
        Type of progress event:

        - "started": a render attempt obtained its generation token
        - "stage": the attempt entered a pipeline stage (``metadata["stage"]``)
        - "cancelled": the attempt went stale and was discarded
        - "finished": the attempt committed to the visualization
        - "error": the tree transform failed (``metadata["error"]``)

    message : str
        Human-readable description of the event
    current : int, default 0
        Index of the current stage
    total : int, default 0
        Number of stages in the pipeline
    metadata : dict, default empty
        Always carries ``"token"``; stage events carry ``"stage"``.

    """

    event_type: EventType
    message: str
    current: int = 0
    total: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Return human-readable string representation."""
        progress = f"({self.current}/{self.total})" if self.total > 0 else ""
        return f"[{self.event_type.upper()}] {self.message} {progress}".strip()


ProgressCallback = Callable[[ProgressEvent], None]
"""Type alias for progress callback functions.

Callbacks should not raise; exceptions are logged and ignored.
"""

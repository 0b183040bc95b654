#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/render/frames.py
"""Frame ticks and image preloading for the commit stage."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Optional

from md2tree.render.generation import Generation

logger = logging.getLogger(__name__)

FrameWaiter = Callable[[int], Awaitable[None]]
ImageLoader = Callable[[str], Awaitable[None]]


async def next_frame() -> None:
    """Yield control to the event loop once."""
    await asyncio.sleep(0)


async def next_frames(count: int) -> None:
    """Yield control to the event loop ``count`` times."""
    for _ in range(count):
        await next_frame()


async def preload_images(urls: Iterable[str], generation: Generation, loader: Optional[ImageLoader] = None) -> None:
    """Load each image URL in order so intrinsic sizes are known before commit.

    Stops as soon as ``generation`` goes stale. Loader failures are logged and
    skipped; a missing image must not block the render.
    """
    if loader is None:
        return
    for url in urls:
        if not generation.is_current():
            return
        try:
            await loader(url)
        except Exception as exc:
            logger.debug("Preloading %s failed: %s", url, exc)

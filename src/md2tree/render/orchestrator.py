#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/render/orchestrator.py
"""Render orchestration with last-call-wins semantics.

:class:`RenderOrchestrator` owns the pending generation counter and the
committed blob set of one application session. Each :meth:`~RenderOrchestrator.render`
call runs the pipeline

    Idle -> Normalizing -> MathExtracting -> DiagramExtracting
         -> Transforming -> Committing -> Idle

and polls its generation after every suspension point. A call that goes stale
releases the blobs it allocated and returns without touching the
visualization, so only the newest call ever commits.

Examples
--------
    >>> orchestrator = RenderOrchestrator(visualization, diagram_renderers={"mermaid": renderer})
    >>> outcome = await orchestrator.render(markdown_text)
    >>> outcome.status
    'committed'

"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Union, runtime_checkable

from md2tree.constants import RenderStatus
from md2tree.core.fence_lang import normalize_fence_lang
from md2tree.core.normalize import StructuralNormalizer
from md2tree.exceptions import TransformError, ValidationError
from md2tree.options.normalize import NormalizeOptions
from md2tree.options.render import RenderOptions
from md2tree.progress import ProgressCallback, ProgressEvent
from md2tree.render.blobs import BlobSet, BlobStore, CommittedBlobs, collect_blob_urls
from md2tree.render.diagrams import extract_diagrams
from md2tree.render.frames import FrameWaiter, ImageLoader, next_frames, preload_images
from md2tree.render.generation import Generation, GenerationCounter
from md2tree.render.layout import unwrap_foreign_object_paragraphs
from md2tree.render.math import extract_math
from md2tree.render.math_lines import MathLineFlattener, SvgRasterizer
from md2tree.render.renderers import (
    DiagramKind,
    DiagramRenderer,
    ExtractionResult,
    MathRenderer,
    RendererRegistry,
    maybe_await,
)
from md2tree.utils.decorators import debug_timer

logger = logging.getLogger(__name__)


class PipelineStage(Enum):
    """Stages of one render attempt."""

    IDLE = "idle"
    NORMALIZING = "normalizing"
    MATH_EXTRACTING = "math_extracting"
    DIAGRAM_EXTRACTING = "diagram_extracting"
    TRANSFORMING = "transforming"
    COMMITTING = "committing"


_ACTIVE_STAGES = [stage for stage in PipelineStage if stage is not PipelineStage.IDLE]


class Visualization(Protocol):
    """The tree view a render commits to."""

    def set_data(self, root: Any) -> Union[None, Awaitable[None]]: ...

    def fit(self) -> None: ...


@runtime_checkable
class LayoutHost(Protocol):
    """A visualization whose rendered markup can be read back and patched."""

    def get_markup(self) -> str: ...

    def replace_markup(self, markup: str) -> None: ...


class TreeTransformer(Protocol):
    """Turns canonical markdown into an object exposing the tree as ``root``."""

    def transform(self, markdown: str) -> Any: ...


@dataclass(frozen=True)
class RenderOutcome:
    """What a render call did.

    Parameters
    ----------
    status : {"committed", "cancelled", "skipped"}
        ``committed`` when the visualization was updated, ``cancelled`` when a
        newer call superseded this one first, ``skipped`` for blank input.
    token : int
        Generation token of the call (0 for skipped calls).
    stage : PipelineStage
        Last stage entered.
    text : str, optional
        Final markdown handed to the transform.
    root : Any, optional
        Tree committed to the visualization.
    blob_count : int
        Blobs adopted by the committed set.

    """

    status: RenderStatus
    token: int
    stage: PipelineStage
    text: Optional[str] = None
    root: Any = None
    blob_count: int = 0

    @property
    def committed(self) -> bool:
        return self.status == "committed"


@dataclass(frozen=True)
class SessionSeams:
    """The two callbacks a storage layer uses to read and load content."""

    get_content: Callable[[], str]
    load_content: Callable[[str], Awaitable[RenderOutcome]]


class RenderOrchestrator:
    """Drive normalization, extraction, transform and commit for one session.

    Parameters
    ----------
    visualization : Visualization
        Receives the committed tree. If it also implements :class:`LayoutHost`
        its markup is patched after each commit.
    transformer : TreeTransformer, optional
        Tree-transform collaborator. Defaults to :class:`~md2tree.tree.MarkdownTreeTransformer`.
    registry : RendererRegistry, optional
        Diagram renderers. Mutually exclusive with ``diagram_renderers``.
    diagram_renderers : mapping, optional
        Kind (or alias) to renderer, used to build a registry.
    math_renderer : MathRenderer, optional
        TeX renderer. Math extraction is a passthrough without one.
    normalize_options, render_options : optional
        Pipeline configuration.
    blob_store : BlobStore, optional
        Backing store for rendered images.
    frame_waiter : callable, default next_frames
        Coroutine function waiting ``n`` rendering frames.
    image_loader : callable, optional
        Coroutine function preloading one image URL before commit.
    math_line_flattener : MathLineFlattener, optional
        Used when ``render_options.flatten_math_lines`` is set. Created on
        demand from ``svg_rasterizer`` when not given.
    svg_rasterizer : callable, optional
        Turns the SVG math images into rasters for the flattener the
        orchestrator creates. Required when ``render_options.flatten_math_lines``
        is set and no ``math_line_flattener`` is given.
    progress_callback : ProgressCallback, optional
        Receives :class:`~md2tree.progress.ProgressEvent` updates.
    on_first_render : callable, optional
        Called once, after the first successful commit.

    """

    def __init__(
        self,
        visualization: Visualization,
        *,
        transformer: Optional[TreeTransformer] = None,
        registry: Optional[RendererRegistry] = None,
        diagram_renderers: Optional[Mapping[Union[DiagramKind, str], DiagramRenderer]] = None,
        math_renderer: Optional[MathRenderer] = None,
        normalize_options: Optional[NormalizeOptions] = None,
        render_options: Optional[RenderOptions] = None,
        blob_store: Optional[BlobStore] = None,
        frame_waiter: FrameWaiter = next_frames,
        image_loader: Optional[ImageLoader] = None,
        math_line_flattener: Optional[MathLineFlattener] = None,
        svg_rasterizer: Optional[SvgRasterizer] = None,
        progress_callback: Optional[ProgressCallback] = None,
        on_first_render: Optional[Callable[[], Any]] = None,
    ):
        if registry is not None and diagram_renderers is not None:
            raise ValueError("Pass either registry or diagram_renderers, not both")
        if transformer is None:
            from md2tree.tree import MarkdownTreeTransformer

            transformer = MarkdownTreeTransformer()

        self.visualization = visualization
        self.transformer = transformer
        self.registry = registry if registry is not None else RendererRegistry(diagram_renderers)
        self.math_renderer = math_renderer
        self.normalize_options = normalize_options or NormalizeOptions()
        self.render_options = render_options or RenderOptions()
        self.blob_store = blob_store if blob_store is not None else BlobStore()
        self.frame_waiter = frame_waiter
        self.image_loader = image_loader
        self.progress_callback = progress_callback
        self.on_first_render = on_first_render

        self._normalizer = StructuralNormalizer(self.normalize_options)
        self._counter = GenerationCounter()
        self._committed = CommittedBlobs(self.blob_store)
        self._flattener = math_line_flattener
        if self._flattener is None and self.render_options.flatten_math_lines:
            # Math images are SVG data URLs, which Pillow cannot draw
            if svg_rasterizer is None:
                raise ValidationError(
                    "flatten_math_lines requires an svg_rasterizer or a math_line_flattener",
                    parameter_name="svg_rasterizer",
                )
            self._flattener = MathLineFlattener(
                self.blob_store,
                font_size=self.render_options.base_font_px,
                scale=self.render_options.raster_scale,
                svg_rasterizer=svg_rasterizer,
            )
        self._content = ""
        self._has_rendered = False
        self._active_token = 0
        self.stage = PipelineStage.IDLE

    @property
    def committed_blobs(self) -> BlobSet:
        """Blob set of the last committed render."""
        return self._committed.current

    @property
    def content(self) -> str:
        """Raw text of the most recent render request."""
        return self._content

    def invalidate(self) -> None:
        """Make every in-flight render stale."""
        self._counter.invalidate()

    def clear(self) -> int:
        """Cancel in-flight renders and revoke the committed blobs.

        Returns
        -------
        int
            Number of blobs revoked.

        """
        self.invalidate()
        return self._committed.clear()

    def session_seams(self) -> SessionSeams:
        """Return the read and load callbacks for a storage layer."""
        return SessionSeams(get_content=lambda: self._content, load_content=self.render)

    async def render(self, md_text: str) -> RenderOutcome:
        """Render ``md_text`` and commit it unless a newer call supersedes it.

        Returns
        -------
        RenderOutcome
            Status of this call.

        Raises
        ------
        TransformError
            If the tree transform fails. The previously committed tree and
            blobs are left intact.

        """
        self._content = md_text or ""
        if not self._content.strip():
            logger.debug("Skipping render of blank input")
            return RenderOutcome(status="skipped", token=0, stage=PipelineStage.IDLE)

        generation = self._counter.next()
        self._active_token = generation.token
        try:
            return await self._run_pipeline(generation)
        finally:
            # A newer call owns the stage once it has started
            if self._active_token == generation.token:
                self.stage = PipelineStage.IDLE

    async def _run_pipeline(self, generation: Generation) -> RenderOutcome:
        attempt = BlobSet(self.blob_store)
        self._emit_progress("started", f"Render {generation.token} started", generation)

        self._enter(PipelineStage.NORMALIZING, generation)
        with debug_timer(logger, "Normalizing"):
            text = self._normalizer.normalize(self._content)
            if self.normalize_options.normalize_fence_languages:
                text = normalize_fence_lang(text, self.normalize_options.fence_language_aliases)

        self._enter(PipelineStage.MATH_EXTRACTING, generation)
        with debug_timer(logger, "Math extraction"):
            math_result = await extract_math(
                text,
                generation,
                renderer=self.math_renderer,
                options=self.render_options,
                flattener=self._flattener if self.render_options.flatten_math_lines else None,
            )
        if math_result is None or not generation.is_current():
            return self._cancel(attempt, generation, PipelineStage.MATH_EXTRACTING, math_result)
        attempt.extend(math_result.blob_handles)

        self._enter(PipelineStage.DIAGRAM_EXTRACTING, generation)
        with debug_timer(logger, "Diagram extraction"):
            diagram_result = await extract_diagrams(
                math_result.text,
                generation,
                registry=self.registry,
                blob_store=self.blob_store,
                options=self.render_options,
            )
        if diagram_result is None or not generation.is_current():
            return self._cancel(attempt, generation, PipelineStage.DIAGRAM_EXTRACTING, diagram_result)
        attempt.extend(diagram_result.blob_handles)
        text = diagram_result.text

        self._enter(PipelineStage.TRANSFORMING, generation)
        try:
            with debug_timer(logger, "Tree transform"):
                root = self.transformer.transform(text).root
        except Exception as exc:
            attempt.release()
            name = getattr(self.transformer, "name", type(self.transformer).__name__)
            logger.error("Tree transform %s failed: %s", name, exc)
            self._emit_progress("error", f"Tree transform failed: {exc}", generation, error=str(exc))
            raise TransformError(f"Tree transform failed: {exc}", transform_name=name, original_error=exc) from exc

        urls = collect_blob_urls(text)
        await preload_images(urls, generation, self.image_loader)
        if not generation.is_current():
            return self._cancel(attempt, generation, PipelineStage.TRANSFORMING)

        self._enter(PipelineStage.COMMITTING, generation)
        blob_count = len(attempt)
        self._committed.commit_or_release(attempt, True)
        outcome = RenderOutcome(
            status="committed",
            token=generation.token,
            stage=PipelineStage.COMMITTING,
            text=text,
            root=root,
            blob_count=blob_count,
        )

        # From here on the blobs belong to the committed set; a newer call revokes them on its commit
        await maybe_await(self.visualization.set_data(root))
        if not generation.is_current():
            return outcome
        await self.frame_waiter(self.render_options.settle_frames)
        if not generation.is_current():
            return outcome
        self._apply_layout_fixes()

        has_images = bool(urls) or "<img" in text
        if has_images:
            # Image intrinsic sizes are only reliable after the first attach
            await maybe_await(self.visualization.set_data(root))
            await self.frame_waiter(1)
            if not generation.is_current():
                return outcome
            self._apply_layout_fixes()

        self.visualization.fit()
        self.stage = PipelineStage.IDLE
        if not self._has_rendered:
            self._has_rendered = True
            if self.on_first_render is not None:
                result = self.on_first_render()
                if inspect.isawaitable(result):
                    await result
        self._emit_progress("finished", f"Render {generation.token} committed", generation, blobs=blob_count)
        return outcome

    def _enter(self, stage: PipelineStage, generation: Generation) -> None:
        self.stage = stage
        self._emit_progress(
            "stage",
            stage.value.replace("_", " ").capitalize(),
            generation,
            current=_ACTIVE_STAGES.index(stage) + 1,
            stage=stage.value,
        )

    def _cancel(
        self,
        attempt: BlobSet,
        generation: Generation,
        stage: PipelineStage,
        partial: Optional[ExtractionResult] = None,
    ) -> RenderOutcome:
        if partial is not None:
            attempt.extend(partial.blob_handles)
        self._committed.commit_or_release(attempt, False)
        logger.debug("Render %d went stale during %s", generation.token, stage.value)
        self._emit_progress("cancelled", f"Render {generation.token} superseded", generation)
        return RenderOutcome(status="cancelled", token=generation.token, stage=stage)

    def _apply_layout_fixes(self) -> None:
        if not isinstance(self.visualization, LayoutHost):
            return
        markup = self.visualization.get_markup()
        fixed = unwrap_foreign_object_paragraphs(markup)
        if fixed != markup:
            self.visualization.replace_markup(fixed)

    def _emit_progress(
        self, event_type: Any, message: str, generation: Generation, current: int = 0, **metadata: Any
    ) -> None:
        """Send a progress event, logging and ignoring callback errors."""
        if self.progress_callback is None:
            return
        event = ProgressEvent(
            event_type=event_type,
            message=message,
            current=current,
            total=len(_ACTIVE_STAGES),
            metadata={"token": generation.token, **metadata},
        )
        try:
            self.progress_callback(event)
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")

#  Copyright (c) 2025 Tom Villani, Ph.D.
"""Async render pipeline: diagram and math extraction, blobs and orchestration."""

from md2tree.render.blobs import BlobHandle, BlobSet, BlobStore, CommittedBlobs, collect_blob_urls, revoke_blobs
from md2tree.render.diagrams import build_diagram_markup, extract_diagrams
from md2tree.render.frames import next_frame, next_frames, preload_images
from md2tree.render.generation import Generation, GenerationCounter
from md2tree.render.layout import unwrap_foreign_object_paragraphs
from md2tree.render.math import build_math_markup, extract_math, should_render_inline_math
from md2tree.render.math_lines import MathLineFlattener, flatten_math_lines, is_flattenable_math_line
from md2tree.render.orchestrator import (
    LayoutHost,
    PipelineStage,
    RenderOrchestrator,
    RenderOutcome,
    SessionSeams,
    TreeTransformer,
    Visualization,
)
from md2tree.render.renderers import (
    DIAGRAM_ALIASES,
    DiagramKind,
    DiagramRenderer,
    ExtractionResult,
    MathRenderer,
    RenderContext,
    RendererRegistry,
    RenderResult,
    resolve_diagram_kind,
)

__all__ = [
    "DIAGRAM_ALIASES",
    "BlobHandle",
    "BlobSet",
    "BlobStore",
    "CommittedBlobs",
    "DiagramKind",
    "DiagramRenderer",
    "ExtractionResult",
    "Generation",
    "GenerationCounter",
    "LayoutHost",
    "MathLineFlattener",
    "MathRenderer",
    "PipelineStage",
    "RenderContext",
    "RenderOrchestrator",
    "RenderOutcome",
    "RenderResult",
    "RendererRegistry",
    "SessionSeams",
    "TreeTransformer",
    "Visualization",
    "build_diagram_markup",
    "build_math_markup",
    "collect_blob_urls",
    "extract_diagrams",
    "extract_math",
    "flatten_math_lines",
    "is_flattenable_math_line",
    "next_frame",
    "next_frames",
    "preload_images",
    "revoke_blobs",
    "should_render_inline_math",
    "unwrap_foreign_object_paragraphs",
]

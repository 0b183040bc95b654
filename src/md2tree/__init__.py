#  Copyright (c) 2025 Tom Villani, Ph.D.
"""md2tree - turn loosely structured markdown into a renderable tree.

md2tree rewrites arbitrary markdown into a canonical heading-and-list
hierarchy, replaces diagram fences and TeX math with pre-rendered images, and
drives a tree visualization through an async pipeline where the most recent
render request always wins.

Key Features
------------
- Structural normalization: freeform paragraphs become headings, lists are
  tightened, fences are re-indented under their list items
- Fence and list-context scanning shared by every stage
- Diagram (mermaid, dot, wavedrom, vega-lite) and math extraction through
  pluggable renderers
- Generation tokens and commit-or-release blob ownership for cancellation
- A mistune-based default tree transform and a small CLI

Examples
--------
Normalizing text:

    >>> from md2tree import normalize_markdown
    >>> normalize_markdown("# Root\\nFreeform paragraph\\n")
    '# Root\\n## Freeform paragraph\\n'

Driving a visualization:

    >>> from md2tree import RenderOrchestrator
    >>> orchestrator = RenderOrchestrator(view, diagram_renderers={"mermaid": mermaid})
    >>> outcome = await orchestrator.render(text)

"""

from md2tree.config import Md2TreeOptions, load_options
from md2tree.core import (
    FenceBlock,
    ListContext,
    StructuralNormalizer,
    compute_safe_indent,
    get_list_context,
    normalize_fence_lang,
    normalize_markdown,
    scan_fences,
    unwrap_container_fence,
)
from md2tree.exceptions import (
    ConfigError,
    DependencyError,
    Md2TreeError,
    RasterizationError,
    RendererUnavailableError,
    RenderingError,
    TransformError,
    ValidationError,
)
from md2tree.options import NormalizeOptions, RenderOptions
from md2tree.progress import ProgressCallback, ProgressEvent
from md2tree.render import (
    BlobHandle,
    BlobStore,
    DiagramKind,
    Generation,
    GenerationCounter,
    RenderContext,
    RendererRegistry,
    RenderOrchestrator,
    RenderOutcome,
    RenderResult,
    SessionSeams,
    extract_diagrams,
    extract_math,
    should_render_inline_math,
)
from md2tree.tree import MarkdownTreeTransformer, TransformResult, TreeNode

__version__ = "0.1.0"

__all__ = [
    "BlobHandle",
    "BlobStore",
    "ConfigError",
    "DependencyError",
    "DiagramKind",
    "FenceBlock",
    "Generation",
    "GenerationCounter",
    "ListContext",
    "MarkdownTreeTransformer",
    "Md2TreeError",
    "Md2TreeOptions",
    "NormalizeOptions",
    "ProgressCallback",
    "ProgressEvent",
    "RasterizationError",
    "RenderContext",
    "RenderOptions",
    "RenderOrchestrator",
    "RenderOutcome",
    "RenderResult",
    "RendererRegistry",
    "RendererUnavailableError",
    "RenderingError",
    "SessionSeams",
    "StructuralNormalizer",
    "TransformError",
    "TransformResult",
    "TreeNode",
    "ValidationError",
    "__version__",
    "compute_safe_indent",
    "extract_diagrams",
    "extract_math",
    "get_list_context",
    "load_options",
    "normalize_fence_lang",
    "normalize_markdown",
    "scan_fences",
    "unwrap_container_fence",
]

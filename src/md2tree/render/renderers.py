#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/render/renderers.py
"""Rendering capabilities for diagrams and math.

Concrete renderers live outside md2tree. A diagram renderer turns fence
content into a :class:`RenderResult`; a math renderer turns a TeX expression
into SVG markup. Either may be synchronous or return an awaitable, and either
may raise.

Diagram families form a closed set, :class:`DiagramKind`. Fence languages are
mapped onto it through an explicit alias table; unknown languages are not
diagrams.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Iterator, Mapping, Optional, Protocol, TypeVar, Union, runtime_checkable

from md2tree.render.blobs import BlobHandle

T = TypeVar("T")


class DiagramKind(str, Enum):
    """Diagram families with a rendering capability."""

    MERMAID = "mermaid"
    DOT = "dot"
    WAVEDROM = "wavedrom"
    VEGA_LITE = "vega-lite"


DIAGRAM_ALIASES: dict[str, DiagramKind] = {
    "mermaid": DiagramKind.MERMAID,
    "dot": DiagramKind.DOT,
    "graphviz": DiagramKind.DOT,
    "gv": DiagramKind.DOT,
    "wavedrom": DiagramKind.WAVEDROM,
    "wave": DiagramKind.WAVEDROM,
    "wavejson": DiagramKind.WAVEDROM,
    "vega-lite": DiagramKind.VEGA_LITE,
    "vl": DiagramKind.VEGA_LITE,
}


def resolve_diagram_kind(lang: Optional[str]) -> Optional[DiagramKind]:
    """Map a fence language (any case) to its diagram family, or None."""
    if not lang:
        return None
    return DIAGRAM_ALIASES.get(lang.strip().lower())


@dataclass(frozen=True)
class RenderContext:
    """Where a diagram block sits, passed to the renderer with its source.

    Attributes
    ----------
    md_text : str
        The whole document being rendered.
    match_index : int
        Offset of the block's opening line.
    token : int
        Generation token of the render attempt.
    format_hint : str
        Lower-cased second info token of the fence (e.g. ``svg``), or "".

    """

    md_text: str
    match_index: int
    token: int
    format_hint: str = ""


@dataclass(frozen=True)
class RenderResult:
    """Output of a diagram renderer.

    A result without ``mime`` or ``data`` counts as a failed render.
    """

    mime: Optional[str] = None
    data: Optional[Union[bytes, str]] = None
    width: Optional[float] = None
    height: Optional[float] = None
    class_name: Optional[str] = None
    alt: Optional[str] = None

    @property
    def is_usable(self) -> bool:
        return bool(self.mime) and bool(self.data)

    @classmethod
    def coerce(cls, value: Any) -> Optional["RenderResult"]:
        """Accept a RenderResult, a mapping with the same keys, or None."""
        if value is None or isinstance(value, RenderResult):
            return value
        if isinstance(value, Mapping):
            return cls(
                mime=value.get("mime"),
                data=value.get("data"),
                width=value.get("width"),
                height=value.get("height"),
                class_name=value.get("class_name", value.get("className")),
                alt=value.get("alt"),
            )
        raise TypeError(f"Renderer returned unsupported result type {type(value).__name__}")


@runtime_checkable
class DiagramRenderer(Protocol):
    """A diagram rendering capability."""

    name: str

    def render(
        self, source: str, context: RenderContext
    ) -> Union[Optional[RenderResult], Awaitable[Optional[RenderResult]]]: ...


@runtime_checkable
class MathRenderer(Protocol):
    """A TeX-to-SVG rendering capability."""

    def tex_to_svg(self, expr: str, *, display: bool) -> Union[Optional[str], Awaitable[Optional[str]]]: ...


async def maybe_await(value: Union[T, Awaitable[T]]) -> T:
    """Await ``value`` if it is awaitable, otherwise return it."""
    if inspect.isawaitable(value):
        return await value
    return value


class RendererRegistry:
    """Diagram renderers keyed by :class:`DiagramKind`.

    Parameters
    ----------
    renderers : mapping, optional
        Initial renderers. Keys may be kinds or any alias of a kind.

    Examples
    --------
        >>> registry = RendererRegistry({"graphviz": my_dot_renderer})
        >>> registry.resolve("gv")
        (<DiagramKind.DOT: 'dot'>, my_dot_renderer)

    """

    def __init__(self, renderers: Mapping[Union[DiagramKind, str], DiagramRenderer] | None = None):
        self._renderers: dict[DiagramKind, DiagramRenderer] = {}
        for key, renderer in (renderers or {}).items():
            self.register(key, renderer)

    def register(self, kind: Union[DiagramKind, str], renderer: DiagramRenderer) -> None:
        """Register ``renderer`` for ``kind``, replacing any previous one.

        Raises
        ------
        ValueError
            If ``kind`` is a string that names no diagram family.

        """
        resolved = kind if isinstance(kind, DiagramKind) else resolve_diagram_kind(kind)
        if resolved is None:
            raise ValueError(f"Unknown diagram kind: {kind!r}")
        self._renderers[resolved] = renderer

    def unregister(self, kind: DiagramKind) -> None:
        self._renderers.pop(kind, None)

    def get(self, kind: DiagramKind) -> Optional[DiagramRenderer]:
        return self._renderers.get(kind)

    def resolve(self, lang: Optional[str]) -> Optional[tuple[DiagramKind, DiagramRenderer]]:
        """Return the kind and renderer for a fence language, or None."""
        kind = resolve_diagram_kind(lang)
        if kind is None:
            return None
        renderer = self._renderers.get(kind)
        if renderer is None:
            return None
        return kind, renderer

    def __contains__(self, kind: object) -> bool:
        return kind in self._renderers

    def __iter__(self) -> Iterator[DiagramKind]:
        return iter(self._renderers)

    def __len__(self) -> int:
        return len(self._renderers)


@dataclass(frozen=True)
class ExtractionResult:
    """Text rewritten by an extraction pass and the blobs it allocated.

    The caller owns ``blob_handles`` and must either commit or revoke them.
    """

    text: str
    blob_handles: tuple[BlobHandle, ...] = ()

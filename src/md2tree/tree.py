#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/tree.py
"""Default tree transform from canonical markdown to a node hierarchy.

Canonical markdown (the normalizer's output) is a heading and list hierarchy.
This module parses it with mistune and builds the :class:`TreeNode` tree a
mind-map style visualization consumes:

- headings nest by level under the closest shallower heading
- lists nest under the most recent heading, list items under their parent item
- each heading and list item carries its inline content rendered as HTML, with
  raw inline HTML such as spliced ``<img>`` tags kept
- fenced code, tables, quotes, HTML and math blocks become leaf nodes

Examples
--------
    >>> transformer = MarkdownTreeTransformer()
    >>> result = transformer.transform("# Root\\n## Child\\n- item\\n")
    >>> result.root.content
    'Root'
    >>> [child.content for child in result.root.children]
    ['Child']

"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

import mistune

logger = logging.getLogger(__name__)

_PLUGINS = ["table", "strikethrough", "math"]
_TEXT_BLOCKS = frozenset({"block_text", "paragraph"})
_SKIPPED_BLOCKS = frozenset({"blank_line", "thematic_break"})


@dataclass
class TreeNode:
    """One node of the visualization tree.

    Parameters
    ----------
    content : str
        Inline HTML shown for the node.
    depth : int, default 0
        Distance from the root.
    children : list of TreeNode
        Child nodes in document order.
    payload : dict
        Node kind and kind-specific data, e.g. ``{"type": "heading", "level": 2}``.

    """

    content: str
    depth: int = 0
    children: list[TreeNode] = field(default_factory=list)
    payload: dict[str, Any] = field(default_factory=dict)

    def walk(self) -> Iterator[TreeNode]:
        """Yield this node and every descendant, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping of this subtree."""
        return {
            "content": self.content,
            "depth": self.depth,
            "payload": dict(self.payload),
            "children": [child.to_dict() for child in self.children],
        }


@dataclass
class TransformResult:
    """Output of a tree transform."""

    root: TreeNode


class MarkdownTreeTransformer:
    """Build a :class:`TreeNode` hierarchy from canonical markdown with mistune."""

    name = "markdown-tree"

    def __init__(self) -> None:
        self._markdown = mistune.create_markdown(plugins=_PLUGINS, renderer=None)
        self._html = mistune.create_markdown(escape=False, plugins=_PLUGINS)

    def transform(self, markdown: str) -> TransformResult:
        """Parse ``markdown`` and return its tree.

        The root is the single top-level heading when the document has exactly
        one; otherwise it is a synthetic node with empty content.
        """
        tokens, state = self._markdown.parse(markdown)
        root = TreeNode(content="", payload={"type": "root"})
        headings: list[tuple[int, TreeNode]] = []

        for token in tokens if isinstance(tokens, list) else []:
            token_type = token.get("type", "")
            parent = headings[-1][1] if headings else root

            if token_type == "heading":
                level = token.get("attrs", {}).get("level", 1)
                while headings and headings[-1][0] >= level:
                    headings.pop()
                node = TreeNode(
                    content=self._render_inline(token, state),
                    payload={"type": "heading", "level": level},
                )
                (headings[-1][1] if headings else root).children.append(node)
                headings.append((level, node))
            elif token_type == "list":
                parent.children.extend(self._list_items(token, state))
            else:
                leaf = self._leaf(token, state)
                if leaf is not None:
                    parent.children.append(leaf)

        if len(root.children) == 1 and root.children[0].payload.get("type") == "heading":
            root = root.children[0]
        _assign_depths(root, 0)
        logger.debug("Built tree with %d node(s)", sum(1 for _ in root.walk()))
        return TransformResult(root=root)

    def _render_inline(self, token: dict[str, Any], state: Any) -> str:
        children = token.get("children") or []
        return self._html.renderer.render_tokens(children, state).strip()

    def _render_block(self, token: dict[str, Any], state: Any) -> str:
        return self._html.renderer.render_tokens([token], state).strip()

    def _list_items(self, token: dict[str, Any], state: Any) -> list[TreeNode]:
        items = []
        for item in token.get("children") or []:
            if item.get("type") != "list_item":
                continue
            node = TreeNode(content="", payload={"type": "list_item"})
            for child in item.get("children") or []:
                child_type = child.get("type", "")
                if child_type in _TEXT_BLOCKS and not node.content:
                    node.content = self._render_inline(child, state)
                elif child_type == "list":
                    node.children.extend(self._list_items(child, state))
                else:
                    leaf = self._leaf(child, state)
                    if leaf is not None:
                        node.children.append(leaf)
            items.append(node)
        return items

    def _leaf(self, token: dict[str, Any], state: Any) -> Optional[TreeNode]:
        token_type = token.get("type", "")
        if token_type in _SKIPPED_BLOCKS:
            return None
        if token_type == "block_code":
            info = (token.get("attrs") or {}).get("info") or ""
            language = info.split()[0] if info.strip() else ""
            class_attr = f' class="language-{html.escape(language)}"' if language else ""
            code = html.escape(token.get("raw", ""))
            return TreeNode(
                content=f"<pre><code{class_attr}>{code}</code></pre>",
                payload={"type": "code", "language": language},
            )
        if token_type in _TEXT_BLOCKS:
            return TreeNode(content=self._render_inline(token, state), payload={"type": "text"})
        return TreeNode(content=self._render_block(token, state), payload={"type": token_type})


def _assign_depths(node: TreeNode, depth: int) -> None:
    node.depth = depth
    for child in node.children:
        _assign_depths(child, depth + 1)

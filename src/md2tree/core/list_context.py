#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/core/list_context.py
"""List context lookups used when splicing images into markdown.

Rendered diagrams and block math are put back into the document as HTML. To
keep them attached to the right node of the tree, they must land inside the
list item that owned the source block, or become a list item of their own.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from md2tree.constants import INDENTED_CODE_THRESHOLD, LIST_ITEM_PATTERN


@dataclass(frozen=True)
class ListContext:
    """The list item (if any) governing content at some offset.

    Attributes
    ----------
    is_list : bool
        True when the nearest non-blank line before the offset is a list item.
    indent : str
        Indent of that list item.
    child_indent : str
        Indent for content owned by the item: ``indent + "  "``.

    """

    is_list: bool
    indent: str = ""
    child_indent: str = ""


NO_LIST = ListContext(is_list=False)


def _nearest_non_blank_line(text: str, offset: int) -> Optional[str]:
    for line in reversed(text[:offset].split("\n")):
        if line.strip():
            return line
    return None


def is_list_item_line(line: str) -> bool:
    """Return True if ``line`` starts a bullet or ordered list item."""
    return LIST_ITEM_PATTERN.match(line) is not None


def get_list_context(text: str, offset: int) -> ListContext:
    """Report the list item owning content that starts at ``offset``.

    Parameters
    ----------
    text : str
        The document.
    offset : int
        Position of the content (normally the start of its first line).

    Returns
    -------
    ListContext
        ``is_list`` is True when the closest non-blank line above is a list item.

    """
    line = _nearest_non_blank_line(text, offset)
    if line is None:
        return NO_LIST
    match = LIST_ITEM_PATTERN.match(line)
    if not match:
        return NO_LIST
    indent = match.group("indent")
    return ListContext(is_list=True, indent=indent, child_indent=indent + "  ")


def compute_safe_indent(indent: str, text: str, offset: int) -> str:
    """Return an indent for a new list marker that cannot start indented code.

    Indents shorter than four characters are returned unchanged. A deeper indent
    is kept when the nearest non-blank line above ``offset`` is a list item
    (the indent belongs to that list); otherwise it loses one character.

    Examples
    --------
        >>> md = "- parent\\n    ```mermaid\\nA-->B\\n```"
        >>> compute_safe_indent("    ", md, md.index("```"))
        '    '
        >>> compute_safe_indent("    ", "\\n    ```mermaid", 5)
        '   '

    """
    if len(indent) < INDENTED_CODE_THRESHOLD:
        return indent
    line = _nearest_non_blank_line(text, offset)
    if line is not None and is_list_item_line(line):
        return indent
    return indent[:-1]


def append_inline_to_last_list_item(out: str, markup: str) -> Optional[str]:
    """Append ``markup`` to the last list item of ``out``.

    Trailing blank lines are dropped. Returns None when the last non-blank line
    of ``out`` is not a list item, so the caller must place the markup itself.

    """
    lines = out.split("\n")
    while lines and not lines[-1].strip():
        lines.pop()
    if not lines or not is_list_item_line(lines[-1]):
        return None
    lines[-1] = f"{lines[-1]} {markup}"
    return "\n".join(lines)


def splice_block_markup(out: str, markup: str, context: ListContext, indent: str) -> str:
    """Place rendered block markup at the end of ``out``.

    Parameters
    ----------
    out : str
        Output built so far. It ends at the start of the line that held the
        source block.
    markup : str
        HTML to insert.
    context : ListContext
        List context of the source block.
    indent : str
        Indent for a new top-level item when the block is not inside a list.

    Returns
    -------
    str
        ``out`` with the markup appended to the owning list item, added as a new
        nested child item, or added as a new list item.

    """
    if context.is_list:
        appended = append_inline_to_last_list_item(out, markup)
        if appended is not None:
            return appended
        return f"{out}{context.child_indent}- {markup}"
    return f"{out}{indent}- {markup}"

#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/cli.py
"""Command-line interface for md2tree.

Usage::

    md2tree normalize notes.md --out canonical.md
    md2tree tree notes.md --json
    cat notes.md | md2tree tree --rich

Both commands read from a file or, with ``-`` or no argument, from stdin.
Options come from the discovered config file (see :mod:`md2tree.config`).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from bs4 import BeautifulSoup

from md2tree import __version__
from md2tree.config import Md2TreeOptions, load_options
from md2tree.core.fence_lang import normalize_fence_lang
from md2tree.core.normalize import StructuralNormalizer
from md2tree.exceptions import DependencyError, Md2TreeError, TransformError, ValidationError
from md2tree.logging_utils import configure_logging
from md2tree.tree import MarkdownTreeTransformer, TreeNode
from md2tree.utils.decorators import requires_dependencies

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_DEPENDENCY_ERROR = 2
EXIT_VALIDATION_ERROR = 3
EXIT_FILE_ERROR = 4
EXIT_RENDERING_ERROR = 7


def get_exit_code_for_exception(exception: Exception) -> int:
    """Map an exception to an appropriate CLI exit code."""
    if isinstance(exception, (DependencyError, ImportError)):
        return EXIT_DEPENDENCY_ERROR
    if isinstance(exception, ValidationError):
        return EXIT_VALIDATION_ERROR
    if isinstance(exception, OSError):
        return EXIT_FILE_ERROR
    if isinstance(exception, TransformError):
        return EXIT_RENDERING_ERROR
    return EXIT_ERROR


def create_parser() -> argparse.ArgumentParser:
    """Build the argument parser with its ``normalize`` and ``tree`` subcommands."""
    parser = argparse.ArgumentParser(
        prog="md2tree",
        description="Normalize markdown into a heading/list hierarchy and build its tree.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Path to a .toml, .yaml or .json configuration file")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (defaults to $MD2TREE_LOG_LEVEL or WARNING)",
    )
    parser.add_argument("--log-file", help="Also write log output to this file")
    parser.add_argument("--trace", action="store_true", help="Timestamped log output with logger names")

    subparsers = parser.add_subparsers(dest="command", required=True)

    normalize_parser = subparsers.add_parser("normalize", help="Print canonical markdown")
    normalize_parser.add_argument("input", nargs="?", default="-", help="Markdown file, or - for stdin")
    normalize_parser.add_argument("--out", help="Write to this file instead of stdout")

    tree_parser = subparsers.add_parser("tree", help="Print the document tree")
    tree_parser.add_argument("input", nargs="?", default="-", help="Markdown file, or - for stdin")
    tree_parser.add_argument("--out", help="Write to this file instead of stdout")
    output_format = tree_parser.add_mutually_exclusive_group()
    output_format.add_argument("--json", action="store_true", help="Print the tree as JSON")
    output_format.add_argument("--rich", action="store_true", help="Print the tree with rich formatting")

    return parser


def _read_input(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def _write_output(text: str, out: Optional[str]) -> None:
    if out:
        Path(out).write_text(text, encoding="utf-8")
        logger.info("Wrote %s", out)
    else:
        sys.stdout.write(text)


def canonicalize(text: str, options: Md2TreeOptions) -> str:
    """Normalize ``text`` the way the render pipeline does before extraction."""
    canonical = StructuralNormalizer(options.normalize).normalize(text)
    if options.normalize.normalize_fence_languages:
        canonical = normalize_fence_lang(canonical, options.normalize.fence_language_aliases)
    return canonical


def _node_label(node: TreeNode) -> str:
    text = " ".join(BeautifulSoup(node.content, "html.parser").get_text().split())
    return text or f"({node.payload.get('type', 'node')})"


def format_tree_text(root: TreeNode) -> str:
    """Render ``root`` as an indented outline."""
    return "".join(f"{'  ' * node.depth}{_node_label(node)}\n" for node in root.walk())


@requires_dependencies("rich tree output", [("rich", "rich", ">=13.0.0")])
def format_tree_rich(root: TreeNode) -> str:
    """Render ``root`` with :class:`rich.tree.Tree` and return the captured output."""
    from rich.console import Console
    from rich.markup import escape
    from rich.tree import Tree

    def build(node: TreeNode, branch: Any) -> None:
        for child in node.children:
            style = "bold" if child.payload.get("type") == "heading" else ""
            label = escape(_node_label(child))
            build(child, branch.add(f"[{style}]{label}[/{style}]" if style else label))

    tree = Tree(f"[bold]{escape(_node_label(root))}[/bold]")
    build(root, tree)
    console = Console()
    with console.capture() as capture:
        console.print(tree)
    return capture.get()


def _run_normalize(args: argparse.Namespace, options: Md2TreeOptions) -> int:
    _write_output(canonicalize(_read_input(args.input), options), args.out)
    return EXIT_SUCCESS


def _run_tree(args: argparse.Namespace, options: Md2TreeOptions) -> int:
    canonical = canonicalize(_read_input(args.input), options)
    transformer = MarkdownTreeTransformer()
    try:
        root = transformer.transform(canonical).root
    except Exception as exc:
        raise TransformError(
            f"Tree transform failed: {exc}", transform_name=transformer.name, original_error=exc
        ) from exc

    if args.json:
        output = json.dumps(root.to_dict(), indent=2, ensure_ascii=False) + "\n"
    elif args.rich:
        output = format_tree_rich(root)
    else:
        output = format_tree_text(root)
    _write_output(output, args.out)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    """Execute the md2tree command line and return its exit code."""
    parser = create_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level, log_file=args.log_file, trace_mode=args.trace)

    try:
        options = load_options(args.config)
        if args.command == "normalize":
            return _run_normalize(args, options)
        return _run_tree(args, options)
    except (Md2TreeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        logger.debug("Command %s failed", args.command, exc_info=True)
        return get_exit_code_for_exception(e)

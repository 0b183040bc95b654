#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/logging_utils.py
"""Centralized logging utilities for md2tree entry points."""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

from md2tree.constants import DEFAULT_LOG_LEVEL, ENV_LOG_LEVEL


def resolve_log_level(log_level: int | str | None = None) -> int:
    """Resolve a log level from an explicit value or the environment.

    Parameters
    ----------
    log_level : int | str, optional
        Numeric logging level or level name. When omitted, ``MD2TREE_LOG_LEVEL``
        is consulted, falling back to WARNING.

    Returns
    -------
    int
        Numeric logging level.

    """
    if log_level is None:
        log_level = os.environ.get(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL)
    if isinstance(log_level, int):
        return log_level
    return getattr(logging, str(log_level).upper(), logging.INFO)


def configure_logging(
    log_level: int | str | None = None,
    log_file: Optional[str] = None,
    trace_mode: bool = False,
) -> logging.Logger:
    """Configure root logging handlers for the CLI and embedding applications.

    Parameters
    ----------
    log_level : int | str, optional
        Numeric logging level or string name (e.g., "INFO").
    log_file : str, optional
        Optional path to a log file for teeing log output.
    trace_mode : bool, default False
        When true, emit timestamps and logger names for debugging traces.

    Returns
    -------
    logging.Logger
        The configured root logger instance.

    """
    resolved_level = resolve_log_level(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(resolved_level)
    root_logger.handlers.clear()

    format_str = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s" if trace_mode else "%(levelname)s: %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S" if trace_mode else None
    formatter = logging.Formatter(format_str, datefmt=date_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(resolved_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
            file_handler.setLevel(resolved_level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            root_logger.info("Logging to file: %s", log_file)
        except OSError as exc:  # pragma: no cover - handled at runtime
            root_logger.warning("Could not create log file %s: %s", log_file, exc)

    return root_logger

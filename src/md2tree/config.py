#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/config.py
"""Configuration file discovery and loading for md2tree.

Options live in a TOML, YAML or JSON file, or in the ``[tool.md2tree]``
table of ``pyproject.toml``, with one table per options class::

    [tool.md2tree.normalize]
    initial_heading_level = 2

    [tool.md2tree.render]
    default_diagram_width = 640
    raster_scale = 2.0

"""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[import-not-found,unused-ignore]

import yaml

from md2tree.constants import CONFIG_BASENAME, CONFIG_EXTENSIONS, ENV_CONFIG_PATH, PYPROJECT_TOOL_SECTION
from md2tree.exceptions import ConfigError, ValidationError
from md2tree.options.normalize import NormalizeOptions
from md2tree.options.render import RenderOptions

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = [f"{CONFIG_BASENAME}{ext}" for ext in CONFIG_EXTENSIONS]


@dataclass(frozen=True)
class Md2TreeOptions:
    """All md2tree options, grouped by pipeline stage."""

    normalize: NormalizeOptions = field(default_factory=NormalizeOptions)
    render: RenderOptions = field(default_factory=RenderOptions)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any] | None) -> "Md2TreeOptions":
        """Build options from a loaded config mapping.

        Raises
        ------
        ValidationError
            If the mapping has unknown sections or option keys, or a section
            is not a mapping.

        """
        values = dict(values or {})
        unknown = set(values) - {"normalize", "render"}
        if unknown:
            raise ValidationError(
                f"Unknown configuration section(s): {', '.join(sorted(unknown))}",
                parameter_name="config",
                parameter_value=sorted(unknown),
            )
        for section in ("normalize", "render"):
            if section in values and not isinstance(values[section], Mapping):
                raise ValidationError(
                    f"Configuration section '{section}' must be a table", parameter_name=section
                )
        return cls(
            normalize=NormalizeOptions.from_mapping(values.get("normalize")),
            render=RenderOptions.from_mapping(values.get("render")),
        )


def _load_pyproject_section(pyproject_path: Path) -> Dict[str, Any]:
    """Load the ``[tool.md2tree]`` table of a pyproject.toml, or an empty dict."""
    try:
        with open(pyproject_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(
            f"Invalid TOML in pyproject.toml {pyproject_path}: {e}", config_path=str(pyproject_path), original_error=e
        ) from e
    except OSError as e:
        raise ConfigError(
            f"Error reading pyproject.toml {pyproject_path}: {e}", config_path=str(pyproject_path), original_error=e
        ) from e

    config = data.get("tool", {}).get(PYPROJECT_TOOL_SECTION)
    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigError(
            f"[tool.{PYPROJECT_TOOL_SECTION}] section in {pyproject_path} must be a table, "
            f"got {type(config).__name__}",
            config_path=str(pyproject_path),
        )
    return config


def find_config_in_parents(start_dir: Optional[Path] = None) -> Optional[Path]:
    """Find a configuration file by walking up from ``start_dir``.

    Each directory is checked for ``.md2tree.toml``, ``.md2tree.yaml``,
    ``.md2tree.yml`` and ``.md2tree.json`` in that order, then for a
    ``pyproject.toml`` holding a ``[tool.md2tree]`` table.

    Parameters
    ----------
    start_dir : Path, optional
        Starting directory, defaults to the current working directory

    Returns
    -------
    Path or None
        First config file found

    """
    current = (start_dir or Path.cwd()).resolve()

    while True:
        for filename in CONFIG_FILENAMES:
            config_path = current / filename
            if config_path.is_file():
                return config_path

        pyproject_path = current / "pyproject.toml"
        if pyproject_path.is_file():
            try:
                if _load_pyproject_section(pyproject_path):
                    return pyproject_path
            except ConfigError as e:
                logger.debug("Skipping unreadable %s: %s", pyproject_path, e)

        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def discover_config_file(start_dir: Optional[Path] = None) -> Optional[Path]:
    """Discover a config file in the parent directories, then the home directory."""
    found = find_config_in_parents(start_dir)
    if found:
        return found

    home = Path.home()
    for filename in CONFIG_FILENAMES:
        config_path = home / filename
        if config_path.is_file():
            return config_path

    return None


def load_config_file(config_path: Path | str) -> Dict[str, Any]:
    """Load configuration from a JSON, TOML, YAML or pyproject.toml file.

    Parameters
    ----------
    config_path : Path or str
        Path to the configuration file

    Returns
    -------
    dict
        Configuration dictionary loaded from the file

    Raises
    ------
    ConfigError
        If the file is missing, unreadable, malformed or of an unsupported type

    """
    config_path = Path(config_path)
    if not config_path.is_file():
        raise ConfigError(f"Configuration file does not exist: {config_path}", config_path=str(config_path))

    if config_path.name.lower() == "pyproject.toml":
        return _load_pyproject_section(config_path)

    ext = config_path.suffix.lower()
    try:
        if ext == ".toml":
            with open(config_path, "rb") as f:
                config = tomllib.load(f)
        elif ext in (".yaml", ".yml"):
            with open(config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        elif ext == ".json":
            with open(config_path, "r", encoding="utf-8") as f:
                config = json.load(f)
        else:
            raise ConfigError(
                f"Unsupported config file format: {ext}. Use .json, .toml, or .yaml", config_path=str(config_path)
            )
    except (tomllib.TOMLDecodeError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(
            f"Invalid config file {config_path}: {e}", config_path=str(config_path), original_error=e
        ) from e
    except OSError as e:
        raise ConfigError(
            f"Error reading config file {config_path}: {e}", config_path=str(config_path), original_error=e
        ) from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigError(
            f"Config file must contain a mapping at root level, got {type(config).__name__}",
            config_path=str(config_path),
        )
    return config


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep-merge ``override`` into a copy of ``base``.

    Examples
    --------
    >>> merge_configs({"render": {"settle_frames": 2}}, {"render": {"raster_scale": 2.0}})
    {'render': {'settle_frames': 2, 'raster_scale': 2.0}}

    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value
    return result


def load_config_with_priority(explicit_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from the first available source.

    Priority: the explicit path, then ``MD2TREE_CONFIG``, then discovery.
    Returns an empty dict when no config exists.
    """
    if explicit_path:
        return load_config_file(explicit_path)

    env_path = os.environ.get(ENV_CONFIG_PATH)
    if env_path:
        return load_config_file(env_path)

    discovered = discover_config_file()
    if discovered:
        logger.debug("Using config file %s", discovered)
        return load_config_file(discovered)
    return {}


def load_options(explicit_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> Md2TreeOptions:
    """Load and validate options, applying ``overrides`` on top of the config file.

    Raises
    ------
    ConfigError
        If a config file cannot be loaded or holds invalid options.

    """
    source = explicit_path or os.environ.get(ENV_CONFIG_PATH)
    config = merge_configs(load_config_with_priority(explicit_path), overrides or {})
    try:
        return Md2TreeOptions.from_mapping(config)
    except ConfigError:
        raise
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e.message}", config_path=source, original_error=e) from e

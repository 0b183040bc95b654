#  Copyright (c) 2025 Tom Villani, Ph.D.
"""Custom exceptions for the md2tree library.

This module defines specialized exception classes for the error conditions
that can occur while normalizing markdown and orchestrating renders.

Exception Hierarchy
-------------------
- Md2TreeError (base exception)

  - ValidationError (parameter/option validation)
    - ConfigError (unreadable or malformed configuration files)

  - RenderingError (diagram/math rendering failures)
    - RendererUnavailableError (a rendering capability is absent)
    - RasterizationError (math-line flattening failures)

  - TransformError (tree-transform stage failures)

  - DependencyError (missing/incompatible packages)

Per-block rendering failures are recovered where they happen. Only
TransformError crosses the RenderOrchestrator boundary.

"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class Md2TreeError(Exception):
    """Base exception class for all md2tree-specific errors.

    Parameters
    ----------
    message : str
        Human-readable description of the error
    original_error : Exception, optional
        The original exception that caused this error, if applicable

    Attributes
    ----------
    message : str
        The error message
    original_error : Exception or None
        The wrapped original exception, if any

    """

    def __init__(self, message: str, original_error: Exception | None = None):
        """Initialize the error with a message and optional original exception."""
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ValidationError(Md2TreeError):
    """Exception raised for invalid input parameters or options.

    Parameters
    ----------
    message : str
        Description of the validation error
    parameter_name : str, optional
        Name of the invalid parameter
    parameter_value : any, optional
        The invalid value that was provided
    original_error : Exception, optional
        The original exception that caused this error

    """

    def __init__(
        self,
        message: str,
        parameter_name: str | None = None,
        parameter_value: Any = None,
        original_error: Exception | None = None,
    ):
        """Initialize the validation error with parameter details."""
        super().__init__(message, original_error=original_error)
        self.parameter_name = parameter_name
        self.parameter_value = parameter_value


class ConfigError(ValidationError):
    """Exception raised when a configuration file cannot be used.

    Parameters
    ----------
    message : str
        Description of the problem
    config_path : str or Path, optional
        Path of the offending configuration file
    original_error : Exception, optional
        The parse or I/O error that caused this error

    """

    def __init__(
        self, message: str, config_path: str | Path | None = None, original_error: Exception | None = None
    ):
        """Initialize the configuration error."""
        super().__init__(
            message, parameter_name="config", parameter_value=config_path, original_error=original_error
        )
        self.config_path = str(config_path) if config_path is not None else None


class RenderingError(Md2TreeError):
    """Exception raised when rendering embedded content fails.

    Parameters
    ----------
    message : str
        Description of the rendering failure
    rendering_stage : str, optional
        The stage of rendering where the error occurred
    original_error : Exception, optional
        The underlying exception that caused the rendering failure

    """

    def __init__(self, message: str, rendering_stage: str | None = None, original_error: Exception | None = None):
        """Initialize the rendering error."""
        super().__init__(message, original_error)
        self.rendering_stage = rendering_stage


class RendererUnavailableError(RenderingError):
    """Exception raised when a rendering capability is not available."""

    def __init__(self, capability: str, message: str | None = None):
        """Initialize the error for the missing capability."""
        super().__init__(message or f"No renderer available for '{capability}'", rendering_stage=capability)
        self.capability = capability


class RasterizationError(RenderingError):
    """Exception raised when a math line cannot be flattened into one image.

    Parameters
    ----------
    message : str
        Description of the failure
    line : str, optional
        The markdown line that failed to rasterize
    original_error : Exception, optional
        The underlying exception

    """

    def __init__(self, message: str, line: str | None = None, original_error: Exception | None = None):
        """Initialize the rasterization error."""
        super().__init__(message, rendering_stage="math_lines", original_error=original_error)
        self.line = line


class TransformError(Md2TreeError):
    """Exception raised when the tree-transform stage fails.

    Parameters
    ----------
    message : str
        Description of the transform failure
    transform_name : str, optional
        Name of the transformer that failed
    original_error : Exception, optional
        The underlying exception that caused the transform failure

    """

    def __init__(self, message: str, transform_name: str | None = None, original_error: Exception | None = None):
        """Initialize the transform error."""
        super().__init__(message, original_error)
        self.transform_name = transform_name


class DependencyError(Md2TreeError):
    """Exception raised when required dependencies are not available.

    Parameters
    ----------
    feature_name : str
        Name of the feature requiring dependencies
    missing_packages : list[tuple[str, str]]
        List of (package_name, version_spec) tuples for missing packages
    version_mismatches : list[tuple[str, str, str]], optional
        List of (package_name, required_version, installed_version) tuples
    install_command : str, optional
        Suggested pip install command to resolve the issue
    message : str, optional
        Custom error message. If not provided, generates a helpful message
    original_import_error : ImportError, optional
        The first ImportError encountered

    """

    def __init__(
        self,
        feature_name: str,
        missing_packages: list[tuple[str, str]],
        version_mismatches: list[tuple[str, str, str]] | None = None,
        install_command: str = "",
        message: str | None = None,
        original_import_error: ImportError | None = None,
    ):
        """Initialize the dependency error with package details."""
        version_mismatches = version_mismatches or []
        self.original_import_error = original_import_error
        if message is None:
            message_parts = []
            if missing_packages:
                pkg_list = ", ".join(f"'{name}{spec}'" if spec else f"'{name}'" for name, spec in missing_packages)
                message_parts.append(f"{feature_name} requires the following packages: {pkg_list}")
            if version_mismatches:
                mismatch_str = ", ".join(
                    f"'{name}' (requires {required}, but {installed} is installed)"
                    for name, required, installed in version_mismatches
                )
                message_parts.append(f"{feature_name} has version mismatches: {mismatch_str}")
            message = "\n".join(message_parts)

            if install_command:
                message += f"\nInstall with: {install_command}"
            else:
                all_packages = missing_packages + [(name, req) for name, req, _ in version_mismatches]
                if all_packages:
                    packages_str = " ".join(f'"{name}{spec}"' if spec else name for name, spec in all_packages)
                    message += f"\nInstall with: pip install --upgrade {packages_str}"

        super().__init__(message)
        self.feature_name = feature_name
        self.missing_packages = missing_packages
        self.version_mismatches = version_mismatches
        self.install_command = install_command

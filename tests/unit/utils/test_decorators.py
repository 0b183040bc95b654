"""Unit tests for utils/decorators.py."""

from __future__ import annotations

import logging
from unittest.mock import patch

import pytest

import md2tree.utils.decorators
from md2tree.exceptions import DependencyError
from md2tree.utils.decorators import debug_timer, requires_dependencies


class TestRequiresDependencies:
    """Test the requires_dependencies decorator."""

    def test_missing_package_raises_error(self) -> None:
        """Test that a missing package raises DependencyError."""

        @requires_dependencies("test", [("nonexistent-package", "nonexistent", "")])
        def sample_function() -> str:
            return "success"

        with pytest.raises(DependencyError) as exc_info:
            sample_function()

        assert exc_info.value.feature_name == "test"
        assert ("nonexistent-package", "") in exc_info.value.missing_packages
        assert exc_info.value.original_import_error is not None
        assert "pip install --upgrade nonexistent-package" in str(exc_info.value)

    def test_version_mismatch_raises_error(self) -> None:
        """Test that an installed package with wrong version raises DependencyError."""
        with patch("md2tree.utils.decorators.importlib.import_module"):
            with patch.object(md2tree.utils.decorators, "check_version_requirement", return_value=(False, "1.0.0")):

                @requires_dependencies("test", [("test-package", "test_package", ">=2.0.0")])
                def sample_function() -> str:
                    return "success"

                with pytest.raises(DependencyError) as exc_info:
                    sample_function()

                assert len(exc_info.value.missing_packages) == 0
                assert ("test-package", ">=2.0.0", "1.0.0") in exc_info.value.version_mismatches

    def test_correct_version_succeeds(self) -> None:
        """Test that an installed package with correct version allows execution."""
        with patch("md2tree.utils.decorators.importlib.import_module"):
            with patch.object(md2tree.utils.decorators, "check_version_requirement", return_value=(True, "2.5.0")):

                @requires_dependencies("test", [("test-package", "test_package", ">=2.0.0")])
                def sample_function() -> str:
                    return "success"

                assert sample_function() == "success"

    def test_multiple_packages_mixed_errors(self) -> None:
        """Test that missing packages and version mismatches are reported together."""

        def mock_import(name: str) -> None:
            if name == "missing_package":
                raise ImportError(f"No module named '{name}'")

        def mock_version_check(package_name: str, version_spec: str) -> tuple[bool, str | None]:
            if package_name == "wrong-version-package":
                return (False, "1.0.0")
            return (True, "2.0.0")

        with patch("md2tree.utils.decorators.importlib.import_module", side_effect=mock_import):
            with patch.object(md2tree.utils.decorators, "check_version_requirement", side_effect=mock_version_check):

                @requires_dependencies(
                    "test",
                    [
                        ("missing-package", "missing_package", ">=1.0.0"),
                        ("wrong-version-package", "wrong_version_package", ">=2.0.0"),
                        ("correct-package", "correct_package", ">=1.0.0"),
                    ],
                )
                def sample_function() -> str:
                    return "success"

                with pytest.raises(DependencyError) as exc_info:
                    sample_function()

                assert exc_info.value.missing_packages == [("missing-package", ">=1.0.0")]
                assert exc_info.value.version_mismatches == [("wrong-version-package", ">=2.0.0", "1.0.0")]

    def test_preserves_function_metadata(self) -> None:
        """Test that decorator preserves function name and docstring."""

        @requires_dependencies("test", [])
        def sample_function() -> str:
            """Sample docstring."""
            return "success"

        assert sample_function.__name__ == "sample_function"
        assert sample_function.__doc__ == "Sample docstring."


class TestDebugTimer:
    """Test the debug_timer context manager."""

    def test_logs_when_debug_enabled(self, caplog) -> None:
        logger = logging.getLogger("md2tree.tests.timer")
        with caplog.at_level(logging.DEBUG, logger="md2tree.tests.timer"):
            with debug_timer(logger, "Normalizing"):
                pass
        assert "Normalizing completed in" in caplog.text

    def test_silent_otherwise(self, caplog) -> None:
        logger = logging.getLogger("md2tree.tests.timer_quiet")
        logger.setLevel(logging.WARNING)
        with debug_timer(logger, "Normalizing"):
            pass
        assert "Normalizing" not in caplog.text

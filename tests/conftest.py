"""Pytest configuration and shared fixtures for the md2tree test suite.

This module registers the hypothesis profiles and custom markers and provides
the fixtures shared across the suite. Fake collaborators live in fakes.py.
"""

from __future__ import annotations

import os

import pytest
from hypothesis import Phase, Verbosity, settings

from md2tree.render.blobs import BlobStore

# Register custom Hypothesis profiles
settings.register_profile("ci", max_examples=100, verbosity=Verbosity.verbose)
settings.register_profile("dev", max_examples=20)
settings.register_profile(
    "debug", max_examples=10, verbosity=Verbosity.verbose, phases=[Phase.explicit, Phase.reuse, Phase.generate]
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests - fast, isolated component tests")
    config.addinivalue_line("markers", "cli: Tests related to command-line interface")


@pytest.fixture
def blob_store() -> BlobStore:
    """Provide an empty blob store."""
    return BlobStore()


@pytest.fixture
def sample_markdown() -> str:
    """Provide a loosely formatted document exercising most normalizer rules."""
    return """# Project

Overview paragraph that
spans two lines.

- First item

- Second item
```mermaid
graph TD; A-->B
```

- Third item

Closing notes
"""

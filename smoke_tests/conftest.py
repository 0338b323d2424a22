"""Shared paths for package health checks."""

from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).parent.parent


@pytest.fixture
def pyproject() -> Path:
    return PROJECT_ROOT / "pyproject.toml"


@pytest.fixture
def checked_paths() -> list:
    """Sources handed to mypy: the package with its colocated tests, and the scenario suite."""
    return [PROJECT_ROOT / "src" / "inventory_messaging", PROJECT_ROOT / "tests"]

"""
Pytest configuration for the CHIP-8 test suite.

    python -m pytest              # everything
    python -m pytest -m "not display"

Tests marked ``display`` open a real pygame display on SDL's dummy
video driver; they are skipped when pygame or numpy is not installed.
"""

import importlib.util
import os

import pytest

# Must be set before pygame initialises its video subsystem
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")


def _have(module: str) -> bool:
    return importlib.util.find_spec(module) is not None


def pytest_configure(config):
    config.addinivalue_line("markers",
        "display: tests needing pygame and numpy (skipped when unavailable)")


def pytest_collection_modifyitems(config, items):
    if _have("pygame") and _have("numpy"):
        return
    skip = pytest.mark.skip(reason="pygame/numpy not installed")
    for item in items:
        if "display" in item.keywords:
            item.add_marker(skip)

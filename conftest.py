"""Pytest configuration — ensures the project root is importable."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent))


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    """Keep the developer's LICENSE_VERIFIER_* environment out of the tests."""
    import os

    from license_verifier.config import get_settings

    for name in list(os.environ):
        if name.startswith("LICENSE_VERIFIER_"):
            monkeypatch.delenv(name)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()

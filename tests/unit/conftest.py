"""Unit-test conftest: settings isolation.

Provides an ``autouse`` fixture that keeps unit tests independent of the
developer's environment: ``RUNSTREAM_*`` variables are removed and the
cached settings instance is reset before and after every test, so a value
loaded by one test never leaks into the next.
"""

from __future__ import annotations

import os

import pytest

from runstream.settings import get_settings


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch: pytest.MonkeyPatch):
    """Strip RUNSTREAM_* env vars and reset the settings cache."""
    for name in list(os.environ):
        if name.upper().startswith("RUNSTREAM_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(os.path.dirname(__file__))  # no stray .env from the repo root
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()

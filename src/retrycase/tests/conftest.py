"""Shared fixtures: quiet logging and fresh settings for every test."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from retrycase.foundation.config import clear_settings_cache
from retrycase.runtime.observability import configure_logging, reset_logging


@pytest.fixture(autouse=True)
def quiet_logging() -> Iterator[None]:
    """Silence log output and reload settings around each test."""
    clear_settings_cache()
    configure_logging(format="none")
    yield
    reset_logging()
    clear_settings_cache()

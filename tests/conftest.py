"""Shared pytest fixtures."""

import pytest

from seekwise.config import get_settings


@pytest.fixture(autouse=True)
def _reset_settings() -> None:
    """Re-read environment settings in every test so monkeypatched variables apply."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()

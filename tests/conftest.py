"""Shared fixtures for the webhook server tests."""

from pathlib import Path

import pytest

from webhook_server.core.setting import Settings


@pytest.fixture
def storage(tmp_path) -> Path:
    path = tmp_path / "storage"
    path.mkdir()
    return path


@pytest.fixture
def test_settings(storage) -> Settings:
    return Settings(
        STORAGE_DIR=storage,
        RATE_LIMIT_ENABLED=False,
        STATS_CACHE_MAX_ENTRIES=16,
    )

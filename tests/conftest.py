from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from backend.app.dependencies import reset_cached_dependencies
from backend.app.repositories.channel_cache_repository import ChannelCacheRepository
from backend.app.repositories.database import Database


@pytest.fixture(autouse=True)
def _isolated_runtime(  # pyright: ignore[reportUnusedFunction]
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> Iterator[None]:
    monkeypatch.setenv("TUBELIST_DATA_DIR", str(tmp_path / "runtime-data"))
    monkeypatch.setenv("TUBELIST_YOUTUBE_API_KEY", "test-youtube-key")
    monkeypatch.delenv("TUBELIST_LOG_LEVEL", raising=False)
    reset_cached_dependencies()
    yield
    reset_cached_dependencies()


@pytest.fixture
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "state.db")
    db.initialize()
    return db


@pytest.fixture
def cache_repository(database: Database) -> ChannelCacheRepository:
    return ChannelCacheRepository(database)

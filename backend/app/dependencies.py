from __future__ import annotations

from functools import lru_cache

from backend.app.config import AppSettings, load_settings
from backend.app.repositories.channel_cache_repository import ChannelCacheRepository
from backend.app.repositories.database import Database
from backend.app.repositories.list_repository import ListRepository
from backend.app.services.channel_cache import ChannelVideoCache
from backend.app.services.channel_search import ChannelSearchService
from backend.app.services.video_aggregator import VideoAggregator
from backend.app.services.video_fetcher import ChannelVideoFetcher
from backend.app.services.youtube_source import ContentSource, YouTubeDataApiSource
from backend.app.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_database() -> Database:
    database = Database(get_settings().db_path)
    database.initialize()
    return database


@lru_cache(maxsize=1)
def get_content_source() -> ContentSource:
    return YouTubeDataApiSource(get_settings().youtube_api_key)


@lru_cache(maxsize=1)
def get_channel_cache() -> ChannelVideoCache:
    settings = get_settings()
    fetcher = ChannelVideoFetcher(
        get_content_source(),
        batch_size=settings.fetch_batch_size,
        max_pages=settings.fetch_max_pages,
        deadline_seconds=settings.fetch_deadline_seconds,
    )
    return ChannelVideoCache(
        ChannelCacheRepository(get_database()),
        fetcher,
        ttl_seconds=settings.channel_cache_ttl_seconds,
        telemetry=get_telemetry(),
    )


@lru_cache(maxsize=1)
def get_video_aggregator() -> VideoAggregator:
    return VideoAggregator(
        get_channel_cache(),
        max_workers=get_settings().aggregator_max_workers,
        telemetry=get_telemetry(),
    )


@lru_cache(maxsize=1)
def get_channel_search() -> ChannelSearchService:
    return ChannelSearchService(get_content_source())


@lru_cache(maxsize=1)
def get_list_repository() -> ListRepository:
    return ListRepository(get_database())


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


def reset_cached_dependencies() -> None:
    get_list_repository.cache_clear()
    get_channel_search.cache_clear()
    get_video_aggregator.cache_clear()
    get_channel_cache.cache_clear()
    get_content_source.cache_clear()
    get_database.cache_clear()
    get_telemetry.cache_clear()
    get_settings.cache_clear()

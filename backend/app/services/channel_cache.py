from __future__ import annotations

import json
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal, cast

from backend.app.repositories.channel_cache_repository import ChannelCacheRepository
from backend.app.repositories.common import utc_now_ms
from backend.app.services.video_fetcher import ChannelFetchResult, ChannelVideoFetcher
from backend.app.services.youtube_records import VideoRecord, video_from_dict, video_to_dict
from backend.app.telemetry import TelemetryClient

LOGGER = logging.getLogger("tubelist.channel_cache")

CACHE_FORMAT_VERSION = 1
LEGACY_CACHE_FORMAT_VERSION = 0
DEFAULT_CHANNEL_CACHE_TTL_SECONDS = 24 * 60 * 60

CacheState = Literal["missing", "fresh", "stale", "legacy", "corrupt"]


class CachePayloadError(Exception):
    pass


# Anything raised while decoding a stored payload sends the lookup down the corrupt path.
_PAYLOAD_DECODE_ERRORS: tuple[type[Exception], ...] = (
    CachePayloadError,
    ValueError,
    OverflowError,
    RecursionError,
)


@dataclass(frozen=True)
class ChannelCacheEntry:
    channel_id: str
    videos: list[VideoRecord]
    fetched_at: int


@dataclass(frozen=True)
class DecodedCachePayload:
    version: int
    videos: list[VideoRecord]
    fetched_at: int | None


@dataclass(frozen=True)
class ChannelVideosResult:
    channel_id: str
    videos: list[VideoRecord]
    state: CacheState
    refreshed: bool
    fetched_at: int | None


def channel_cache_key(channel_id: str) -> str:
    return f"yt:videos:(channelId:{channel_id})"


def encode_cache_payload(videos: list[VideoRecord], *, fetched_at: int) -> str:
    return json.dumps(
        {
            "version": CACHE_FORMAT_VERSION,
            "videos": [video_to_dict(video) for video in videos],
            "timestamp": fetched_at,
        },
        ensure_ascii=False,
    )


def decode_cache_payload(raw_payload: str, *, default_ms: int) -> DecodedCachePayload:
    """Decode a stored payload by its format version.

    v0 is the legacy bare array of records, v1 the `{version, videos, timestamp}`
    envelope. Envelopes written before the version field existed carry no
    `version` key and are read as v1.
    """
    try:
        parsed = cast(object, json.loads(raw_payload))
    except (ValueError, RecursionError) as exc:
        raise CachePayloadError(f"cache payload is not valid JSON: {exc}") from exc

    if isinstance(parsed, list):
        return DecodedCachePayload(
            version=LEGACY_CACHE_FORMAT_VERSION,
            videos=_decode_records_strict(cast(list[object], parsed), default_ms=default_ms),
            fetched_at=None,
        )

    if not isinstance(parsed, dict):
        raise CachePayloadError(f"unsupported cache payload type: {type(parsed).__name__}")

    envelope = cast(dict[str, Any], parsed)
    version = envelope.get("version", CACHE_FORMAT_VERSION)
    if isinstance(version, bool) or version != CACHE_FORMAT_VERSION:
        raise CachePayloadError(f"unsupported cache payload version: {version!r}")

    raw_videos = envelope.get("videos")
    if not isinstance(raw_videos, list):
        raise CachePayloadError("cache envelope is missing its videos array")

    timestamp = envelope.get("timestamp")
    if isinstance(timestamp, bool) or not isinstance(timestamp, int | float):
        raise CachePayloadError("cache envelope is missing its timestamp")
    if isinstance(timestamp, float) and not math.isfinite(timestamp):
        raise CachePayloadError(f"cache envelope timestamp is not finite: {timestamp!r}")

    return DecodedCachePayload(
        version=CACHE_FORMAT_VERSION,
        videos=_decode_records_strict(cast(list[object], raw_videos), default_ms=default_ms),
        fetched_at=int(timestamp),
    )


def best_effort_videos(raw_payload: str, *, default_ms: int) -> list[VideoRecord]:
    """Salvage whatever records a payload of unknown shape still holds."""
    try:
        parsed = cast(object, json.loads(raw_payload))
    except (ValueError, RecursionError):
        return []

    raw_items: list[object] = []
    if isinstance(parsed, list):
        raw_items = cast(list[object], parsed)
    elif isinstance(parsed, dict):
        candidate = cast(dict[str, object], parsed).get("videos")
        if isinstance(candidate, list):
            raw_items = cast(list[object], candidate)

    videos: list[VideoRecord] = []
    for raw_item in raw_items:
        video = video_from_dict(raw_item, default_ms=default_ms)
        if video is not None:
            videos.append(video)
    return videos


class ChannelVideoCache:
    """Read-through, time-invalidated cache of every video of a channel.

    Lookups never raise. A stale entry is refreshed from the source, but a
    refresh that fails or comes back empty keeps the previous videos. Refresh
    is a plain read-then-write on one key; concurrent refreshes of the same
    channel race and the last writer wins.
    """

    def __init__(
        self,
        repository: ChannelCacheRepository,
        fetcher: ChannelVideoFetcher,
        *,
        ttl_seconds: int = DEFAULT_CHANNEL_CACHE_TTL_SECONDS,
        now_ms: Callable[[], int] = utc_now_ms,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._repository = repository
        self._fetcher = fetcher
        self._ttl_ms = max(0, ttl_seconds) * 1000
        self._now_ms = now_ms
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()

    def get_videos(self, channel_id: str) -> list[VideoRecord]:
        return self.get_videos_with_metadata(channel_id).videos

    def get_videos_with_metadata(self, channel_id: str) -> ChannelVideosResult:
        result = self._lookup(channel_id)
        self._telemetry.emit(
            "channel_cache.lookup",
            channel_id=channel_id,
            state=result.state,
            refreshed=result.refreshed,
            video_count=len(result.videos),
        )
        return result

    def get_entry(self, channel_id: str) -> ChannelCacheEntry | None:
        raw_payload = self._read_payload(channel_id)
        if raw_payload is None:
            return None
        try:
            decoded = decode_cache_payload(raw_payload, default_ms=self._now_ms())
        except _PAYLOAD_DECODE_ERRORS:
            return None
        if decoded.fetched_at is None:
            return None
        return ChannelCacheEntry(
            channel_id=channel_id,
            videos=decoded.videos,
            fetched_at=decoded.fetched_at,
        )

    def _lookup(self, channel_id: str) -> ChannelVideosResult:
        now = self._now_ms()
        raw_payload = self._read_payload(channel_id)
        if raw_payload is None:
            LOGGER.info("channel cache miss channel_id=%s", channel_id)
            return self._fill_missing(channel_id)

        try:
            decoded = decode_cache_payload(raw_payload, default_ms=now)
        except _PAYLOAD_DECODE_ERRORS:
            LOGGER.warning(
                "channel cache payload unreadable; returning best-effort videos channel_id=%s",
                channel_id,
                exc_info=True,
            )
            return ChannelVideosResult(
                channel_id=channel_id,
                videos=best_effort_videos(raw_payload, default_ms=now),
                state="corrupt",
                refreshed=False,
                fetched_at=None,
            )

        if decoded.version == LEGACY_CACHE_FORMAT_VERSION or decoded.fetched_at is None:
            LOGGER.info(
                "channel cache legacy payload channel_id=%s videos=%s",
                channel_id,
                len(decoded.videos),
            )
            return ChannelVideosResult(
                channel_id=channel_id,
                videos=decoded.videos,
                state="legacy",
                refreshed=False,
                fetched_at=None,
            )

        age_ms = now - decoded.fetched_at
        # Future timestamps never count as fresh.
        if decoded.videos and 0 <= age_ms < self._ttl_ms:
            LOGGER.info(
                "channel cache fresh channel_id=%s age_ms=%s videos=%s",
                channel_id,
                age_ms,
                len(decoded.videos),
            )
            return ChannelVideosResult(
                channel_id=channel_id,
                videos=decoded.videos,
                state="fresh",
                refreshed=False,
                fetched_at=decoded.fetched_at,
            )

        LOGGER.info(
            "channel cache stale channel_id=%s age_ms=%s; refreshing from source",
            channel_id,
            age_ms,
        )
        return self._refresh_stale(
            ChannelCacheEntry(
                channel_id=channel_id,
                videos=decoded.videos,
                fetched_at=decoded.fetched_at,
            )
        )

    def _fill_missing(self, channel_id: str) -> ChannelVideosResult:
        fetch = self._fetch(channel_id)
        if fetch is None or not fetch.videos:
            LOGGER.info("channel has no videos to cache channel_id=%s", channel_id)
            return ChannelVideosResult(
                channel_id=channel_id,
                videos=[],
                state="missing",
                refreshed=False,
                fetched_at=None,
            )

        fetched_at = self._now_ms()
        self._write_entry(channel_id, fetch.videos, fetched_at=fetched_at)
        return ChannelVideosResult(
            channel_id=channel_id,
            videos=fetch.videos,
            state="missing",
            refreshed=True,
            fetched_at=fetched_at,
        )

    def _refresh_stale(self, entry: ChannelCacheEntry) -> ChannelVideosResult:
        fetch = self._fetch(entry.channel_id)
        if fetch is None or not fetch.videos:
            LOGGER.warning(
                "channel cache refresh yielded nothing; keeping stale videos "
                "channel_id=%s videos=%s",
                entry.channel_id,
                len(entry.videos),
            )
            return ChannelVideosResult(
                channel_id=entry.channel_id,
                videos=entry.videos,
                state="stale",
                refreshed=False,
                fetched_at=entry.fetched_at,
            )

        fetched_at = self._now_ms()
        self._write_entry(entry.channel_id, fetch.videos, fetched_at=fetched_at)
        return ChannelVideosResult(
            channel_id=entry.channel_id,
            videos=fetch.videos,
            state="stale",
            refreshed=True,
            fetched_at=fetched_at,
        )

    def _fetch(self, channel_id: str) -> ChannelFetchResult | None:
        try:
            return self._fetcher.fetch_channel_videos(channel_id)
        except Exception:
            LOGGER.warning("channel fetch raised channel_id=%s", channel_id, exc_info=True)
            return None

    def _read_payload(self, channel_id: str) -> str | None:
        try:
            return self._repository.get_payload(channel_cache_key(channel_id))
        except Exception:
            LOGGER.warning(
                "channel cache read failed; treating as miss channel_id=%s",
                channel_id,
                exc_info=True,
            )
            return None

    def _write_entry(self, channel_id: str, videos: list[VideoRecord], *, fetched_at: int) -> None:
        try:
            self._repository.set_payload(
                channel_cache_key(channel_id),
                encode_cache_payload(videos, fetched_at=fetched_at),
            )
        except Exception:
            LOGGER.warning(
                "channel cache write failed channel_id=%s videos=%s",
                channel_id,
                len(videos),
                exc_info=True,
            )
            return
        LOGGER.info(
            "channel cache updated channel_id=%s videos=%s fetched_at=%s",
            channel_id,
            len(videos),
            fetched_at,
        )


def _decode_records_strict(raw_items: list[object], *, default_ms: int) -> list[VideoRecord]:
    videos: list[VideoRecord] = []
    for index, raw_item in enumerate(raw_items):
        video = video_from_dict(raw_item, default_ms=default_ms)
        if video is None:
            raise CachePayloadError(f"cache payload item {index} is not a video record")
        videos.append(video)
    return videos

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from time import perf_counter

from backend.app.services.channel_cache import ChannelVideoCache
from backend.app.services.youtube_records import VideoRecord
from backend.app.telemetry import TelemetryClient

LOGGER = logging.getLogger("tubelist.aggregator")


class VideoAggregator:
    """Merges the cached videos of several channels into one newest-first feed.

    Channels are looked up one at a time in the given order unless
    `max_workers` is above one, in which case lookups run on a bounded thread
    pool. Either way the merged output is sorted by `published_at`
    descending, with ties kept in channel order.
    """

    def __init__(
        self,
        channel_cache: ChannelVideoCache,
        *,
        max_workers: int = 1,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._channel_cache = channel_cache
        self._max_workers = max(1, max_workers)
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()

    def get_videos(self, channel_ids: Sequence[str]) -> list[VideoRecord]:
        started_at = perf_counter()
        if self._max_workers == 1 or len(channel_ids) <= 1:
            per_channel = [self._channel_cache.get_videos(channel_id) for channel_id in channel_ids]
        else:
            workers = min(self._max_workers, len(channel_ids))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="tubelist-feed") as pool:
                per_channel = list(pool.map(self._channel_cache.get_videos, channel_ids))

        videos: list[VideoRecord] = []
        for channel_videos in per_channel:
            videos.extend(channel_videos)
        merged = sort_newest_first(videos)

        duration_ms = int((perf_counter() - started_at) * 1000)
        LOGGER.info(
            "video feed aggregated channels=%s videos=%s duration_ms=%s",
            len(channel_ids),
            len(merged),
            duration_ms,
        )
        self._telemetry.emit(
            "video_feed.aggregate",
            channel_count=len(channel_ids),
            video_count=len(merged),
            duration_ms=duration_ms,
        )
        return merged


def sort_newest_first(videos: Sequence[VideoRecord]) -> list[VideoRecord]:
    return sorted(videos, key=lambda video: video.published_at, reverse=True)

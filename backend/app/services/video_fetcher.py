from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from backend.app.repositories.common import utc_now_ms
from backend.app.services.youtube_records import VideoRecord, normalize_video
from backend.app.services.youtube_source import MAX_RESULTS_PER_PAGE, ContentSource

LOGGER = logging.getLogger("tubelist.fetcher")

FetchStopReason = Literal["exhausted", "error", "max_pages", "deadline", "repeated_token"]


@dataclass(frozen=True)
class ChannelFetchResult:
    channel_id: str
    videos: list[VideoRecord]
    pages_fetched: int
    stop_reason: FetchStopReason
    error: str | None = None

    @property
    def complete(self) -> bool:
        return self.stop_reason == "exhausted"


class ChannelVideoFetcher:
    """Walks a channel's newest-first search listing until the source runs dry.

    Each search page yields video IDs which are resolved in batches through
    `videos.list`. Errors never escape: whatever was accumulated before the
    failure is returned. The loop also stops on a page cap, a wall-clock
    deadline, or a continuation token the source already handed out.
    """

    def __init__(
        self,
        source: ContentSource,
        *,
        batch_size: int = MAX_RESULTS_PER_PAGE,
        max_pages: int = 200,
        deadline_seconds: float = 120.0,
        now_ms: Callable[[], int] = utc_now_ms,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._batch_size = max(1, min(MAX_RESULTS_PER_PAGE, batch_size))
        self._max_pages = max(1, max_pages)
        self._deadline_seconds = max(1.0, deadline_seconds)
        self._now_ms = now_ms
        self._monotonic = monotonic

    def fetch_all_videos(self, channel_id: str) -> list[VideoRecord]:
        return self.fetch_channel_videos(channel_id).videos

    def fetch_channel_videos(self, channel_id: str) -> ChannelFetchResult:
        videos: list[VideoRecord] = []
        seen_tokens: set[str] = set()
        page_token: str | None = None
        pages_fetched = 0
        started_at = self._monotonic()

        while True:
            if pages_fetched >= self._max_pages:
                return self._stopped(channel_id, videos, pages_fetched, "max_pages")
            if self._monotonic() - started_at >= self._deadline_seconds:
                return self._stopped(channel_id, videos, pages_fetched, "deadline")

            try:
                page = self._source.search_channel_videos(channel_id, page_token=page_token)
                pages_fetched += 1
                fetched_at_ms = self._now_ms()
                for start in range(0, len(page.video_ids), self._batch_size):
                    chunk = page.video_ids[start : start + self._batch_size]
                    for item in self._source.list_videos(chunk):
                        video = normalize_video(
                            item,
                            channel_id=channel_id,
                            fetched_at_ms=fetched_at_ms,
                        )
                        if video is not None:
                            videos.append(video)
            except Exception as exc:
                LOGGER.warning(
                    "youtube fetch failed channel_id=%s pages=%s accumulated=%s",
                    channel_id,
                    pages_fetched,
                    len(videos),
                    exc_info=True,
                )
                return ChannelFetchResult(
                    channel_id=channel_id,
                    videos=videos,
                    pages_fetched=pages_fetched,
                    stop_reason="error",
                    error=str(exc) or type(exc).__name__,
                )

            next_token = page.next_page_token
            if next_token is None:
                LOGGER.info(
                    "youtube fetch complete channel_id=%s pages=%s videos=%s",
                    channel_id,
                    pages_fetched,
                    len(videos),
                )
                return ChannelFetchResult(
                    channel_id=channel_id,
                    videos=videos,
                    pages_fetched=pages_fetched,
                    stop_reason="exhausted",
                )
            if next_token in seen_tokens:
                return self._stopped(channel_id, videos, pages_fetched, "repeated_token")
            seen_tokens.add(next_token)
            page_token = next_token

    def _stopped(
        self,
        channel_id: str,
        videos: list[VideoRecord],
        pages_fetched: int,
        stop_reason: FetchStopReason,
    ) -> ChannelFetchResult:
        LOGGER.warning(
            "youtube fetch stopped early channel_id=%s reason=%s pages=%s videos=%s",
            channel_id,
            stop_reason,
            pages_fetched,
            len(videos),
        )
        return ChannelFetchResult(
            channel_id=channel_id,
            videos=videos,
            pages_fetched=pages_fetched,
            stop_reason=stop_reason,
        )

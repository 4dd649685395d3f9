from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from backend.app.services.youtube_source import VideoSearchPage, YouTubeSourceError


def make_video_item(
    video_id: str,
    *,
    published_at: str | None = "2026-01-01T00:00:00Z",
    **overrides: Any,
) -> dict[str, Any]:
    snippet: dict[str, Any] = {
        "title": f"Video {video_id}",
        "description": f"About {video_id}",
        "channelTitle": "Test Channel",
        "liveBroadcastContent": "none",
        "thumbnails": {
            "default": {"url": f"https://i.ytimg.com/vi/{video_id}/default.jpg"},
            "medium": {"url": f"https://i.ytimg.com/vi/{video_id}/mqdefault.jpg"},
            "high": {"url": f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg"},
        },
    }
    if published_at is not None:
        snippet["publishedAt"] = published_at
    item: dict[str, Any] = {
        "id": video_id,
        "snippet": snippet,
        "statistics": {"viewCount": "10", "likeCount": "2"},
        "contentDetails": {"duration": "PT4M13S"},
    }
    item.update(overrides)
    return item


def iso_from_ms(epoch_ms: int) -> str:
    moment = datetime(1970, 1, 1, tzinfo=UTC) + timedelta(milliseconds=epoch_ms)
    return moment.isoformat()


class FakeClock:
    def __init__(self, now_ms: int) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, *, hours: float = 0, seconds: float = 0) -> None:
        self.now_ms += int((hours * 3600 + seconds) * 1000)


class FakeContentSource:
    """In-memory stand-in for the YouTube Data API boundary.

    Channel videos are registered as pages; page N is reached with the token
    `"<channel_id>:page:<N>"`.
    """

    def __init__(self) -> None:
        self._pages: dict[str, list[list[str]]] = {}
        self._video_items: dict[str, dict[str, Any]] = {}
        self.failing_channels: set[str] = set()
        self.fail_on_page: dict[str, int] = {}
        self.fail_video_details = False
        self.repeating_token_channels: set[str] = set()
        self.channel_search_results: list[str] = []
        self.channel_items: dict[str, dict[str, Any]] = {}
        self.fail_channel_calls = False
        self.search_calls: list[tuple[str, str | None]] = []
        self.video_detail_calls: list[list[str]] = []
        self.channel_search_calls: list[str] = []
        self.channel_detail_calls: list[list[str]] = []

    def add_channel_pages(self, channel_id: str, pages: list[list[dict[str, Any]]]) -> None:
        self._pages[channel_id] = []
        for page in pages:
            page_ids: list[str] = []
            for item in page:
                video_id = str(item["id"])
                self._video_items[video_id] = item
                page_ids.append(video_id)
            self._pages[channel_id].append(page_ids)

    def search_channel_videos(
        self,
        channel_id: str,
        *,
        page_token: str | None = None,
    ) -> VideoSearchPage:
        self.search_calls.append((channel_id, page_token))
        if channel_id in self.failing_channels:
            raise YouTubeSourceError(f"quota exceeded for {channel_id}")

        page_index = 0 if page_token is None else int(page_token.rsplit(":", 1)[-1])
        if self.fail_on_page.get(channel_id) == page_index:
            raise YouTubeSourceError(f"page {page_index} failed for {channel_id}")

        pages = self._pages.get(channel_id, [])
        if page_index >= len(pages):
            return VideoSearchPage(video_ids=[], next_page_token=None)

        if channel_id in self.repeating_token_channels:
            next_token: str | None = f"{channel_id}:page:0"
        elif page_index + 1 < len(pages):
            next_token = f"{channel_id}:page:{page_index + 1}"
        else:
            next_token = None
        return VideoSearchPage(video_ids=list(pages[page_index]), next_page_token=next_token)

    def list_videos(self, video_ids: list[str]) -> list[dict[str, Any]]:
        self.video_detail_calls.append(list(video_ids))
        if self.fail_video_details:
            raise YouTubeSourceError("videos.list failed")
        return [self._video_items[video_id] for video_id in video_ids if video_id in self._video_items]

    def search_channels(self, query: str) -> list[str]:
        self.channel_search_calls.append(query)
        if self.fail_channel_calls:
            raise YouTubeSourceError("search.list failed")
        return list(self.channel_search_results)

    def list_channels(self, channel_ids: list[str]) -> list[dict[str, Any]]:
        self.channel_detail_calls.append(list(channel_ids))
        if self.fail_channel_calls:
            raise YouTubeSourceError("channels.list failed")
        return [
            self.channel_items[channel_id]
            for channel_id in channel_ids
            if channel_id in self.channel_items
        ]

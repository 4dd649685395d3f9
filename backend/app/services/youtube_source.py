from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from importlib import import_module
from typing import Any, Protocol, cast

MAX_RESULTS_PER_PAGE = 50
CHANNEL_PARTS = "id,snippet,statistics,brandingSettings"
VIDEO_DETAIL_PARTS = "id,contentDetails,liveStreamingDetails,localizations,snippet,statistics"


class YouTubeSourceError(Exception):
    pass


class YouTubeQuotaExceededError(YouTubeSourceError):
    pass


@dataclass(frozen=True)
class VideoSearchPage:
    video_ids: list[str]
    next_page_token: str | None


class ContentSource(Protocol):
    def search_channel_videos(
        self,
        channel_id: str,
        *,
        page_token: str | None = None,
    ) -> VideoSearchPage:
        ...

    def list_videos(self, video_ids: list[str]) -> list[dict[str, Any]]:
        ...

    def search_channels(self, query: str) -> list[str]:
        ...

    def list_channels(self, channel_ids: list[str]) -> list[dict[str, Any]]:
        ...


class YouTubeDataApiSource:
    """API-key backed client for the read-only YouTube Data API v3 calls we use.

    Every failure of the underlying client is re-raised as `YouTubeSourceError`
    so callers can treat the source as opaque.
    """

    def __init__(self, api_key: str | None, *, client: Any | None = None) -> None:
        self._api_key = api_key
        self._client = client

    def search_channel_videos(
        self,
        channel_id: str,
        *,
        page_token: str | None = None,
    ) -> VideoSearchPage:
        query_kwargs: dict[str, object] = {
            "part": "id,snippet",
            "channelId": channel_id,
            "type": "video",
            "order": "date",
            "maxResults": MAX_RESULTS_PER_PAGE,
        }
        if page_token is not None:
            query_kwargs["pageToken"] = page_token

        response = self._execute(
            "search.list",
            lambda client: client.search().list(**query_kwargs).execute(),
        )

        video_ids: list[str] = []
        for item in _as_list(response.get("items")):
            video_id = _as_dict(_as_dict(item).get("id")).get("videoId")
            if isinstance(video_id, str) and video_id.strip():
                video_ids.append(video_id)

        raw_next = response.get("nextPageToken")
        next_page_token = raw_next if isinstance(raw_next, str) and raw_next.strip() else None
        return VideoSearchPage(video_ids=video_ids, next_page_token=next_page_token)

    def list_videos(self, video_ids: list[str]) -> list[dict[str, Any]]:
        if not video_ids:
            return []
        chunk = video_ids[:MAX_RESULTS_PER_PAGE]
        response = self._execute(
            "videos.list",
            lambda client: client.videos()
            .list(part=VIDEO_DETAIL_PARTS, id=",".join(chunk), maxResults=len(chunk))
            .execute(),
        )
        return [_as_dict(item) for item in _as_list(response.get("items"))]

    def search_channels(self, query: str) -> list[str]:
        response = self._execute(
            "search.list",
            lambda client: client.search()
            .list(part="id,snippet", q=query, type="channel", maxResults=MAX_RESULTS_PER_PAGE)
            .execute(),
        )
        channel_ids: list[str] = []
        for item in _as_list(response.get("items")):
            channel_id = _as_dict(_as_dict(item).get("id")).get("channelId")
            if isinstance(channel_id, str) and channel_id.strip():
                channel_ids.append(channel_id)
        return channel_ids

    def list_channels(self, channel_ids: list[str]) -> list[dict[str, Any]]:
        if not channel_ids:
            return []
        chunk = channel_ids[:MAX_RESULTS_PER_PAGE]
        response = self._execute(
            "channels.list",
            lambda client: client.channels()
            .list(part=CHANNEL_PARTS, id=",".join(chunk), maxResults=len(chunk))
            .execute(),
        )
        return [_as_dict(item) for item in _as_list(response.get("items"))]

    def _execute(self, operation: str, call: Callable[[Any], object]) -> dict[str, Any]:
        client = self._get_client()
        try:
            response = call(client)
        except Exception as exc:
            message = f"YouTube {operation} failed: {_summarize_exception_message(exc)}"
            if _is_youtube_data_api_rate_limit_error(exc):
                raise YouTubeQuotaExceededError(message) from exc
            raise YouTubeSourceError(message) from exc
        return _as_dict(response)

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = _build_youtube_client(self._api_key)
        return self._client


def _build_youtube_client(api_key: str | None) -> Any:
    if not api_key:
        raise YouTubeSourceError("YouTube Data API key is not configured")
    try:
        discovery_module = import_module("googleapiclient.discovery")
    except ImportError as exc:  # pragma: no cover - dependency controlled at runtime
        raise YouTubeSourceError(
            "YouTube source requires the google-api-python-client dependency"
        ) from exc

    build_fn: Any = discovery_module.build
    try:
        return build_fn("youtube", "v3", developerKey=api_key, cache_discovery=False)
    except Exception as exc:
        raise YouTubeSourceError(
            f"Failed to build YouTube client: {_summarize_exception_message(exc)}"
        ) from exc


def _is_youtube_data_api_rate_limit_error(exc: Exception) -> bool:
    class_name = exc.__class__.__name__.lower()
    message = str(exc).lower()
    if "rate" in class_name and "limit" in class_name:
        return True

    markers = (
        "quotaexceeded",
        "dailylimitexceeded",
        "ratelimitexceeded",
        "userratelimitexceeded",
        "quota exceeded",
        "rate limit exceeded",
        "too many requests",
        "http error 429",
        "status code 429",
    )
    return any(marker in message for marker in markers)


def _summarize_exception_message(exc: Exception, *, max_length: int = 400) -> str:
    raw = str(exc).strip()
    if not raw:
        raw = repr(exc)
    if len(raw) <= max_length:
        return raw
    return f"{raw[: max_length - 3]}..."


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        raw_dict = cast(dict[object, object], value)
        converted: dict[str, Any] = {}
        for key, item in raw_dict.items():
            if isinstance(key, str):
                converted[key] = item
        return converted
    return {}


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        raw_list = cast(list[Any], value)
        return list(raw_list)
    return []

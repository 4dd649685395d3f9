from __future__ import annotations

import types
from typing import Any

import pytest

from backend.app.services import youtube_source
from backend.app.services.youtube_source import (
    YouTubeDataApiSource,
    YouTubeQuotaExceededError,
    YouTubeSourceError,
)


class _FakeRequest:
    def __init__(self, response: dict[str, Any] | Exception) -> None:
        self._response = response

    def execute(self) -> dict[str, Any]:
        if isinstance(self._response, Exception):
            raise self._response
        return self._response


class _FakeResource:
    def __init__(self, name: str, client: _FakeYouTubeClient) -> None:
        self._name = name
        self._client = client

    def list(self, **kwargs: Any) -> _FakeRequest:
        self._client.calls.append((self._name, kwargs))
        return _FakeRequest(self._client.responses[self._name].pop(0))


class _FakeYouTubeClient:
    def __init__(self, responses: dict[str, list[dict[str, Any] | Exception]]) -> None:
        self.responses = responses
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def search(self) -> _FakeResource:
        return _FakeResource("search", self)

    def videos(self) -> _FakeResource:
        return _FakeResource("videos", self)

    def channels(self) -> _FakeResource:
        return _FakeResource("channels", self)


class HttpError(Exception):
    pass


def test_search_channel_videos_reads_ids_and_token() -> None:
    client = _FakeYouTubeClient(
        {
            "search": [
                {
                    "items": [
                        {"id": {"kind": "youtube#video", "videoId": "vid_1"}},
                        {"id": {"kind": "youtube#video"}},
                        {"id": {"kind": "youtube#video", "videoId": "vid_2"}},
                    ],
                    "nextPageToken": "CAUQAA",
                }
            ]
        }
    )
    source = YouTubeDataApiSource("key", client=client)

    page = source.search_channel_videos("UC_a", page_token="CAIQAA")

    assert page.video_ids == ["vid_1", "vid_2"]
    assert page.next_page_token == "CAUQAA"
    name, kwargs = client.calls[0]
    assert name == "search"
    assert kwargs["channelId"] == "UC_a"
    assert kwargs["order"] == "date"
    assert kwargs["type"] == "video"
    assert kwargs["maxResults"] == 50
    assert kwargs["pageToken"] == "CAIQAA"


def test_last_search_page_has_no_token() -> None:
    client = _FakeYouTubeClient({"search": [{"items": []}]})

    page = YouTubeDataApiSource("key", client=client).search_channel_videos("UC_a")

    assert page.video_ids == []
    assert page.next_page_token is None
    assert "pageToken" not in client.calls[0][1]


def test_list_videos_joins_ids_and_requests_detail_parts() -> None:
    client = _FakeYouTubeClient({"videos": [{"items": [{"id": "vid_1"}, {"id": "vid_2"}]}]})

    items = YouTubeDataApiSource("key", client=client).list_videos(["vid_1", "vid_2"])

    assert [item["id"] for item in items] == ["vid_1", "vid_2"]
    kwargs = client.calls[0][1]
    assert kwargs["id"] == "vid_1,vid_2"
    assert "liveStreamingDetails" in kwargs["part"]


def test_list_videos_with_no_ids_skips_api() -> None:
    client = _FakeYouTubeClient({})

    assert YouTubeDataApiSource("key", client=client).list_videos([]) == []
    assert client.calls == []


def test_search_channels_and_list_channels() -> None:
    client = _FakeYouTubeClient(
        {
            "search": [{"items": [{"id": {"channelId": "UC_1"}}, {"id": {"channelId": "UC_2"}}]}],
            "channels": [{"items": [{"id": "UC_1"}, {"id": "UC_2"}]}],
        }
    )
    source = YouTubeDataApiSource("key", client=client)

    assert source.search_channels("cooking") == ["UC_1", "UC_2"]
    assert [item["id"] for item in source.list_channels(["UC_1", "UC_2"])] == ["UC_1", "UC_2"]
    assert client.calls[0][1]["type"] == "channel"
    assert client.calls[1][1]["part"] == "id,snippet,statistics,brandingSettings"


def test_quota_errors_map_to_quota_exceeded() -> None:
    client = _FakeYouTubeClient(
        {"search": [HttpError('<HttpError 403 "The request cannot be completed: quotaExceeded">')]}
    )

    with pytest.raises(YouTubeQuotaExceededError):
        YouTubeDataApiSource("key", client=client).search_channel_videos("UC_a")


def test_other_client_errors_map_to_source_error() -> None:
    client = _FakeYouTubeClient({"videos": [RuntimeError("connection reset")]})

    with pytest.raises(YouTubeSourceError) as exc_info:
        YouTubeDataApiSource("key", client=client).list_videos(["vid_1"])

    assert not isinstance(exc_info.value, YouTubeQuotaExceededError)
    assert "videos.list" in str(exc_info.value)


def test_missing_api_key_fails_on_first_call() -> None:
    with pytest.raises(YouTubeSourceError, match="not configured"):
        YouTubeDataApiSource(None).search_channels("cooking")


def test_client_is_built_lazily_with_developer_key(monkeypatch: pytest.MonkeyPatch) -> None:
    built: list[dict[str, Any]] = []
    fake_client = _FakeYouTubeClient({"channels": [{"items": []}]})

    def _build(service_name: str, version: str, **kwargs: Any) -> _FakeYouTubeClient:
        built.append({"service": service_name, "version": version, **kwargs})
        return fake_client

    def _import_module(name: str) -> types.SimpleNamespace:
        assert name == "googleapiclient.discovery"
        return types.SimpleNamespace(build=_build)

    monkeypatch.setattr(youtube_source, "import_module", _import_module)
    source = YouTubeDataApiSource("key-123")
    assert built == []

    source.list_channels(["UC_1"])
    source.list_channels([])

    assert built == [
        {
            "service": "youtube",
            "version": "v3",
            "developerKey": "key-123",
            "cache_discovery": False,
        }
    ]

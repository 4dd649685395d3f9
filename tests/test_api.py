from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from backend.app.dependencies import (
    get_channel_search,
    get_list_repository,
    get_video_aggregator,
)
from backend.app.main import create_app
from backend.app.repositories.channel_cache_repository import ChannelCacheRepository
from backend.app.repositories.database import Database
from backend.app.repositories.list_repository import ListRepository
from backend.app.services.channel_cache import ChannelVideoCache
from backend.app.services.channel_search import ChannelSearchService
from backend.app.services.video_aggregator import VideoAggregator
from backend.app.services.video_fetcher import ChannelVideoFetcher
from tests.support import FakeClock, FakeContentSource, iso_from_ms, make_video_item

START_MS = 1_767_225_600_000


@pytest.fixture
def source() -> FakeContentSource:
    fake = FakeContentSource()
    fake.add_channel_pages(
        "UC_a",
        [
            [
                make_video_item("a_old", published_at=iso_from_ms(100)),
                make_video_item("a_new", published_at=iso_from_ms(300)),
            ]
        ],
    )
    fake.add_channel_pages("UC_b", [[make_video_item("b_mid", published_at=iso_from_ms(200))]])
    fake.channel_search_results = ["UC_a"]
    fake.channel_items = {
        "UC_a": {
            "id": "UC_a",
            "snippet": {"title": "Channel A", "customUrl": "@channela"},
            "statistics": {"subscriberCount": "12"},
        }
    }
    return fake


@pytest.fixture
def list_repository(database: Database) -> ListRepository:
    return ListRepository(database)


@pytest.fixture
def client(
    source: FakeContentSource,
    database: Database,
    list_repository: ListRepository,
) -> Iterator[TestClient]:
    clock = FakeClock(START_MS)
    cache = ChannelVideoCache(
        ChannelCacheRepository(database),
        ChannelVideoFetcher(source, now_ms=clock),
        now_ms=clock,
    )
    app = create_app()
    app.dependency_overrides[get_video_aggregator] = lambda: VideoAggregator(cache)
    app.dependency_overrides[get_channel_search] = lambda: ChannelSearchService(source)
    app.dependency_overrides[get_list_repository] = lambda: list_repository
    with TestClient(app) as test_client:
        yield test_client


def _video_ids(videos: list[dict[str, Any]]) -> list[str]:
    return [str(video["videoId"]) for video in videos]


def test_health_check(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Request-ID"]


def test_request_id_is_echoed(client: TestClient) -> None:
    response = client.get("/health", headers={"X-Request-ID": "req-abc"})

    assert response.headers["X-Request-ID"] == "req-abc"


def test_feed_endpoint_merges_channels(client: TestClient) -> None:
    response = client.get("/videos", params=[("channel_id", "UC_a"), ("channel_id", "UC_b")])

    assert response.status_code == 200
    body = response.json()
    assert _video_ids(body) == ["a_new", "b_mid", "a_old"]
    assert body[0]["publishedAt"] == 300
    assert body[0]["channelId"] == "UC_a"
    assert body[0]["thumbnails"]["high"].endswith("/hqdefault.jpg")
    assert body[0]["livestream"] is None


def test_feed_endpoint_without_channels_is_empty(client: TestClient) -> None:
    response = client.get("/videos")

    assert response.status_code == 200
    assert response.json() == []


def test_channel_videos_endpoint(client: TestClient) -> None:
    response = client.get("/channels/UC_b/videos")

    assert response.status_code == 200
    assert _video_ids(response.json()) == ["b_mid"]


def test_channel_search_endpoint(client: TestClient, source: FakeContentSource) -> None:
    response = client.get("/channels/search", params={"q": "channel"})

    assert response.status_code == 200
    body = response.json()
    assert [item["originId"] for item in body] == ["UC_a"]
    assert body[0]["subscriberCount"] == 12
    assert body[0]["customUrl"] == "@channela"
    assert source.channel_search_calls == ["channel"]


def test_channel_search_source_failure_is_bad_gateway(
    client: TestClient,
    source: FakeContentSource,
) -> None:
    source.fail_channel_calls = True

    response = client.get("/channels/search", params={"q": "channel"})

    assert response.status_code == 502


def test_channel_detail_endpoint(client: TestClient) -> None:
    found = client.get("/channels/UC_a")
    missing = client.get("/channels/UC_zzz")

    assert found.status_code == 200
    assert found.json()["name"] == "Channel A"
    assert missing.status_code == 404


def test_list_feed_by_id(client: TestClient, list_repository: ListRepository) -> None:
    channel_list = list_repository.create_list(user_id="user_1", slug="mix", title="Mix")
    list_repository.add_channel(list_id=channel_list.list_id, origin_id="UC_b")
    list_repository.add_channel(list_id=channel_list.list_id, origin_id="UC_a")

    response = client.get(f"/lists/{channel_list.list_id}/videos")

    assert response.status_code == 200
    body = response.json()
    assert body["listId"] == channel_list.list_id
    assert body["title"] == "Mix"
    assert body["channelIds"] == ["UC_b", "UC_a"]
    assert _video_ids(body["videos"]) == ["a_new", "b_mid", "a_old"]


def test_list_feed_by_owner(client: TestClient, list_repository: ListRepository) -> None:
    list_repository.create_account(user_id="user_1", username="chef")
    channel_list = list_repository.create_list(user_id="user_1", slug="mix", title="Mix")
    list_repository.add_channel(list_id=channel_list.list_id, origin_id="UC_b")

    response = client.get("/users/chef/lists/mix/videos")

    assert response.status_code == 200
    assert _video_ids(response.json()["videos"]) == ["b_mid"]


def test_unknown_list_yields_empty_feed(client: TestClient) -> None:
    response = client.get("/lists/list_missing/videos")

    assert response.status_code == 200
    assert response.json() == {
        "listId": None,
        "title": None,
        "channelIds": [],
        "videos": [],
    }

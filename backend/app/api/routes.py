from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from structlog.contextvars import bind_contextvars, reset_contextvars

from backend.app.dependencies import (
    get_channel_search,
    get_list_repository,
    get_video_aggregator,
)
from backend.app.models.feed_contracts import (
    ChannelMetaResponse,
    ListFeedResponse,
    VideoResponse,
)
from backend.app.repositories.list_repository import ListRepository, ListResolution
from backend.app.services.channel_search import ChannelSearchService
from backend.app.services.video_aggregator import VideoAggregator
from backend.app.services.youtube_source import YouTubeSourceError

router = APIRouter()


def _list_feed(resolution: ListResolution, aggregator: VideoAggregator) -> ListFeedResponse:
    channel_list = resolution.channel_list
    context_tokens = bind_contextvars(
        list_id=channel_list.list_id if channel_list is not None else None,
        channel_count=len(resolution.channel_ids),
    )
    try:
        videos = aggregator.get_videos(resolution.channel_ids)
    finally:
        reset_contextvars(**context_tokens)
    return ListFeedResponse(
        list_id=channel_list.list_id if channel_list is not None else None,
        title=channel_list.title if channel_list is not None else None,
        channel_ids=resolution.channel_ids,
        videos=[VideoResponse.from_record(video) for video in videos],
    )


@router.get(
    "/videos",
    response_model=list[VideoResponse],
    tags=["videos"],
    operation_id="list_channel_feed",
)
def list_channel_feed(
    aggregator: Annotated[VideoAggregator, Depends(get_video_aggregator)],
    channel_id: Annotated[list[str] | None, Query()] = None,
) -> list[VideoResponse]:
    videos = aggregator.get_videos(channel_id or [])
    return [VideoResponse.from_record(video) for video in videos]


@router.get(
    "/channels/search",
    response_model=list[ChannelMetaResponse],
    tags=["channels"],
    operation_id="search_channels",
)
def search_channels(
    search: Annotated[ChannelSearchService, Depends(get_channel_search)],
    q: Annotated[str, Query(max_length=200)] = "",
) -> list[ChannelMetaResponse]:
    try:
        channels = search.search_channels(q)
    except YouTubeSourceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return [ChannelMetaResponse.from_meta(channel) for channel in channels]


@router.get(
    "/channels/{channel_id}",
    response_model=ChannelMetaResponse,
    tags=["channels"],
    operation_id="get_channel",
)
def get_channel(
    channel_id: str,
    search: Annotated[ChannelSearchService, Depends(get_channel_search)],
) -> ChannelMetaResponse:
    try:
        channel = search.get_channel(channel_id)
    except YouTubeSourceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    if channel is None:
        raise HTTPException(status_code=404, detail=f"Channel not found: {channel_id}")
    return ChannelMetaResponse.from_meta(channel)


@router.get(
    "/channels/{channel_id}/videos",
    response_model=list[VideoResponse],
    tags=["videos"],
    operation_id="list_channel_videos",
)
def list_channel_videos(
    channel_id: str,
    aggregator: Annotated[VideoAggregator, Depends(get_video_aggregator)],
) -> list[VideoResponse]:
    videos = aggregator.get_videos([channel_id])
    return [VideoResponse.from_record(video) for video in videos]


@router.get(
    "/lists/{list_id}/videos",
    response_model=ListFeedResponse,
    tags=["lists"],
    operation_id="list_feed_by_id",
)
def list_feed_by_id(
    list_id: str,
    repository: Annotated[ListRepository, Depends(get_list_repository)],
    aggregator: Annotated[VideoAggregator, Depends(get_video_aggregator)],
) -> ListFeedResponse:
    resolution = repository.resolve_channel_ids(list_id=list_id)
    return _list_feed(resolution, aggregator)


@router.get(
    "/users/{username}/lists/{slug}/videos",
    response_model=ListFeedResponse,
    tags=["lists"],
    operation_id="list_feed_by_owner",
)
def list_feed_by_owner(
    username: str,
    slug: str,
    repository: Annotated[ListRepository, Depends(get_list_repository)],
    aggregator: Annotated[VideoAggregator, Depends(get_video_aggregator)],
) -> ListFeedResponse:
    resolution = repository.resolve_channel_ids(username=username, slug=slug)
    return _list_feed(resolution, aggregator)

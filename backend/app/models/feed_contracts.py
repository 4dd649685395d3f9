from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from backend.app.services.youtube_records import ChannelMeta, LivestreamDetails, VideoRecord


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class ThumbnailsResponse(_CamelModel):
    high: str | None = None
    low: str | None = None


class LivestreamResponse(_CamelModel):
    viewers: int = Field(ge=0)
    live_chat_id: str
    actual_start_at: int
    scheduled_start_at: int
    live: bool = False

    @classmethod
    def from_details(cls, details: LivestreamDetails) -> LivestreamResponse:
        return cls(
            viewers=details.viewers,
            live_chat_id=details.live_chat_id,
            actual_start_at=details.actual_start_at,
            scheduled_start_at=details.scheduled_start_at,
            live=details.live,
        )


class VideoResponse(_CamelModel):
    video_id: str
    channel_id: str
    channel_title: str
    title: str
    description: str
    thumbnails: ThumbnailsResponse
    published_at: int
    view_count: int = Field(ge=0)
    likes: int = Field(ge=0)
    duration: str
    upcoming: bool
    livestream: LivestreamResponse | None = None

    @classmethod
    def from_record(cls, video: VideoRecord) -> VideoResponse:
        return cls(
            video_id=video.video_id,
            channel_id=video.channel_id,
            channel_title=video.channel_title,
            title=video.title,
            description=video.description,
            thumbnails=ThumbnailsResponse(high=video.thumbnails.high, low=video.thumbnails.low),
            published_at=video.published_at,
            view_count=video.view_count,
            likes=video.likes,
            duration=video.duration,
            upcoming=video.upcoming,
            livestream=(
                LivestreamResponse.from_details(video.livestream)
                if video.livestream is not None
                else None
            ),
        )


class ChannelMetaResponse(_CamelModel):
    origin_id: str
    name: str
    description: str
    subscriber_count: int = Field(ge=0)
    avatar_url: str
    banner_url: str | None = None
    custom_url: str
    is_verified: bool = False

    @classmethod
    def from_meta(cls, meta: ChannelMeta) -> ChannelMetaResponse:
        return cls(
            origin_id=meta.origin_id,
            name=meta.name,
            description=meta.description,
            subscriber_count=meta.subscriber_count,
            avatar_url=meta.avatar_url,
            banner_url=meta.banner_url,
            custom_url=meta.custom_url,
            is_verified=meta.is_verified,
        )


class ListFeedResponse(_CamelModel):
    list_id: str | None = None
    title: str | None = None
    channel_ids: list[str]
    videos: list[VideoResponse]

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, cast
from urllib.parse import quote

DEFAULT_VIDEO_TITLE = "No Video Title"
DEFAULT_CHANNEL_TITLE = "No Channel Title"
DEFAULT_DURATION = "PT0S"
DEFAULT_CHANNEL_NAME = "No Title"
DEFAULT_CHANNEL_DESCRIPTION = "No description set."
DEFAULT_CUSTOM_URL = "@notfound"
AVATAR_FALLBACK_URL = "https://ui-avatars.com/api/?name={name}"
_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

HIGH_THUMBNAIL_PREFERENCE: tuple[str, ...] = ("maxres", "standard", "high")
LOW_THUMBNAIL_PREFERENCE: tuple[str, ...] = ("medium", "default")
LIVE_THUMBNAIL_MARKER_PATTERN = re.compile(r"_live(?=(?:\.[A-Za-z0-9]+)?(?:[?#].*)?$)")


@dataclass(frozen=True)
class VideoThumbnails:
    high: str | None
    low: str | None


@dataclass(frozen=True)
class LivestreamDetails:
    viewers: int
    live_chat_id: str
    actual_start_at: int
    scheduled_start_at: int
    live: bool = False


@dataclass(frozen=True)
class VideoRecord:
    video_id: str
    channel_id: str
    channel_title: str
    title: str
    description: str
    thumbnails: VideoThumbnails
    published_at: int
    view_count: int
    likes: int
    duration: str
    upcoming: bool
    livestream: LivestreamDetails | None


@dataclass(frozen=True)
class ChannelMeta:
    origin_id: str
    name: str
    description: str
    subscriber_count: int
    avatar_url: str
    banner_url: str | None
    custom_url: str
    is_verified: bool = False


def normalize_video(
    item: Any,
    *,
    channel_id: str,
    fetched_at_ms: int,
) -> VideoRecord | None:
    """Map one `videos.list` item onto a `VideoRecord`.

    Items without an ID are dropped (returns None). Every other missing field
    takes its default; timestamps missing from the source fall back to
    `fetched_at_ms`.
    """
    item_dict = _as_dict(item)
    video_id = _coerce_nonempty_string(item_dict.get("id"))
    if video_id is None:
        return None

    snippet = _as_dict(item_dict.get("snippet"))
    statistics = _as_dict(item_dict.get("statistics"))
    content_details = _as_dict(item_dict.get("contentDetails"))
    broadcast_content = snippet.get("liveBroadcastContent")

    livestream: LivestreamDetails | None = None
    if "liveStreamingDetails" in item_dict and item_dict["liveStreamingDetails"] is not None:
        live_details = _as_dict(item_dict.get("liveStreamingDetails"))
        livestream = LivestreamDetails(
            viewers=parse_count(live_details.get("concurrentViewers")),
            live_chat_id=_coerce_nonempty_string(live_details.get("activeLiveChatId")) or "",
            actual_start_at=parse_timestamp_ms(
                live_details.get("actualStartTime"), default_ms=fetched_at_ms
            ),
            scheduled_start_at=parse_timestamp_ms(
                live_details.get("scheduledStartTime"), default_ms=fetched_at_ms
            ),
            live=broadcast_content == "live",
        )

    return VideoRecord(
        video_id=video_id,
        channel_id=channel_id,
        channel_title=_coerce_nonempty_string(snippet.get("channelTitle"))
        or DEFAULT_CHANNEL_TITLE,
        title=_coerce_nonempty_string(snippet.get("title")) or DEFAULT_VIDEO_TITLE,
        description=_coerce_nonempty_string(snippet.get("description")) or "",
        thumbnails=select_thumbnails(snippet),
        published_at=parse_timestamp_ms(snippet.get("publishedAt"), default_ms=fetched_at_ms),
        view_count=parse_count(statistics.get("viewCount")),
        likes=parse_count(statistics.get("likeCount")),
        duration=_coerce_nonempty_string(content_details.get("duration")) or DEFAULT_DURATION,
        upcoming=broadcast_content == "upcoming",
        livestream=livestream,
    )


def normalize_channel(origin_id: str, item: Any) -> ChannelMeta:
    item_dict = _as_dict(item)
    snippet = _as_dict(item_dict.get("snippet"))
    statistics = _as_dict(item_dict.get("statistics"))
    branding = _as_dict(item_dict.get("brandingSettings"))
    branding_image = _as_dict(branding.get("image"))
    default_thumbnail = _as_dict(_as_dict(snippet.get("thumbnails")).get("default"))

    name = _coerce_nonempty_string(snippet.get("title")) or DEFAULT_CHANNEL_NAME
    avatar_url = _coerce_nonempty_string(default_thumbnail.get("url"))
    if avatar_url is None:
        avatar_url = AVATAR_FALLBACK_URL.format(name=quote(name))

    return ChannelMeta(
        origin_id=origin_id,
        name=name,
        description=_coerce_nonempty_string(snippet.get("description"))
        or DEFAULT_CHANNEL_DESCRIPTION,
        subscriber_count=parse_count(statistics.get("subscriberCount")),
        avatar_url=avatar_url,
        banner_url=_coerce_nonempty_string(branding_image.get("bannerImageUrl")),
        custom_url=_coerce_nonempty_string(snippet.get("customUrl")) or DEFAULT_CUSTOM_URL,
        is_verified=False,
    )


def select_thumbnails(snippet: dict[str, Any]) -> VideoThumbnails:
    thumbnails = _as_dict(snippet.get("thumbnails"))
    high = _first_thumbnail_url(thumbnails, HIGH_THUMBNAIL_PREFERENCE)
    low = _first_thumbnail_url(thumbnails, LOW_THUMBNAIL_PREFERENCE)
    return VideoThumbnails(high=strip_live_marker(high), low=strip_live_marker(low))


def strip_live_marker(url: str | None) -> str | None:
    if url is None:
        return None
    stripped = LIVE_THUMBNAIL_MARKER_PATTERN.sub("", url, count=1)
    return stripped or None


def parse_timestamp_ms(raw_value: object, *, default_ms: int) -> int:
    if not isinstance(raw_value, str) or not raw_value.strip():
        return default_ms
    try:
        parsed = datetime.fromisoformat(raw_value.strip())
    except ValueError:
        return default_ms
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return (parsed - _EPOCH) // timedelta(milliseconds=1)


def parse_count(raw_value: object) -> int:
    # The API sends counters as decimal strings.
    if isinstance(raw_value, bool):
        return 0
    if isinstance(raw_value, int):
        return max(0, raw_value)
    if isinstance(raw_value, float):
        if not math.isfinite(raw_value):
            return 0
        return max(0, int(raw_value))
    if isinstance(raw_value, str):
        try:
            return max(0, int(raw_value.strip()))
        except ValueError:
            return 0
    return 0


def video_to_dict(video: VideoRecord) -> dict[str, Any]:
    livestream: dict[str, Any] | None = None
    if video.livestream is not None:
        livestream = {
            "viewers": video.livestream.viewers,
            "liveChatId": video.livestream.live_chat_id,
            "actualStartAt": video.livestream.actual_start_at,
            "scheduledStartAt": video.livestream.scheduled_start_at,
            "live": video.livestream.live,
        }
    return {
        "videoId": video.video_id,
        "channelId": video.channel_id,
        "channelTitle": video.channel_title,
        "title": video.title,
        "description": video.description,
        "thumbnails": {
            "high": video.thumbnails.high,
            "low": video.thumbnails.low,
        },
        "publishedAt": video.published_at,
        "viewCount": video.view_count,
        "likes": video.likes,
        "duration": video.duration,
        "upcoming": video.upcoming,
        "livestream": livestream,
    }


def video_from_dict(raw_value: object, *, default_ms: int) -> VideoRecord | None:
    """Decode one stored record; None when the value cannot be a record."""
    if not isinstance(raw_value, dict):
        return None
    raw = _as_dict(raw_value)
    video_id = _coerce_nonempty_string(raw.get("videoId"))
    if video_id is None:
        return None

    thumbnails = _as_dict(raw.get("thumbnails"))
    livestream: LivestreamDetails | None = None
    raw_livestream = raw.get("livestream")
    if isinstance(raw_livestream, dict):
        live = _as_dict(raw_livestream)
        livestream = LivestreamDetails(
            viewers=parse_count(live.get("viewers")),
            live_chat_id=_coerce_nonempty_string(live.get("liveChatId")) or "",
            actual_start_at=_stored_ms(live.get("actualStartAt"), default_ms=default_ms),
            scheduled_start_at=_stored_ms(live.get("scheduledStartAt"), default_ms=default_ms),
            live=live.get("live") is True,
        )

    return VideoRecord(
        video_id=video_id,
        channel_id=_coerce_nonempty_string(raw.get("channelId")) or "",
        channel_title=_coerce_nonempty_string(raw.get("channelTitle")) or DEFAULT_CHANNEL_TITLE,
        title=_coerce_nonempty_string(raw.get("title")) or DEFAULT_VIDEO_TITLE,
        description=raw.get("description") if isinstance(raw.get("description"), str) else "",
        thumbnails=VideoThumbnails(
            high=_coerce_nonempty_string(thumbnails.get("high")),
            low=_coerce_nonempty_string(thumbnails.get("low")),
        ),
        published_at=_stored_ms(raw.get("publishedAt"), default_ms=default_ms),
        view_count=parse_count(raw.get("viewCount")),
        likes=parse_count(raw.get("likes")),
        duration=_coerce_nonempty_string(raw.get("duration")) or DEFAULT_DURATION,
        upcoming=raw.get("upcoming") is True,
        livestream=livestream,
    )


def _stored_ms(raw_value: object, *, default_ms: int) -> int:
    if isinstance(raw_value, bool):
        return default_ms
    if isinstance(raw_value, int):
        return raw_value
    if isinstance(raw_value, float):
        if not math.isfinite(raw_value):
            return default_ms
        return int(raw_value)
    return parse_timestamp_ms(raw_value, default_ms=default_ms)


def _first_thumbnail_url(thumbnails: dict[str, Any], preference: tuple[str, ...]) -> str | None:
    for quality in preference:
        url_value = _coerce_nonempty_string(_as_dict(thumbnails.get(quality)).get("url"))
        if url_value is not None:
            return url_value
    return None


def _coerce_nonempty_string(raw_value: object) -> str | None:
    if isinstance(raw_value, str) and raw_value.strip():
        return raw_value
    return None


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        raw_dict = cast(dict[object, object], value)
        converted: dict[str, Any] = {}
        for key, item in raw_dict.items():
            if isinstance(key, str):
                converted[key] = item
        return converted
    return {}

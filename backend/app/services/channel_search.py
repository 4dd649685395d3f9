from __future__ import annotations

import logging
from typing import Any

from backend.app.services.youtube_records import ChannelMeta, normalize_channel
from backend.app.services.youtube_source import ContentSource

LOGGER = logging.getLogger("tubelist.channel_search")


class ChannelSearchService:
    def __init__(self, source: ContentSource) -> None:
        self._source = source

    def search_channels(self, query: str) -> list[ChannelMeta]:
        """Search channels by free text, keeping the source's relevance order.

        Candidates whose details do not come back from `channels.list` are
        dropped. Source errors propagate as `YouTubeSourceError`.
        """
        normalized_query = query.strip()
        if not normalized_query:
            return []

        candidate_ids = self._source.search_channels(normalized_query)
        if not candidate_ids:
            LOGGER.info("channel search returned no candidates")
            return []

        details_by_id: dict[str, dict[str, Any]] = {}
        for item in self._source.list_channels(candidate_ids):
            item_id = item.get("id")
            if isinstance(item_id, str) and item_id:
                details_by_id[item_id] = item

        results: list[ChannelMeta] = []
        for channel_id in candidate_ids:
            details = details_by_id.get(channel_id)
            if details is None:
                continue
            results.append(normalize_channel(channel_id, details))

        LOGGER.info(
            "channel search completed candidates=%s matched=%s",
            len(candidate_ids),
            len(results),
        )
        return results

    def get_channel(self, channel_id: str) -> ChannelMeta | None:
        items = self._source.list_channels([channel_id])
        if not items:
            return None
        return normalize_channel(channel_id, items[-1])

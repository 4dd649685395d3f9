from __future__ import annotations

from dataclasses import dataclass

from backend.app.repositories.common import utc_now_iso
from backend.app.repositories.database import Database


@dataclass(frozen=True)
class StoredPayload:
    cache_key: str
    value_text: str
    updated_at: str


class ChannelCacheRepository:
    """Plain key/value storage for serialized channel video payloads.

    Freshness is not tracked here; the payload itself carries the fetch
    timestamp and the caller decides what is stale.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def get_payload(self, cache_key: str) -> str | None:
        stored = self.get_stored_payload(cache_key)
        if stored is None:
            return None
        return stored.value_text

    def get_stored_payload(self, cache_key: str) -> StoredPayload | None:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT cache_key, value_text, updated_at
                FROM channel_video_cache
                WHERE cache_key = ?
                """,
                (cache_key,),
            ).fetchone()

        if row is None:
            return None
        raw_value = row["value_text"]
        if isinstance(raw_value, bytes):
            raw_value = raw_value.decode("utf-8", errors="replace")
        return StoredPayload(
            cache_key=str(row["cache_key"]),
            value_text=str(raw_value),
            updated_at=str(row["updated_at"]),
        )

    def set_payload(self, cache_key: str, payload: str) -> None:
        now_iso = utc_now_iso()
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO channel_video_cache (cache_key, value_text, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(cache_key) DO UPDATE SET
                    value_text = excluded.value_text,
                    updated_at = excluded.updated_at
                """,
                (cache_key, payload, now_iso),
            )

    def count_entries(self) -> int:
        with self._db.connection() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM channel_video_cache").fetchone()
        if row is None:
            return 0
        return int(row["total"])

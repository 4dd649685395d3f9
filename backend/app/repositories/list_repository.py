from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from uuid import uuid4

from backend.app.repositories.common import utc_now_iso
from backend.app.repositories.database import Database

ACCOUNT_PROVIDER_GOOGLE = "google"


@dataclass(frozen=True)
class ChannelAccount:
    account_id: str
    user_id: str
    provider: str
    username: str


@dataclass(frozen=True)
class ChannelList:
    list_id: str
    user_id: str
    slug: str
    title: str
    channel_ids: tuple[str, ...]


@dataclass(frozen=True)
class ListResolution:
    channel_list: ChannelList | None
    channel_ids: list[str]


class ListRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def resolve_channel_ids(
        self,
        *,
        list_id: str | None = None,
        username: str | None = None,
        slug: str | None = None,
        user_id: str | None = None,
    ) -> ListResolution:
        """Resolve a list reference to the channel IDs it contains.

        Lookup order is owner username + slug, then slug + user ID, then the
        raw list ID. An unknown username short-circuits to an empty result.
        """
        channel_list: ChannelList | None = None
        with self._db.connection() as conn:
            if username:
                account = _find_account(conn, provider=ACCOUNT_PROVIDER_GOOGLE, username=username)
                if account is None:
                    return ListResolution(channel_list=None, channel_ids=[])
                if slug:
                    channel_list = _find_list_by_slug(conn, slug=slug, user_id=account.user_id)

            if channel_list is None and slug and user_id:
                channel_list = _find_list_by_slug(conn, slug=slug, user_id=user_id)

            if channel_list is None and list_id:
                channel_list = _find_list_by_id(conn, list_id)

        if channel_list is None:
            return ListResolution(channel_list=None, channel_ids=[])
        return ListResolution(
            channel_list=channel_list,
            channel_ids=list(channel_list.channel_ids),
        )

    def create_account(
        self,
        *,
        user_id: str,
        username: str,
        provider: str = ACCOUNT_PROVIDER_GOOGLE,
    ) -> ChannelAccount:
        account = ChannelAccount(
            account_id=f"acct_{uuid4().hex}",
            user_id=user_id,
            provider=provider,
            username=username,
        )
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO accounts (id, user_id, provider, username, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (account.account_id, user_id, provider, username, utc_now_iso()),
            )
        return account

    def create_list(self, *, user_id: str, slug: str, title: str) -> ChannelList:
        list_id = f"list_{uuid4().hex}"
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO channel_lists (id, user_id, slug, title, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (list_id, user_id, slug, title, utc_now_iso()),
            )
        return ChannelList(
            list_id=list_id,
            user_id=user_id,
            slug=slug,
            title=title,
            channel_ids=(),
        )

    def add_channel(self, *, list_id: str, origin_id: str) -> None:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT COALESCE(MAX(position), -1) + 1 AS next_position
                FROM channel_list_items
                WHERE list_id = ?
                """,
                (list_id,),
            ).fetchone()
            next_position = int(row["next_position"]) if row is not None else 0
            conn.execute(
                """
                INSERT INTO channel_list_items (list_id, origin_id, position, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(list_id, origin_id) DO NOTHING
                """,
                (list_id, origin_id, next_position, utc_now_iso()),
            )


def _find_account(
    conn: sqlite3.Connection,
    *,
    provider: str,
    username: str,
) -> ChannelAccount | None:
    row = conn.execute(
        """
        SELECT id, user_id, provider, username
        FROM accounts
        WHERE provider = ? AND username = ?
        ORDER BY created_at ASC
        LIMIT 1
        """,
        (provider, username),
    ).fetchone()
    if row is None:
        return None
    return ChannelAccount(
        account_id=str(row["id"]),
        user_id=str(row["user_id"]),
        provider=str(row["provider"]),
        username=str(row["username"]),
    )


def _find_list_by_slug(
    conn: sqlite3.Connection,
    *,
    slug: str,
    user_id: str,
) -> ChannelList | None:
    row = conn.execute(
        """
        SELECT id, user_id, slug, title
        FROM channel_lists
        WHERE slug = ? AND user_id = ?
        """,
        (slug, user_id),
    ).fetchone()
    if row is None:
        return None
    return _row_to_list(conn, row)


def _find_list_by_id(conn: sqlite3.Connection, list_id: str) -> ChannelList | None:
    row = conn.execute(
        """
        SELECT id, user_id, slug, title
        FROM channel_lists
        WHERE id = ?
        """,
        (list_id,),
    ).fetchone()
    if row is None:
        return None
    return _row_to_list(conn, row)


def _row_to_list(conn: sqlite3.Connection, row: sqlite3.Row) -> ChannelList:
    list_id = str(row["id"])
    item_rows = conn.execute(
        """
        SELECT origin_id
        FROM channel_list_items
        WHERE list_id = ?
        ORDER BY position ASC
        """,
        (list_id,),
    ).fetchall()
    return ChannelList(
        list_id=list_id,
        user_id=str(row["user_id"]),
        slug=str(row["slug"]),
        title=str(row["title"]),
        channel_ids=tuple(str(item["origin_id"]) for item in item_rows),
    )

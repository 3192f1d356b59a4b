"""Journal entry and journal media persistence.

Entries belong to one user and may link to one of that user's trades.
Media rows hang off an entry and are removed with it.
The rich-text document in content is stored as JSON text and returned
as parsed.
"""

import json
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any

import aiosqlite

from tradelog.data.database import Database
from tradelog.data.store import dt_to_text, like_pattern, text_to_dt, utc_now
from tradelog.exceptions import RecordNotFoundError, StoreError
from tradelog.logging import get_logger
from tradelog.models import JournalEntry, JournalMedia, MediaType, Mood

logger = get_logger(__name__)

JOURNAL_SORT_FIELDS = frozenset({"created_at", "updated_at", "title"})

_PROTECTED_FIELDS = frozenset({"id", "user_id", "created_at", "updated_at"})

_ENTRY_COLUMNS = (
    "id, user_id, trade_id, title, content, mood, lessons_learned, "
    "confidence_score, tags, created_at, updated_at"
)


def _row_to_entry(row: aiosqlite.Row) -> JournalEntry:
    return JournalEntry(
        id=row["id"],
        user_id=row["user_id"],
        trade_id=row["trade_id"],
        title=row["title"],
        content=json.loads(row["content"]),
        mood=Mood(row["mood"]),
        lessons_learned=row["lessons_learned"],
        confidence_score=row["confidence_score"],
        tags=json.loads(row["tags"]),
        created_at=text_to_dt(row["created_at"]),
        updated_at=text_to_dt(row["updated_at"]),
    )


class JournalStore:
    """Async SQLite store for journal entries."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def _check_trade(self, trade_id: str | None, user_id: str) -> None:
        if trade_id is None:
            return
        cursor = await self._database.db.execute(
            "SELECT 1 FROM trades WHERE id = ? AND user_id = ?",
            (trade_id, user_id),
        )
        if await cursor.fetchone() is None:
            raise RecordNotFoundError("Linked trade not found")

    async def create_entry(self, entry: JournalEntry) -> JournalEntry:
        """Insert a journal entry.

        Raises:
            RecordNotFoundError: If trade_id names a trade the user does not own.
            StoreError: If the entry violates a database constraint.
        """
        await self._check_trade(entry.trade_id, entry.user_id)

        now = utc_now()
        stored = replace(entry, id=str(uuid.uuid4()), created_at=now, updated_at=now)
        db = self._database.db
        try:
            await db.execute(
                f"INSERT INTO journal_entries ({_ENTRY_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    stored.id,
                    stored.user_id,
                    stored.trade_id,
                    stored.title,
                    json.dumps(stored.content),
                    stored.mood.value,
                    stored.lessons_learned,
                    stored.confidence_score,
                    json.dumps(stored.tags),
                    dt_to_text(stored.created_at),
                    dt_to_text(stored.updated_at),
                ),
            )
            await db.commit()
        except aiosqlite.Error as e:
            await db.rollback()
            raise StoreError(str(e)) from e

        logger.debug("created_journal_entry", entry_id=stored.id, trade_id=stored.trade_id)
        return stored

    async def get_entry(self, entry_id: str, user_id: str) -> JournalEntry:
        """Raises RecordNotFoundError if the entry does not exist for this user."""
        cursor = await self._database.db.execute(
            f"SELECT {_ENTRY_COLUMNS} FROM journal_entries WHERE id = ? AND user_id = ?",
            (entry_id, user_id),
        )
        row = await cursor.fetchone()
        if row is None:
            raise RecordNotFoundError("Journal entry not found")
        return _row_to_entry(row)

    async def list_entries(
        self,
        user_id: str,
        *,
        title: str | None = None,
        trade_id: str | None = None,
        mood: Mood | None = None,
        tags: list[str] | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        page: int = 1,
        page_size: int = 10,
        sort_field: str = "created_at",
        sort_direction: str = "desc",
    ) -> tuple[list[JournalEntry], int]:
        """Query one page of a user's journal entries. Returns (entries, total count)."""
        if sort_field not in JOURNAL_SORT_FIELDS:
            raise ValueError(f"Unsupported sort field: {sort_field}")
        order = "ASC" if sort_direction == "asc" else "DESC"

        conditions = ["user_id = ?"]
        params: list = [user_id]

        if title:
            conditions.append("title LIKE ? ESCAPE '\\'")
            params.append(like_pattern(title))
        if trade_id:
            conditions.append("trade_id = ?")
            params.append(trade_id)
        if mood is not None:
            conditions.append("mood = ?")
            params.append(Mood(mood).value)
        if start_date is not None:
            conditions.append("created_at >= ?")
            params.append(dt_to_text(start_date))
        if end_date is not None:
            conditions.append("created_at <= ?")
            params.append(dt_to_text(end_date))
        for tag in tags or []:
            conditions.append(
                "EXISTS (SELECT 1 FROM json_each(journal_entries.tags) WHERE value = ?)"
            )
            params.append(tag)

        where = " AND ".join(conditions)
        db = self._database.db

        cursor = await db.execute(f"SELECT COUNT(*) FROM journal_entries WHERE {where}", params)
        (count,) = await cursor.fetchone()

        offset = (max(page, 1) - 1) * page_size
        cursor = await db.execute(
            f"SELECT {_ENTRY_COLUMNS} FROM journal_entries WHERE {where} "
            f"ORDER BY {sort_field} {order}, id ASC LIMIT ? OFFSET ?",
            [*params, page_size, offset],
        )
        rows = await cursor.fetchall()
        return [_row_to_entry(r) for r in rows], count

    async def update_entry(
        self, entry_id: str, user_id: str, changes: dict[str, Any]
    ) -> JournalEntry:
        """Apply field changes to an entry owned by user_id.

        Raises:
            RecordNotFoundError: If the entry, or a newly linked trade, does
                not exist for this user.
        """
        existing = await self.get_entry(entry_id, user_id)
        allowed = {k: v for k, v in changes.items() if k not in _PROTECTED_FIELDS}
        updated = replace(existing, **allowed, updated_at=utc_now())
        if updated.trade_id != existing.trade_id:
            await self._check_trade(updated.trade_id, user_id)

        db = self._database.db
        try:
            await db.execute(
                "UPDATE journal_entries SET trade_id = ?, title = ?, content = ?, "
                "mood = ?, lessons_learned = ?, confidence_score = ?, tags = ?, "
                "updated_at = ? WHERE id = ? AND user_id = ?",
                (
                    updated.trade_id,
                    updated.title,
                    json.dumps(updated.content),
                    Mood(updated.mood).value,
                    updated.lessons_learned,
                    updated.confidence_score,
                    json.dumps(updated.tags),
                    dt_to_text(updated.updated_at),
                    entry_id,
                    user_id,
                ),
            )
            await db.commit()
        except aiosqlite.Error as e:
            await db.rollback()
            raise StoreError(str(e)) from e
        return updated

    async def delete_entry(self, entry_id: str, user_id: str) -> None:
        """Raises RecordNotFoundError if the entry does not exist for this user."""
        db = self._database.db
        cursor = await db.execute(
            "DELETE FROM journal_entries WHERE id = ? AND user_id = ?",
            (entry_id, user_id),
        )
        await db.commit()
        if cursor.rowcount == 0:
            raise RecordNotFoundError("Journal entry not found")


_MEDIA_COLUMNS = (
    "id, journal_entry_id, user_id, media_url, media_type, file_name, "
    "file_size, created_at"
)


def _row_to_media(row: aiosqlite.Row) -> JournalMedia:
    return JournalMedia(
        id=row["id"],
        journal_entry_id=row["journal_entry_id"],
        user_id=row["user_id"],
        media_url=row["media_url"],
        media_type=MediaType(row["media_type"]),
        file_name=row["file_name"],
        file_size=row["file_size"],
        created_at=text_to_dt(row["created_at"]),
    )


class MediaStore:
    """Media references attached to journal entries.

    Ownership is checked through the parent entry; files themselves live
    in object storage and only their URL is kept here.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    async def _check_entry(self, entry_id: str, user_id: str) -> None:
        cursor = await self._database.db.execute(
            "SELECT 1 FROM journal_entries WHERE id = ? AND user_id = ?",
            (entry_id, user_id),
        )
        if await cursor.fetchone() is None:
            raise RecordNotFoundError("Journal entry not found")

    async def add_media(self, media: JournalMedia) -> JournalMedia:
        """Attach media to an entry owned by the same user.

        Raises:
            RecordNotFoundError: If the entry does not exist for this user.
        """
        await self._check_entry(media.journal_entry_id, media.user_id)

        stored = replace(media, id=str(uuid.uuid4()), created_at=utc_now())
        db = self._database.db
        await db.execute(
            f"INSERT INTO journal_media ({_MEDIA_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                stored.id,
                stored.journal_entry_id,
                stored.user_id,
                stored.media_url,
                MediaType(stored.media_type).value,
                stored.file_name,
                stored.file_size,
                dt_to_text(stored.created_at),
            ),
        )
        await db.commit()
        logger.debug("added_journal_media", media_id=stored.id, entry_id=stored.journal_entry_id)
        return stored

    async def list_media(self, entry_id: str, user_id: str) -> list[JournalMedia]:
        """Raises RecordNotFoundError if the entry does not exist for this user."""
        await self._check_entry(entry_id, user_id)
        cursor = await self._database.db.execute(
            f"SELECT {_MEDIA_COLUMNS} FROM journal_media "
            "WHERE journal_entry_id = ? AND user_id = ? ORDER BY created_at ASC, id ASC",
            (entry_id, user_id),
        )
        rows = await cursor.fetchall()
        return [_row_to_media(r) for r in rows]

    async def delete_media(self, media_id: str, entry_id: str, user_id: str) -> None:
        """Raises RecordNotFoundError if no such media exists for this user and entry."""
        db = self._database.db
        cursor = await db.execute(
            "DELETE FROM journal_media WHERE id = ? AND journal_entry_id = ? AND user_id = ?",
            (media_id, entry_id, user_id),
        )
        await db.commit()
        if cursor.rowcount == 0:
            raise RecordNotFoundError("Media not found")

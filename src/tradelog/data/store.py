"""Typed SQLite read/write abstraction for trades and trade screenshots.

Provides TradeStore and ScreenshotStore with typed methods over the
Database connection. All SQL is isolated behind this interface and every
query is scoped by user_id: another user's record reads as not found.

CRITICAL: All monetary values stored as TEXT in SQLite, restored as Decimal on read.
"""

import json
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import aiosqlite

from tradelog.data.database import Database
from tradelog.exceptions import RecordNotFoundError, StoreError
from tradelog.logging import get_logger
from tradelog.models import (
    ImportSource,
    Trade,
    TradeDirection,
    TradeScreenshot,
    TradeStatus,
    derive_status,
)

logger = get_logger(__name__)

TRADE_SORT_FIELDS = frozenset({"entry_date", "exit_date", "symbol", "created_at"})

# Set by the store, never by callers.
_PROTECTED_FIELDS = frozenset({"id", "user_id", "created_at", "updated_at"})

_TRADE_COLUMNS = (
    "id, user_id, symbol, direction, entry_price, exit_price, quantity, "
    "entry_date, exit_date, fees, status, import_source, setup, tags, notes, "
    "extra, created_at, updated_at"
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def dt_to_text(value: datetime | None) -> str | None:
    """Serialize as UTC ISO-8601 so text ordering matches time ordering."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def text_to_dt(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def like_pattern(text: str) -> str:
    """Build a substring LIKE pattern matching text literally (use with ESCAPE '\\')."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _dec_to_text(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def _text_to_dec(value: str | None) -> Decimal | None:
    return Decimal(value) if value is not None else None


def _trade_params(trade: Trade) -> tuple:
    return (
        trade.id,
        trade.user_id,
        trade.symbol,
        trade.direction.value,
        _dec_to_text(trade.entry_price),
        _dec_to_text(trade.exit_price),
        _dec_to_text(trade.quantity),
        dt_to_text(trade.entry_date),
        dt_to_text(trade.exit_date),
        _dec_to_text(trade.fees),
        trade.status.value,
        trade.import_source.value,
        trade.setup,
        json.dumps(trade.tags),
        trade.notes,
        json.dumps(trade.extra),
        dt_to_text(trade.created_at),
        dt_to_text(trade.updated_at),
    )


def _row_to_trade(row: aiosqlite.Row) -> Trade:
    return Trade(
        id=row["id"],
        user_id=row["user_id"],
        symbol=row["symbol"],
        direction=TradeDirection(row["direction"]),
        entry_price=Decimal(row["entry_price"]),
        exit_price=_text_to_dec(row["exit_price"]),
        quantity=Decimal(row["quantity"]),
        entry_date=text_to_dt(row["entry_date"]),
        exit_date=text_to_dt(row["exit_date"]),
        fees=Decimal(row["fees"]),
        status=TradeStatus(row["status"]),
        import_source=ImportSource(row["import_source"]),
        setup=row["setup"],
        tags=json.loads(row["tags"]),
        notes=row["notes"],
        extra=json.loads(row["extra"]),
        created_at=text_to_dt(row["created_at"]),
        updated_at=text_to_dt(row["updated_at"]),
    )


class TradeStore:
    """Async SQLite store for trades.

    Usage:
        async with Database("data/tradelog.db") as database:
            store = TradeStore(database)
            saved = await store.insert_trades(result.trades)
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    # ──────────────────────────────────────────────
    # Write methods
    # ──────────────────────────────────────────────

    async def insert_trades(self, trades: list[Trade]) -> list[Trade]:
        """Insert trades in one transaction: either all rows land or none do.

        Assigns id, created_at and updated_at. Returns the stored trades in
        input order.

        Raises:
            StoreError: If any row violates a database constraint.
        """
        if not trades:
            return []

        now = utc_now()
        stored = [
            replace(t, id=str(uuid.uuid4()), created_at=now, updated_at=now)
            for t in trades
        ]

        db = self._database.db
        try:
            await db.executemany(
                f"INSERT INTO trades ({_TRADE_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [_trade_params(t) for t in stored],
            )
            await db.commit()
        except aiosqlite.Error as e:
            await db.rollback()
            logger.error("insert_trades_failed", count=len(trades), error=str(e))
            raise StoreError(str(e)) from e

        logger.debug("inserted_trades", count=len(stored))
        return stored

    async def create_trade(self, trade: Trade) -> Trade:
        """Insert a single trade."""
        (stored,) = await self.insert_trades([trade])
        return stored

    async def update_trade(
        self, trade_id: str, user_id: str, changes: dict[str, Any]
    ) -> Trade:
        """Apply field changes to a trade owned by user_id.

        id, user_id, created_at and updated_at are ignored if present.
        Status follows exit_price (closed iff set) unless the result is
        explicitly cancelled.

        Raises:
            RecordNotFoundError: If the trade does not exist for this user.
            StoreError: If the update violates a database constraint.
        """
        existing = await self.get_trade(trade_id, user_id)
        allowed = {k: v for k, v in changes.items() if k not in _PROTECTED_FIELDS}
        updated = replace(existing, **allowed, updated_at=utc_now())
        if updated.status != TradeStatus.CANCELLED:
            updated.status = derive_status(updated.exit_price)

        params = _trade_params(updated)
        db = self._database.db
        try:
            await db.execute(
                "UPDATE trades SET symbol = ?, direction = ?, entry_price = ?, "
                "exit_price = ?, quantity = ?, entry_date = ?, exit_date = ?, "
                "fees = ?, status = ?, import_source = ?, setup = ?, tags = ?, "
                "notes = ?, extra = ?, updated_at = ? "
                "WHERE id = ? AND user_id = ?",
                (*params[2:16], params[17], trade_id, user_id),
            )
            await db.commit()
        except aiosqlite.Error as e:
            await db.rollback()
            raise StoreError(str(e)) from e

        logger.debug("updated_trade", trade_id=trade_id, fields=sorted(allowed))
        return updated

    async def delete_trade(self, trade_id: str, user_id: str) -> None:
        """Delete a trade and its screenshots.

        Raises:
            RecordNotFoundError: If the trade does not exist for this user.
        """
        db = self._database.db
        cursor = await db.execute(
            "DELETE FROM trades WHERE id = ? AND user_id = ?",
            (trade_id, user_id),
        )
        await db.commit()
        if cursor.rowcount == 0:
            raise RecordNotFoundError("Trade not found or access denied")
        logger.debug("deleted_trade", trade_id=trade_id)

    # ──────────────────────────────────────────────
    # Read methods
    # ──────────────────────────────────────────────

    async def get_trade(self, trade_id: str, user_id: str) -> Trade:
        """Fetch one trade owned by user_id.

        Raises:
            RecordNotFoundError: If the trade does not exist for this user.
        """
        cursor = await self._database.db.execute(
            f"SELECT {_TRADE_COLUMNS} FROM trades WHERE id = ? AND user_id = ?",
            (trade_id, user_id),
        )
        row = await cursor.fetchone()
        if row is None:
            raise RecordNotFoundError("Trade not found")
        return _row_to_trade(row)

    async def list_trades(
        self,
        user_id: str,
        *,
        symbol: str | None = None,
        direction: TradeDirection | None = None,
        status: TradeStatus | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        setup: str | None = None,
        tags: list[str] | None = None,
        page: int = 1,
        page_size: int = 10,
        sort_field: str = "entry_date",
        sort_direction: str = "desc",
    ) -> tuple[list[Trade], int]:
        """Query one page of a user's trades.

        symbol matches as a case-insensitive substring; tags requires every
        given tag to be present. Returns (trades, total matching count).
        """
        if sort_field not in TRADE_SORT_FIELDS:
            raise ValueError(f"Unsupported sort field: {sort_field}")
        order = "ASC" if sort_direction == "asc" else "DESC"

        conditions = ["user_id = ?"]
        params: list = [user_id]

        if symbol:
            conditions.append("symbol LIKE ? ESCAPE '\\'")
            params.append(like_pattern(symbol))
        if direction is not None:
            conditions.append("direction = ?")
            params.append(TradeDirection(direction).value)
        if status is not None:
            conditions.append("status = ?")
            params.append(TradeStatus(status).value)
        if start_date is not None:
            conditions.append("entry_date >= ?")
            params.append(dt_to_text(start_date))
        if end_date is not None:
            conditions.append("entry_date <= ?")
            params.append(dt_to_text(end_date))
        if setup:
            conditions.append("setup = ?")
            params.append(setup)
        for tag in tags or []:
            conditions.append("EXISTS (SELECT 1 FROM json_each(trades.tags) WHERE value = ?)")
            params.append(tag)

        where = " AND ".join(conditions)
        db = self._database.db

        cursor = await db.execute(f"SELECT COUNT(*) FROM trades WHERE {where}", params)
        (count,) = await cursor.fetchone()

        offset = (max(page, 1) - 1) * page_size
        cursor = await db.execute(
            f"SELECT {_TRADE_COLUMNS} FROM trades WHERE {where} "
            f"ORDER BY {sort_field} {order}, id ASC LIMIT ? OFFSET ?",
            [*params, page_size, offset],
        )
        rows = await cursor.fetchall()
        return [_row_to_trade(r) for r in rows], count

    async def list_closed_trades(self, user_id: str) -> list[Trade]:
        """All closed trades for a user ordered by exit date."""
        cursor = await self._database.db.execute(
            f"SELECT {_TRADE_COLUMNS} FROM trades "
            "WHERE user_id = ? AND status = 'closed' "
            "ORDER BY exit_date ASC, entry_date ASC",
            (user_id,),
        )
        rows = await cursor.fetchall()
        return [_row_to_trade(r) for r in rows]

    async def count_trades(self, user_id: str) -> dict[str, int]:
        """Trade counts per status for a user."""
        cursor = await self._database.db.execute(
            "SELECT status, COUNT(*) FROM trades WHERE user_id = ? GROUP BY status",
            (user_id,),
        )
        rows = await cursor.fetchall()
        return {row[0]: row[1] for row in rows}


class ScreenshotStore:
    """Screenshot references attached to trades.

    Only the object-storage path is stored; uploads happen elsewhere.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    async def add_screenshot(self, screenshot: TradeScreenshot) -> TradeScreenshot:
        """Attach a screenshot to a trade owned by the same user.

        Raises:
            RecordNotFoundError: If the trade does not exist for this user.
        """
        db = self._database.db
        cursor = await db.execute(
            "SELECT 1 FROM trades WHERE id = ? AND user_id = ?",
            (screenshot.trade_id, screenshot.user_id),
        )
        if await cursor.fetchone() is None:
            raise RecordNotFoundError("Trade not found")

        stored = replace(screenshot, id=str(uuid.uuid4()), created_at=utc_now())
        await db.execute(
            "INSERT INTO trade_screenshots "
            "(id, trade_id, user_id, storage_path, caption, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                stored.id,
                stored.trade_id,
                stored.user_id,
                stored.storage_path,
                stored.caption,
                dt_to_text(stored.created_at),
            ),
        )
        await db.commit()
        return stored

    async def list_screenshots(self, trade_id: str, user_id: str) -> list[TradeScreenshot]:
        cursor = await self._database.db.execute(
            "SELECT id, trade_id, user_id, storage_path, caption, created_at "
            "FROM trade_screenshots WHERE trade_id = ? AND user_id = ? "
            "ORDER BY created_at ASC",
            (trade_id, user_id),
        )
        rows = await cursor.fetchall()
        return [
            TradeScreenshot(
                id=r["id"],
                trade_id=r["trade_id"],
                user_id=r["user_id"],
                storage_path=r["storage_path"],
                caption=r["caption"],
                created_at=text_to_dt(r["created_at"]),
            )
            for r in rows
        ]

    async def delete_screenshot(self, screenshot_id: str, trade_id: str, user_id: str) -> None:
        """Remove a screenshot reference.

        Raises:
            RecordNotFoundError: If no such screenshot exists for this user and trade.
        """
        db = self._database.db
        cursor = await db.execute(
            "DELETE FROM trade_screenshots WHERE id = ? AND trade_id = ? AND user_id = ?",
            (screenshot_id, trade_id, user_id),
        )
        await db.commit()
        if cursor.rowcount == 0:
            raise RecordNotFoundError("Screenshot not found")

"""Request bodies and JSON serialization for the API.

Decimal values are serialized as strings to keep their precision.
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tradelog.analytics.metrics import PerformanceSummary, profit_loss, profit_loss_percent
from tradelog.models import (
    JournalEntry,
    JournalMedia,
    MediaType,
    Mood,
    RowError,
    Trade,
    TradeDirection,
    TradeScreenshot,
    TradeStatus,
)


def _decimal_to_str(obj: Any) -> Any:
    """Recursively convert Decimal values to strings for JSON serialization."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, dict):
        return {k: _decimal_to_str(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_decimal_to_str(item) for item in obj]
    return obj


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class _PartialUpdate(BaseModel):
    """Base for PUT bodies: unset fields stay untouched, null clears only nullable ones."""

    NON_NULLABLE: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def reject_null_required(self) -> _PartialUpdate:
        nulled = sorted(
            name
            for name in self.model_fields_set & self.NON_NULLABLE
            if getattr(self, name) is None
        )
        if nulled:
            raise ValueError(f"Fields cannot be null: {', '.join(nulled)}")
        return self

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


# ──────────────────────────────────────────────
# Trades
# ──────────────────────────────────────────────


class TradeCreate(BaseModel):
    """Manual trade entry. Any user_id in the body is ignored."""

    model_config = ConfigDict(extra="ignore")

    symbol: str = Field(min_length=1, max_length=32)
    direction: TradeDirection
    entry_price: Decimal = Field(gt=0)
    quantity: Decimal = Field(gt=0)
    entry_date: datetime
    exit_price: Decimal | None = Field(default=None, gt=0)
    exit_date: datetime | None = None
    fees: Decimal = Decimal("0")
    setup: str | None = None
    tags: list[str] = Field(default_factory=list)
    notes: str | None = None


class TradeUpdate(_PartialUpdate):
    model_config = ConfigDict(extra="ignore")

    NON_NULLABLE: ClassVar[frozenset[str]] = frozenset(
        {"symbol", "direction", "entry_price", "quantity", "entry_date", "fees", "tags", "status"}
    )

    symbol: str | None = Field(default=None, min_length=1, max_length=32)
    direction: TradeDirection | None = None
    entry_price: Decimal | None = Field(default=None, gt=0)
    quantity: Decimal | None = Field(default=None, gt=0)
    entry_date: datetime | None = None
    exit_price: Decimal | None = Field(default=None, gt=0)
    exit_date: datetime | None = None
    fees: Decimal | None = None
    status: TradeStatus | None = None
    setup: str | None = None
    tags: list[str] | None = None
    notes: str | None = None


class ScreenshotCreate(BaseModel):
    storage_path: str = Field(min_length=1)
    caption: str | None = None


def trade_to_dict(trade: Trade) -> dict[str, Any]:
    return _decimal_to_str({
        "id": trade.id,
        "user_id": trade.user_id,
        "symbol": trade.symbol,
        "direction": trade.direction.value,
        "entry_price": trade.entry_price,
        "exit_price": trade.exit_price,
        "quantity": trade.quantity,
        "entry_date": _iso(trade.entry_date),
        "exit_date": _iso(trade.exit_date),
        "fees": trade.fees,
        "status": trade.status.value,
        "import_source": trade.import_source.value,
        "setup": trade.setup,
        "tags": trade.tags,
        "notes": trade.notes,
        "extra": trade.extra,
        "profit_loss": profit_loss(trade),
        "profit_loss_percent": profit_loss_percent(trade),
        "created_at": _iso(trade.created_at),
        "updated_at": _iso(trade.updated_at),
    })


def screenshot_to_dict(screenshot: TradeScreenshot) -> dict[str, Any]:
    return {
        "id": screenshot.id,
        "trade_id": screenshot.trade_id,
        "storage_path": screenshot.storage_path,
        "caption": screenshot.caption,
        "created_at": _iso(screenshot.created_at),
    }


def row_error_to_dict(error: RowError) -> dict[str, Any]:
    return {
        "line": error.line,
        "column": error.column,
        "value": error.value,
        "message": error.message,
    }


def summary_to_dict(summary: PerformanceSummary) -> dict[str, Any]:
    return _decimal_to_str(asdict(summary))


# ──────────────────────────────────────────────
# Journal
# ──────────────────────────────────────────────


class JournalEntryCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = Field(min_length=1, max_length=200)
    content: Any
    mood: Mood
    trade_id: str | None = None
    lessons_learned: str | None = None
    confidence_score: int | None = Field(default=None, ge=1, le=10)
    tags: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def content_required(self) -> JournalEntryCreate:
        if self.content is None or self.content == "":
            raise ValueError("content is required")
        return self


class JournalEntryUpdate(_PartialUpdate):
    model_config = ConfigDict(extra="ignore")

    NON_NULLABLE: ClassVar[frozenset[str]] = frozenset({"title", "content", "mood", "tags"})

    title: str | None = Field(default=None, min_length=1, max_length=200)
    content: Any = None
    mood: Mood | None = None
    trade_id: str | None = None
    lessons_learned: str | None = None
    confidence_score: int | None = Field(default=None, ge=1, le=10)
    tags: list[str] | None = None


def entry_to_dict(entry: JournalEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "user_id": entry.user_id,
        "trade_id": entry.trade_id,
        "title": entry.title,
        "content": entry.content,
        "mood": entry.mood.value,
        "lessons_learned": entry.lessons_learned,
        "confidence_score": entry.confidence_score,
        "tags": entry.tags,
        "created_at": _iso(entry.created_at),
        "updated_at": _iso(entry.updated_at),
    }


class MediaCreate(BaseModel):
    media_url: str = Field(min_length=1)
    media_type: MediaType
    file_name: str | None = None
    file_size: int | None = Field(default=None, ge=0)


def media_to_dict(media: JournalMedia) -> dict[str, Any]:
    return {
        "id": media.id,
        "journal_entry_id": media.journal_entry_id,
        "media_url": media.media_url,
        "media_type": media.media_type.value,
        "file_name": media.file_name,
        "file_size": media.file_size,
        "created_at": _iso(media.created_at),
    }

"""Trade CRUD, screenshot references and performance summary endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

import structlog
from fastapi import APIRouter, Depends, Query

from tradelog.analytics import summarize
from tradelog.api.deps import current_user, rate_limited, screenshot_store, trade_store
from tradelog.api.schemas import (
    ScreenshotCreate,
    TradeCreate,
    TradeUpdate,
    screenshot_to_dict,
    summary_to_dict,
    trade_to_dict,
)
from tradelog.data import ScreenshotStore, TradeStore
from tradelog.models import (
    ImportSource,
    Trade,
    TradeDirection,
    TradeScreenshot,
    TradeStatus,
    derive_status,
)

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/trades", tags=["trades"])


@router.get("")
async def list_trades(
    user_id: str = Depends(current_user),
    store: TradeStore = Depends(trade_store),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100, alias="pageSize"),
    sort_field: Literal["entry_date", "exit_date", "symbol", "created_at"] = Query(
        "entry_date", alias="sortField"
    ),
    sort_direction: Literal["asc", "desc"] = Query("desc", alias="sortDirection"),
    symbol: str | None = None,
    direction: TradeDirection | None = None,
    status: TradeStatus | None = None,
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
    setup: str | None = None,
    tags: str | None = None,
) -> dict:
    """Paginated, filtered list of the caller's trades with total count."""
    trades, count = await store.list_trades(
        user_id,
        symbol=symbol,
        direction=direction,
        status=status,
        start_date=start_date,
        end_date=end_date,
        setup=setup,
        tags=[t for t in tags.split(",") if t] if tags else None,
        page=page,
        page_size=page_size,
        sort_field=sort_field,
        sort_direction=sort_direction,
    )
    return {"trades": [trade_to_dict(t) for t in trades], "count": count}


@router.post("", status_code=201)
async def create_trade(
    body: TradeCreate,
    user_id: str = Depends(current_user),
    _: object = Depends(rate_limited("trades")),
    store: TradeStore = Depends(trade_store),
) -> dict:
    """Record a manually entered trade."""
    trade = await store.create_trade(
        Trade(
            user_id=user_id,
            symbol=body.symbol,
            direction=body.direction,
            entry_price=body.entry_price,
            quantity=body.quantity,
            entry_date=body.entry_date,
            exit_price=body.exit_price,
            exit_date=body.exit_date,
            fees=body.fees,
            status=derive_status(body.exit_price),
            import_source=ImportSource.MANUAL,
            setup=body.setup,
            tags=body.tags,
            notes=body.notes,
        )
    )
    log.info("trade_created", trade_id=trade.id, symbol=trade.symbol)
    return {"trade": trade_to_dict(trade)}


@router.get("/summary")
async def get_summary(
    user_id: str = Depends(current_user),
    store: TradeStore = Depends(trade_store),
) -> dict:
    """Win rate, P&L and drawdown over the caller's trades."""
    closed = await store.list_closed_trades(user_id)
    counts = await store.count_trades(user_id)
    summary = summarize(closed)
    summary.total_trades = sum(counts.values())
    summary.open_trades = counts.get(TradeStatus.OPEN.value, 0)
    return summary_to_dict(summary)


@router.get("/{trade_id}")
async def get_trade(
    trade_id: str,
    user_id: str = Depends(current_user),
    store: TradeStore = Depends(trade_store),
    screenshots: ScreenshotStore = Depends(screenshot_store),
) -> dict:
    trade = await store.get_trade(trade_id, user_id)
    shots = await screenshots.list_screenshots(trade_id, user_id)
    return {
        "trade": {
            **trade_to_dict(trade),
            "trade_screenshots": [screenshot_to_dict(s) for s in shots],
        }
    }


@router.put("/{trade_id}")
async def update_trade(
    trade_id: str,
    body: TradeUpdate,
    user_id: str = Depends(current_user),
    _: object = Depends(rate_limited("trades")),
    store: TradeStore = Depends(trade_store),
) -> dict:
    trade = await store.update_trade(trade_id, user_id, body.changes())
    log.info("trade_updated", trade_id=trade_id)
    return {"message": "Trade updated successfully", "trade": trade_to_dict(trade)}


@router.delete("/{trade_id}")
async def delete_trade(
    trade_id: str,
    user_id: str = Depends(current_user),
    _: object = Depends(rate_limited("trades")),
    store: TradeStore = Depends(trade_store),
) -> dict:
    await store.delete_trade(trade_id, user_id)
    log.info("trade_deleted", trade_id=trade_id)
    return {"message": "Trade deleted successfully"}


@router.post("/{trade_id}/screenshots", status_code=201)
async def add_screenshot(
    trade_id: str,
    body: ScreenshotCreate,
    user_id: str = Depends(current_user),
    _: object = Depends(rate_limited("screenshots")),
    screenshots: ScreenshotStore = Depends(screenshot_store),
) -> dict:
    """Attach an already-uploaded screenshot to a trade."""
    shot = await screenshots.add_screenshot(
        TradeScreenshot(
            trade_id=trade_id,
            user_id=user_id,
            storage_path=body.storage_path,
            caption=body.caption,
        )
    )
    return {"screenshot": screenshot_to_dict(shot)}


@router.delete("/{trade_id}/screenshots/{screenshot_id}")
async def delete_screenshot(
    trade_id: str,
    screenshot_id: str,
    user_id: str = Depends(current_user),
    _: object = Depends(rate_limited("screenshots")),
    screenshots: ScreenshotStore = Depends(screenshot_store),
) -> dict:
    await screenshots.delete_screenshot(screenshot_id, trade_id, user_id)
    return {"message": "Screenshot deleted successfully"}

"""Journal entry and journal media endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

import structlog
from fastapi import APIRouter, Depends, Query

from tradelog.api.deps import current_user, journal_store, media_store, rate_limited
from tradelog.api.schemas import (
    JournalEntryCreate,
    JournalEntryUpdate,
    MediaCreate,
    entry_to_dict,
    media_to_dict,
)
from tradelog.data import JournalStore, MediaStore
from tradelog.models import JournalEntry, JournalMedia, Mood

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/journal/entries", tags=["journal"])


@router.get("")
async def list_entries(
    user_id: str = Depends(current_user),
    store: JournalStore = Depends(journal_store),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100, alias="pageSize"),
    sort_field: Literal["created_at", "updated_at", "title"] = Query(
        "created_at", alias="sortField"
    ),
    sort_direction: Literal["asc", "desc"] = Query("desc", alias="sortDirection"),
    title: str | None = None,
    trade_id: str | None = None,
    mood: Mood | None = None,
    tags: str | None = None,
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
) -> dict:
    entries, count = await store.list_entries(
        user_id,
        title=title,
        trade_id=trade_id,
        mood=mood,
        tags=[t for t in tags.split(",") if t] if tags else None,
        start_date=start_date,
        end_date=end_date,
        page=page,
        page_size=page_size,
        sort_field=sort_field,
        sort_direction=sort_direction,
    )
    return {"entries": [entry_to_dict(e) for e in entries], "count": count}


@router.post("", status_code=201)
async def create_entry(
    body: JournalEntryCreate,
    user_id: str = Depends(current_user),
    _: object = Depends(rate_limited("journal")),
    store: JournalStore = Depends(journal_store),
) -> dict:
    entry = await store.create_entry(
        JournalEntry(
            user_id=user_id,
            title=body.title,
            content=body.content,
            mood=body.mood,
            trade_id=body.trade_id,
            lessons_learned=body.lessons_learned,
            confidence_score=body.confidence_score,
            tags=body.tags,
        )
    )
    log.info("journal_entry_created", entry_id=entry.id)
    return {"entry": entry_to_dict(entry)}


@router.get("/{entry_id}")
async def get_entry(
    entry_id: str,
    user_id: str = Depends(current_user),
    store: JournalStore = Depends(journal_store),
) -> dict:
    entry = await store.get_entry(entry_id, user_id)
    return {"entry": entry_to_dict(entry)}


@router.put("/{entry_id}")
async def update_entry(
    entry_id: str,
    body: JournalEntryUpdate,
    user_id: str = Depends(current_user),
    _: object = Depends(rate_limited("journal")),
    store: JournalStore = Depends(journal_store),
) -> dict:
    entry = await store.update_entry(entry_id, user_id, body.changes())
    return {"message": "Journal entry updated successfully", "entry": entry_to_dict(entry)}


@router.delete("/{entry_id}")
async def delete_entry(
    entry_id: str,
    user_id: str = Depends(current_user),
    _: object = Depends(rate_limited("journal")),
    store: JournalStore = Depends(journal_store),
) -> dict:
    await store.delete_entry(entry_id, user_id)
    log.info("journal_entry_deleted", entry_id=entry_id)
    return {"message": "Journal entry deleted successfully"}


@router.get("/{entry_id}/media")
async def list_media(
    entry_id: str,
    user_id: str = Depends(current_user),
    media: MediaStore = Depends(media_store),
) -> dict:
    items = await media.list_media(entry_id, user_id)
    return {"media": [media_to_dict(m) for m in items]}


@router.post("/{entry_id}/media", status_code=201)
async def add_media(
    entry_id: str,
    body: MediaCreate,
    user_id: str = Depends(current_user),
    _: object = Depends(rate_limited("journal")),
    media: MediaStore = Depends(media_store),
) -> dict:
    item = await media.add_media(
        JournalMedia(
            journal_entry_id=entry_id,
            user_id=user_id,
            media_url=body.media_url,
            media_type=body.media_type,
            file_name=body.file_name,
            file_size=body.file_size,
        )
    )
    log.info("journal_media_added", entry_id=entry_id, media_id=item.id)
    return {"media": media_to_dict(item)}


@router.delete("/{entry_id}/media/{media_id}")
async def delete_media(
    entry_id: str,
    media_id: str,
    user_id: str = Depends(current_user),
    _: object = Depends(rate_limited("journal")),
    media: MediaStore = Depends(media_store),
) -> dict:
    await media.delete_media(media_id, entry_id, user_id)
    return {"message": "Media deleted successfully"}

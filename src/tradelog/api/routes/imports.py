"""Trade file import endpoint."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, File, Request, UploadFile

from tradelog.api.deps import current_user, rate_limited, trade_store
from tradelog.api.schemas import row_error_to_dict, trade_to_dict
from tradelog.data import TradeStore
from tradelog.exceptions import ImportValidationError, TradeImportError
from tradelog.importer import normalize_trades
from tradelog.models import ImportSource

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/trades/import", tags=["import"])


@router.post("/csv")
async def import_csv(
    request: Request,
    file: UploadFile = File(...),
    user_id: str = Depends(current_user),
    _: object = Depends(rate_limited("imports", budget="import")),
    store: TradeStore = Depends(trade_store),
) -> dict:
    """Import a delimited trade file for the caller.

    The whole file is rejected when required columns are missing. When
    rows fail validation the batch is rejected too, unless partial imports
    are enabled, in which case valid rows are stored and the row errors
    are returned alongside them.
    """
    settings = request.app.state.settings.imports

    payload = await file.read(settings.max_file_bytes + 1)
    if len(payload) > settings.max_file_bytes:
        raise TradeImportError(f"File exceeds {settings.max_file_bytes} bytes")
    try:
        text = payload.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise TradeImportError("File must be UTF-8 encoded text") from e

    result = normalize_trades(
        text,
        user_id,
        source=ImportSource.CSV,
        delimiter=settings.delimiter,
    )
    if result.errors and not settings.allow_partial:
        log.info(
            "import_rejected",
            filename=file.filename,
            rows=result.rows_seen,
            rejected_lines=len(result.rejected_lines),
        )
        raise ImportValidationError(result.errors)

    stored = await store.insert_trades(result.trades)
    log.info(
        "trades_imported",
        filename=file.filename,
        count=len(stored),
        skipped=len(result.rejected_lines),
    )
    return {
        "message": f"Successfully imported {len(stored)} trades",
        "trades": [trade_to_dict(t) for t in stored],
        "errors": [row_error_to_dict(e) for e in result.errors],
    }

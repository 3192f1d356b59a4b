"""Delimited trade file normalization.

Turns the raw text of an uploaded trade file into typed Trade records
ready for one bulk insert. The owner of every record is the caller's
user id; any user_id column in the file is ignored.

Structural problems (missing required columns) reject the whole file
before any row is read. Row problems (unparseable numbers or dates,
unknown direction, empty symbol) are collected per row into the result
so the caller can decide whether to reject the batch or keep the valid
rows. Invalid values never reach an output record.
"""

import csv
from collections.abc import Mapping
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from tradelog.exceptions import MissingColumnsError
from tradelog.logging import get_logger
from tradelog.models import (
    ImportResult,
    ImportSource,
    RowError,
    Trade,
    TradeDirection,
    derive_status,
)

logger = get_logger(__name__)

REQUIRED_COLUMNS: tuple[str, ...] = (
    "symbol",
    "direction",
    "entry_price",
    "quantity",
    "entry_date",
)

# Columns mapped onto Trade fields; everything else lands in Trade.extra.
KNOWN_COLUMNS: frozenset[str] = frozenset(
    REQUIRED_COLUMNS + ("exit_price", "exit_date", "fees", "setup", "tags", "notes")
)

# Never taken from the file.
OWNER_COLUMNS: frozenset[str] = frozenset({"user_id", "import_source", "status", "id"})


def normalize_trades(
    text: str,
    user_id: str,
    *,
    source: ImportSource = ImportSource.CSV,
    delimiter: str = ",",
) -> ImportResult:
    """Parse a delimited trade file into Trade records.

    Args:
        text: Full file contents. The first line is the header.
        user_id: Owner of every produced record.
        source: Ingestion channel tag written to each record.
        delimiter: Single field separator character.

    Returns:
        ImportResult with valid trades in file order, per-row errors, and
        the number of non-blank data lines seen.

    Raises:
        MissingColumnsError: If the header lacks any required column.
    """
    lines = _split_lines(text)
    header = parse_header(lines[0] if lines else "", delimiter)

    missing = [col for col in REQUIRED_COLUMNS if col not in header]
    if missing:
        logger.info("import_missing_columns", missing=missing, user_id=user_id)
        raise MissingColumnsError(missing)

    result = ImportResult()
    for line_no, line in enumerate(lines[1:], start=2):
        if not line.strip():
            continue
        result.rows_seen += 1

        raw = dict(zip(header, _split(line, delimiter)))
        trade = _build_trade(raw, line_no, user_id, source, result.errors)
        if trade is not None:
            result.trades.append(trade)

    logger.debug(
        "import_normalized",
        user_id=user_id,
        source=source.value,
        rows=result.rows_seen,
        valid=len(result.trades),
        errors=len(result.errors),
    )
    return result


def parse_header(line: str, delimiter: str = ",") -> list[str]:
    """Split a header line into trimmed column names."""
    return [name.strip() for name in _split(line.lstrip("\ufeff"), delimiter)]


def _split_lines(text: str) -> list[str]:
    # Only CR, LF and CRLF end a row; str.splitlines also breaks on
    # form feeds and Unicode separators that may appear inside a field.
    return text.replace("\r\n", "\n").replace("\r", "\n").split("\n")


def _split(line: str, delimiter: str) -> list[str]:
    if not line:
        return []
    try:
        values = next(csv.reader([line], delimiter=delimiter))
    except csv.Error:
        values = line.split(delimiter)
    return [v.strip() for v in values]


def _build_trade(
    raw: Mapping[str, str],
    line_no: int,
    user_id: str,
    source: ImportSource,
    errors: list[RowError],
) -> Trade | None:
    rejected = len(errors)

    def fail(column: str, message: str) -> None:
        errors.append(RowError(line=line_no, column=column, value=raw.get(column), message=message))

    symbol = _present(raw, "symbol")
    if symbol is None:
        fail("symbol", "symbol is required")

    direction = _parse_direction(raw, fail)
    entry_price = _parse_decimal(raw, "entry_price", fail, required=True, positive=True)
    quantity = _parse_decimal(raw, "quantity", fail, required=True, positive=True)
    entry_date = _parse_datetime(raw, "entry_date", fail, required=True)
    exit_price = _parse_decimal(raw, "exit_price", fail, positive=True)
    exit_date = _parse_datetime(raw, "exit_date", fail)
    fees = _parse_decimal(raw, "fees", fail)

    if len(errors) > rejected:
        return None

    tags = _present(raw, "tags")
    return Trade(
        user_id=user_id,
        symbol=symbol,
        direction=direction,
        entry_price=entry_price,
        quantity=quantity,
        entry_date=entry_date,
        exit_price=exit_price,
        exit_date=exit_date,
        fees=fees if fees is not None else Decimal("0"),
        status=derive_status(exit_price),
        import_source=source,
        setup=_present(raw, "setup"),
        tags=[t.strip() for t in tags.split(";") if t.strip()] if tags else [],
        notes=_present(raw, "notes"),
        extra={
            k: v
            for k, v in raw.items()
            if k and k not in KNOWN_COLUMNS and k not in OWNER_COLUMNS
        },
    )


def _present(raw: Mapping[str, str], column: str) -> str | None:
    value = raw.get(column)
    if value is None or value == "":
        return None
    return value


def _parse_direction(raw: Mapping[str, str], fail) -> TradeDirection | None:
    value = _present(raw, "direction")
    if value is None:
        fail("direction", "direction is required")
        return None
    try:
        return TradeDirection(value.lower())
    except ValueError:
        fail("direction", "direction must be 'long' or 'short'")
        return None


def _parse_decimal(
    raw: Mapping[str, str],
    column: str,
    fail,
    required: bool = False,
    positive: bool = False,
) -> Decimal | None:
    value = _present(raw, column)
    if value is None:
        if required:
            fail(column, f"{column} is required")
        return None
    try:
        number = Decimal(value)
    except InvalidOperation:
        fail(column, f"{column} is not a number")
        return None
    if not number.is_finite():
        fail(column, f"{column} is not a finite number")
        return None
    if positive and number <= 0:
        fail(column, f"{column} must be greater than zero")
        return None
    return number


def _parse_datetime(
    raw: Mapping[str, str],
    column: str,
    fail,
    required: bool = False,
) -> datetime | None:
    value = _present(raw, column)
    if value is None:
        if required:
            fail(column, f"{column} is required")
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        fail(column, f"{column} is not an ISO-8601 date")
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed

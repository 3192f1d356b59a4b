"""Shared data models for the trade journal service.

CRITICAL: All monetary values use Decimal. Never use float for prices, quantities, or fees.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class TradeDirection(str, Enum):
    """Trade direction."""

    LONG = "long"
    SHORT = "short"


class TradeStatus(str, Enum):
    """Trade lifecycle status. CLOSED iff an exit price is recorded."""

    OPEN = "open"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class ImportSource(str, Enum):
    """Channel a trade entered the journal through."""

    MANUAL = "manual"
    CSV = "csv"
    ROBINHOOD = "robinhood"
    INTERACTIVE_BROKERS = "interactive_brokers"
    TD_AMERITRADE = "td_ameritrade"


class Mood(str, Enum):
    """Trader mood recorded on a journal entry."""

    CONFIDENT = "confident"
    ANXIOUS = "anxious"
    FRUSTRATED = "frustrated"
    CALM = "calm"
    EXCITED = "excited"
    NEUTRAL = "neutral"


class MediaType(str, Enum):
    """Kind of file attached to a journal entry."""

    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"


def derive_status(exit_price: Decimal | None) -> TradeStatus:
    """Closed when an exit price is recorded, open otherwise."""
    return TradeStatus.CLOSED if exit_price is not None else TradeStatus.OPEN


@dataclass
class Trade:
    """A single trade owned by one user.

    Built by the import normalizer or the manual entry endpoint; id,
    created_at and updated_at are assigned by the record store on insert.
    Columns an import file defines beyond the known ones are kept in
    ``extra`` untouched.
    """

    user_id: str
    symbol: str
    direction: TradeDirection
    entry_price: Decimal
    quantity: Decimal
    entry_date: datetime
    exit_price: Decimal | None = None
    exit_date: datetime | None = None
    fees: Decimal = Decimal("0")
    status: TradeStatus = TradeStatus.OPEN
    import_source: ImportSource = ImportSource.MANUAL
    setup: str | None = None
    tags: list[str] = field(default_factory=list)
    notes: str | None = None
    extra: dict[str, str] = field(default_factory=dict)
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class JournalEntry:
    """A journal entry, optionally linked to a trade.

    content is the rich-text editor document and is stored opaquely.
    """

    user_id: str
    title: str
    content: Any
    mood: Mood
    trade_id: str | None = None
    lessons_learned: str | None = None
    confidence_score: int | None = None
    tags: list[str] = field(default_factory=list)
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class TradeScreenshot:
    """Reference to an already-uploaded chart screenshot for a trade."""

    trade_id: str
    user_id: str
    storage_path: str
    caption: str | None = None
    id: str | None = None
    created_at: datetime | None = None


@dataclass
class JournalMedia:
    """Reference to an uploaded file attached to a journal entry."""

    journal_entry_id: str
    user_id: str
    media_url: str
    media_type: MediaType
    file_name: str | None = None
    file_size: int | None = None
    id: str | None = None
    created_at: datetime | None = None


@dataclass
class RowError:
    """A single rejected value in an import file.

    line is the 1-based line number in the uploaded file.
    """

    line: int
    column: str
    value: str | None
    message: str


@dataclass
class ImportResult:
    """Outcome of normalizing one import file."""

    trades: list[Trade] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)
    rows_seen: int = 0

    @property
    def rejected_lines(self) -> list[int]:
        """Distinct file lines with at least one error, in file order."""
        return sorted({e.line for e in self.errors})


@dataclass(frozen=True)
class RateLimitDecision:
    """Admission verdict for one rate-limited call.

    reset is the epoch-millisecond time at which the budget refills.
    """

    success: bool
    limit: int
    remaining: int
    reset: int

"""Record store: SQLite persistence for trades, screenshots, journal entries and media.

Provides the database connection manager and typed, user-scoped stores.
"""

from tradelog.data.database import Database
from tradelog.data.journal import JournalStore, MediaStore
from tradelog.data.store import ScreenshotStore, TradeStore

__all__ = [
    "Database",
    "JournalStore",
    "MediaStore",
    "ScreenshotStore",
    "TradeStore",
]

"""Custom exceptions for the trade journal service.

All import, rate-limit, auth and store exceptions live here so route
handlers can map them to HTTP responses in one place.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tradelog.models import RateLimitDecision, RowError


class TradeLogError(Exception):
    """Base exception for all service errors."""


class TradeImportError(TradeLogError):
    """Raised when an uploaded trade file cannot be imported."""


class MissingColumnsError(TradeImportError):
    """Raised when the header lacks one or more required columns."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Missing required columns: {', '.join(self.missing)}")


class ImportValidationError(TradeImportError):
    """Raised when one or more data rows fail validation and the batch is rejected."""

    def __init__(self, errors: list[RowError]) -> None:
        self.errors = list(errors)
        super().__init__(f"{len(self.errors)} row(s) failed validation")


class InvalidDurationError(TradeLogError, ValueError):
    """Raised when a rate limit window string has no usable count."""


class RateLimitExceededError(TradeLogError):
    """Raised when a caller has used up its write budget for the window."""

    def __init__(self, decision: RateLimitDecision) -> None:
        self.decision = decision
        super().__init__("Rate limit exceeded. Please try again later.")


class AuthenticationError(TradeLogError):
    """Raised when a request carries no valid session."""


class StoreError(TradeLogError):
    """Raised when the record store rejects a read or write."""


class RecordNotFoundError(StoreError):
    """Raised when a record does not exist or belongs to another user."""

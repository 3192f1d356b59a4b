"""Admission gate for write endpoints.

Translates a compact window string ("5m", "1h") into seconds, asks the
sliding window backend for a verdict, and returns it unchanged. Backend
failures never reach the caller: the configured failure policy decides
whether the call is admitted (open) or refused (closed), and the error
is logged.
"""

import time
from collections.abc import Callable
from enum import Enum

from tradelog.exceptions import InvalidDurationError
from tradelog.logging import get_logger
from tradelog.models import RateLimitDecision
from tradelog.ratelimit.backends import SlidingWindowBackend

logger = get_logger(__name__)

DEFAULT_WINDOW_SECONDS = 300
FAIL_OPEN_RESET_MS = 300_000

_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 24 * 60 * 60,
}


class FailurePolicy(str, Enum):
    """What the limiter answers when its backend is unreachable."""

    OPEN = "open"
    CLOSED = "closed"


def parse_duration(duration: str) -> int:
    """Convert "<count><unit>" into seconds.

    Units: s, m, h, d. Any other trailing character yields the default
    300-second window.

    Raises:
        InvalidDurationError: If the unit is recognized but the count is
            not a positive integer.
    """
    unit = duration[-1:]
    multiplier = _UNIT_SECONDS.get(unit)
    if multiplier is None:
        return DEFAULT_WINDOW_SECONDS

    count = duration[:-1].strip()
    if not count.isdecimal() or int(count) <= 0:
        raise InvalidDurationError(f"Invalid rate limit window: {duration!r}")
    return int(count) * multiplier


class RateLimiter:
    """Sliding window rate limiter over an external counter backend.

    Holds no per-caller state; every decision is one backend round trip.

    Args:
        backend: Counter store providing the sliding window verdict.
        failure_policy: Verdict to return when the backend raises.
        global_identifier: Key shared by callers that supply no identifier.
        clock: Time source in epoch seconds (injectable for tests).
    """

    def __init__(
        self,
        backend: SlidingWindowBackend,
        failure_policy: FailurePolicy = FailurePolicy.OPEN,
        global_identifier: str = "global",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._backend = backend
        self._failure_policy = FailurePolicy(failure_policy)
        self._global_identifier = global_identifier
        self._clock = clock

    @property
    def failure_policy(self) -> FailurePolicy:
        return self._failure_policy

    async def limit(
        self,
        limit: int = 10,
        duration: str = "5m",
        identifier: str | None = None,
    ) -> RateLimitDecision:
        """Decide whether one more call is admitted for identifier.

        Args:
            limit: Maximum calls permitted in the window.
            duration: Window length as "<count><unit>".
            identifier: Caller key (user id or client address). Falls
                back to the shared global key when empty.

        Returns:
            The backend's verdict, or the failure policy's verdict if the
            backend call raised.
        """
        key = identifier or self._global_identifier
        try:
            window_seconds = parse_duration(duration)
            return await self._backend.hit(key, limit, window_seconds)
        except Exception as e:
            logger.error(
                "rate_limiter_error",
                identifier=key,
                limit=limit,
                duration=duration,
                policy=self._failure_policy.value,
                error=str(e),
            )
            return self._fallback(limit, duration)

    def _fallback(self, limit: int, duration: str) -> RateLimitDecision:
        now_ms = int(self._clock() * 1000)
        if self._failure_policy is FailurePolicy.OPEN:
            return RateLimitDecision(
                success=True,
                limit=limit,
                remaining=limit,
                reset=now_ms + FAIL_OPEN_RESET_MS,
            )
        try:
            window_ms = parse_duration(duration) * 1000
        except InvalidDurationError:
            window_ms = DEFAULT_WINDOW_SECONDS * 1000
        return RateLimitDecision(
            success=False,
            limit=limit,
            remaining=0,
            reset=now_ms + window_ms,
        )

    async def close(self) -> None:
        await self._backend.close()

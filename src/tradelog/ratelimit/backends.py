"""Sliding window counter backends for the rate limiter.

Both backends implement the same approximation: two fixed-window
counters (current and previous) where the previous window's count is
weighted by how much of it still overlaps the sliding window ending now.

    estimated = previous * (1 - elapsed_fraction) + current

A hit is admitted when the estimate is below the limit, and only
admitted hits are counted. The budget resets at the end of the current
fixed window.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Callable

from redis.asyncio import Redis

from tradelog.logging import get_logger
from tradelog.models import RateLimitDecision

logger = get_logger(__name__)

_SLIDING_WINDOW_LUA = """
local current_key = KEYS[1]
local previous_key = KEYS[2]
local limit = tonumber(ARGV[1])
local now_ms = tonumber(ARGV[2])
local window_ms = tonumber(ARGV[3])

local current = tonumber(redis.call("GET", current_key) or "0")
local previous = tonumber(redis.call("GET", previous_key) or "0")
local elapsed = (now_ms % window_ms) / window_ms
local estimated = math.floor(previous * (1 - elapsed) + current)

if estimated >= limit then
    return {0, estimated}
end

current = redis.call("INCR", current_key)
if current == 1 then
    redis.call("PEXPIRE", current_key, window_ms * 2 + 1000)
end
return {1, estimated + 1}
"""


def _decision(
    admitted: bool, used: int, limit: int, window_index: int, window_ms: int
) -> RateLimitDecision:
    return RateLimitDecision(
        success=admitted,
        limit=limit,
        remaining=max(0, min(limit, limit - used)),
        reset=(window_index + 1) * window_ms,
    )


class SlidingWindowBackend(ABC):
    """Counter store consulted once per rate limit decision."""

    @abstractmethod
    async def hit(self, identifier: str, limit: int, window_seconds: int) -> RateLimitDecision:
        """Count one call for identifier and return the admission verdict."""
        ...

    async def close(self) -> None:
        """Release backend resources."""


class RedisSlidingWindow(SlidingWindowBackend):
    """Sliding window counter stored in Redis.

    The read-estimate-increment sequence runs as one Lua script so
    concurrent hits from several workers are counted atomically.

    Usage:
        backend = RedisSlidingWindow(Redis.from_url(url))
        decision = await backend.hit("user-1", limit=10, window_seconds=300)
    """

    def __init__(
        self,
        client: Redis,
        prefix: str = "ratelimit",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._prefix = prefix
        self._clock = clock
        self._script = client.register_script(_SLIDING_WINDOW_LUA)

    @classmethod
    def from_url(cls, url: str, prefix: str = "ratelimit") -> "RedisSlidingWindow":
        return cls(Redis.from_url(url, decode_responses=True), prefix=prefix)

    def _key(self, identifier: str, window_index: int) -> str:
        return f"{self._prefix}:{identifier}:{window_index}"

    async def hit(self, identifier: str, limit: int, window_seconds: int) -> RateLimitDecision:
        now_ms = int(self._clock() * 1000)
        window_ms = window_seconds * 1000
        window_index = now_ms // window_ms

        admitted, used = await self._script(
            keys=[
                self._key(identifier, window_index),
                self._key(identifier, window_index - 1),
            ],
            args=[limit, now_ms, window_ms],
        )
        return _decision(bool(int(admitted)), int(used), limit, window_index, window_ms)

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("rate_limit_backend_closed", backend="redis")


class InMemorySlidingWindow(SlidingWindowBackend):
    """Process-local sliding window counter.

    Only correct when a single worker serves all requests. Used when no
    Redis URL is configured and in tests.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._counts: dict[tuple[str, int, int], int] = {}
        self._lock = asyncio.Lock()

    async def hit(self, identifier: str, limit: int, window_seconds: int) -> RateLimitDecision:
        async with self._lock:
            now_ms = int(self._clock() * 1000)
            window_ms = window_seconds * 1000
            window_index = now_ms // window_ms
            self._prune(window_index, window_seconds)

            current_key = (identifier, window_seconds, window_index)
            current = self._counts.get(current_key, 0)
            previous = self._counts.get((identifier, window_seconds, window_index - 1), 0)
            elapsed = (now_ms % window_ms) / window_ms
            estimated = int(previous * (1 - elapsed) + current)

            if estimated >= limit:
                return _decision(False, estimated, limit, window_index, window_ms)

            self._counts[current_key] = current + 1
            return _decision(True, estimated + 1, limit, window_index, window_ms)

    def _prune(self, window_index: int, window_seconds: int) -> None:
        stale = [
            key
            for key in self._counts
            if key[1] == window_seconds and key[2] < window_index - 1
        ]
        for key in stale:
            del self._counts[key]

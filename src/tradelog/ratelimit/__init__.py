"""Sliding window rate limiting for write endpoints."""

from tradelog.ratelimit.backends import (
    InMemorySlidingWindow,
    RedisSlidingWindow,
    SlidingWindowBackend,
)
from tradelog.ratelimit.limiter import FailurePolicy, RateLimiter, parse_duration

__all__ = [
    "FailurePolicy",
    "InMemorySlidingWindow",
    "RateLimiter",
    "RedisSlidingWindow",
    "SlidingWindowBackend",
    "parse_duration",
]

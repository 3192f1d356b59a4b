"""FastAPI dependencies: session resolution and write rate limiting."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Literal

import structlog
from fastapi import Depends, Request, Response

from tradelog.auth import extract_token
from tradelog.data import JournalStore, MediaStore, ScreenshotStore, TradeStore
from tradelog.exceptions import RateLimitExceededError
from tradelog.logging import bind_user
from tradelog.models import RateLimitDecision

log = structlog.get_logger(__name__)


async def current_user(request: Request) -> str:
    """Resolve the authenticated user id or raise AuthenticationError."""
    provider = request.app.state.session_provider
    cookie_name = request.app.state.settings.auth.cookie_name
    token = extract_token(
        request.headers.get("authorization"),
        request.cookies.get(cookie_name),
    )
    user_id = provider.authenticate(token)
    bind_user(user_id)
    return user_id


def trade_store(request: Request) -> TradeStore:
    return request.app.state.trade_store


def screenshot_store(request: Request) -> ScreenshotStore:
    return request.app.state.screenshot_store


def journal_store(request: Request) -> JournalStore:
    return request.app.state.journal_store


def media_store(request: Request) -> MediaStore:
    return request.app.state.media_store


def rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset),
    }


def rate_limited(
    scope: str, budget: Literal["write", "import"] = "write"
) -> Callable[..., Awaitable[RateLimitDecision]]:
    """Build a dependency that spends one unit of the caller's budget for scope.

    Each user has an independent counter per scope, so a burst of journal
    writes does not block trade edits.
    """

    async def dependency(
        request: Request,
        response: Response,
        user_id: str = Depends(current_user),
    ) -> RateLimitDecision:
        settings = request.app.state.settings.rate_limit
        if budget == "import":
            limit, window = settings.import_limit, settings.import_window
        else:
            limit, window = settings.write_limit, settings.write_window

        decision = await request.app.state.rate_limiter.limit(
            limit, window, identifier=f"{scope}:{user_id}"
        )
        if not decision.success:
            log.warning("rate_limited", scope=scope, user_id=user_id, reset=decision.reset)
            raise RateLimitExceededError(decision)

        response.headers.update(rate_limit_headers(decision))
        return decision

    return dependency

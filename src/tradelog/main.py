"""Entry point for the trade journal API.

Wires the record store, rate limiter and session provider together and
serves the FastAPI app through uvicorn's programmatic API. Components are
built before the server starts and connected inside the app lifespan.

Component wiring order (in build_components):
1. Database (SQLite record store)
2. Sliding window backend (Redis, or in-process when no URL is set)
3. RateLimiter (failure policy from settings)
4. JwtSessionProvider
5. TradeStore, ScreenshotStore, JournalStore, MediaStore
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from tradelog.api import create_app
from tradelog.auth import JwtSessionProvider
from tradelog.config import AppSettings
from tradelog.data import Database, JournalStore, MediaStore, ScreenshotStore, TradeStore
from tradelog.logging import get_logger, setup_logging
from tradelog.ratelimit import (
    FailurePolicy,
    InMemorySlidingWindow,
    RateLimiter,
    RedisSlidingWindow,
)


def build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all service components from settings.

    Does NOT open the database connection; that happens in the lifespan.

    Args:
        settings: Application-wide settings.

    Returns:
        Dict mapping component names to instances.
    """
    logger = get_logger("tradelog.main")

    database = Database(settings.database.path)

    rl = settings.rate_limit
    if rl.redis_url:
        backend = RedisSlidingWindow.from_url(rl.redis_url, prefix=rl.key_prefix)
    else:
        logger.warning(
            "rate_limit_backend_in_memory",
            note="Counters are per process. Set RATE_LIMIT_REDIS_URL for multiple workers.",
        )
        backend = InMemorySlidingWindow()

    rate_limiter = RateLimiter(
        backend,
        failure_policy=FailurePolicy(rl.failure_policy),
        global_identifier=rl.global_identifier,
    )

    if not settings.auth.jwt_secret.get_secret_value():
        logger.warning(
            "no_session_secret_configured",
            note="Every authenticated request will be rejected until AUTH_JWT_SECRET is set.",
        )

    return {
        "database": database,
        "rate_limiter": rate_limiter,
        "session_provider": JwtSessionProvider(settings.auth),
        "trade_store": TradeStore(database),
        "screenshot_store": ScreenshotStore(database),
        "journal_store": JournalStore(database),
        "media_store": MediaStore(database),
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect components on startup and release them on shutdown.

    Expects app.state.settings and app.state.components to be set before
    the server starts.
    """
    logger = get_logger("tradelog.main")
    components = app.state.components

    await components["database"].connect()

    app.state.trade_store = components["trade_store"]
    app.state.screenshot_store = components["screenshot_store"]
    app.state.journal_store = components["journal_store"]
    app.state.media_store = components["media_store"]
    app.state.rate_limiter = components["rate_limiter"]
    app.state.session_provider = components["session_provider"]

    logger.info(
        "lifespan_started",
        failure_policy=components["rate_limiter"].failure_policy.value,
    )

    try:
        yield
    finally:
        await components["rate_limiter"].close()
        await components["database"].close()
        logger.info("tradelog_stopped")


async def run() -> None:
    """Load settings, build components and serve the API."""
    settings = AppSettings()

    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("tradelog.main")

    components = build_components(settings)

    app = create_app(lifespan=lifespan, title=settings.api.title)
    app.state.settings = settings
    app.state.components = components

    logger.info("starting_api", host=settings.api.host, port=settings.api.port)

    config = uvicorn.Config(
        app,
        host=settings.api.host,
        port=settings.api.port,
        log_level="warning",  # request logging is done by the app middleware
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()

"""Shared test fixtures for the trade journal service."""

import time
from collections.abc import Callable, Iterator

import jwt
import pytest
from fastapi.testclient import TestClient

from tradelog.api import create_app
from tradelog.config import (
    AppSettings,
    AuthSettings,
    DatabaseSettings,
    ImportSettings,
    RateLimitSettings,
)
from tradelog.main import build_components, lifespan

TEST_SECRET = "test-session-secret-0123456789abcdef"


@pytest.fixture
def session_secret() -> str:
    return TEST_SECRET


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Return a factory for signed session tokens."""

    def _make(
        user_id: str = "user-1",
        secret: str = TEST_SECRET,
        expires_in: int = 3600,
        audience: str | None = "authenticated",
    ) -> str:
        payload: dict = {"sub": user_id, "exp": int(time.time()) + expires_in}
        if audience is not None:
            payload["aud"] = audience
        return jwt.encode(payload, secret, algorithm="HS256")

    return _make


@pytest.fixture
def auth_headers(make_token: Callable[..., str]) -> Callable[[str], dict[str, str]]:
    """Return a factory for Authorization headers for a given user id."""

    def _headers(user_id: str = "user-1") -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id)}"}

    return _headers


@pytest.fixture
def mock_settings(tmp_path) -> AppSettings:
    """AppSettings with a temp database, in-memory limiter and small budgets."""
    return AppSettings(
        log_level="DEBUG",
        database=DatabaseSettings(path=str(tmp_path / "tradelog.db")),
        auth=AuthSettings(jwt_secret=TEST_SECRET),  # type: ignore[arg-type]
        rate_limit=RateLimitSettings(
            redis_url=None,
            write_limit=3,
            write_window="5m",
            import_limit=2,
            import_window="15m",
        ),
        imports=ImportSettings(allow_partial=False),
    )


@pytest.fixture
def client_for() -> Callable[[AppSettings], TestClient]:
    """Return a factory building a TestClient (with lifespan) for given settings."""

    def _client(settings: AppSettings) -> TestClient:
        app = create_app(lifespan=lifespan)
        app.state.settings = settings
        app.state.components = build_components(settings)
        return TestClient(app)

    return _client


@pytest.fixture
def client(
    mock_settings: AppSettings, client_for: Callable[[AppSettings], TestClient]
) -> Iterator[TestClient]:
    with client_for(mock_settings) as test_client:
        yield test_client

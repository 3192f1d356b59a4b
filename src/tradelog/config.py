"""Configuration system using pydantic-settings with environment variable loading."""

from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiSettings(BaseSettings):
    """HTTP server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8000
    title: str = "Trade Journal API"


class DatabaseSettings(BaseSettings):
    """Record store location."""

    model_config = SettingsConfigDict(env_prefix="DB_")

    path: str = "data/tradelog.db"


class AuthSettings(BaseSettings):
    """Session token validation settings.

    Tokens are HS256 JWTs issued by the auth backend; the ``sub`` claim
    carries the user id.
    """

    model_config = SettingsConfigDict(env_prefix="AUTH_")

    jwt_secret: SecretStr = SecretStr("")
    jwt_algorithm: str = "HS256"
    jwt_audience: str | None = "authenticated"
    cookie_name: str = "session"


class RateLimitSettings(BaseSettings):
    """Sliding window rate limiting for write endpoints.

    With no redis_url the limiter counts in process memory, which is only
    correct for a single worker.
    """

    model_config = SettingsConfigDict(env_prefix="RATE_LIMIT_")

    redis_url: str | None = None
    key_prefix: str = "ratelimit"
    global_identifier: str = "global"
    failure_policy: Literal["open", "closed"] = "open"

    write_limit: int = 10
    write_window: str = "5m"
    import_limit: int = 5
    import_window: str = "15m"


class ImportSettings(BaseSettings):
    """Trade file import behaviour."""

    model_config = SettingsConfigDict(env_prefix="IMPORT_")

    delimiter: str = Field(default=",", min_length=1, max_length=1)
    allow_partial: bool = False  # insert valid rows even when some rows fail
    max_file_bytes: int = 5_000_000


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    api: ApiSettings = ApiSettings()
    database: DatabaseSettings = DatabaseSettings()
    auth: AuthSettings = AuthSettings()
    rate_limit: RateLimitSettings = RateLimitSettings()
    imports: ImportSettings = ImportSettings()

"""Structured logging for the trade journal API.

Every log line emitted while serving a request carries the request id,
method and path, plus the user id once the session has been resolved.
That context lives in structlog.contextvars so it survives awaits and
is cleared at the start of the next request.
"""

import logging
import uuid
from collections.abc import MutableMapping
from typing import Any

import structlog

REQUEST_ID_HEADER = "x-request-id"

# Event keys whose values must never be written out.
_SECRET_KEYS = frozenset({"authorization", "cookie", "token", "jwt_secret"})

# Libraries that log every call at DEBUG, or duplicate the request log.
_NOISY_LOGGERS = ("aiosqlite", "uvicorn.access", "multipart")


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Mask session tokens and credentials accidentally passed as log fields."""
    for key in _SECRET_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def setup_logging(log_level: str = "INFO", log_format: str = "console") -> None:
    """Route structlog and stdlib logging through one rendered handler.

    log_format is "json" for deployments and "console" for local runs.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        redact_secrets,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]

    renderer: structlog.types.Processor
    if log_format.lower() == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_request(request_id: str | None, method: str, path: str) -> str:
    """Start a fresh logging context for one HTTP request.

    Uses the caller-supplied request id when present, otherwise a new
    short one. Returns the id in effect.
    """
    request_id = request_id or uuid.uuid4().hex[:12]
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, method=method, path=path)
    return request_id


def bind_user(user_id: str) -> None:
    """Attach the authenticated user to the current request's log context."""
    structlog.contextvars.bind_contextvars(user_id=user_id)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

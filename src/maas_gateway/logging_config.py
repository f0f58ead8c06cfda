"""Structured logging configuration for the gateway.

JSON output for production, colored console for development/testing.
Credentials (API keys, bearer tokens, key hashes, secrets) are masked by a
processor before rendering, whether passed as fields, inside logged header
mappings, or embedded in free-form strings.
Call configure_logging() once at application startup (e.g. in FastAPI lifespan
or at cold start of a serverless handler).
"""

import logging
import re
import sys
from collections.abc import Mapping
from typing import Any

import structlog

SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "api_key",
        "x-api-key",
        "x_api_key",
        "key_hash",
        "password",
        "secret",
        "jwt",
        "jwt_secret",
        "token",
        "authorization",
        "cookie",
        "set-cookie",
    }
)
REDACTED = "***REDACTED***"

# Credentials embedded in free-form strings (messages, forwarded headers).
_INLINE_CREDENTIALS = (
    (re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/=-]+"), f"Bearer {REDACTED}"),
    (re.compile(r"\blns_[A-Za-z0-9_-]{8,}"), REDACTED),
)


def _scrub(key: str, value: Any) -> Any:
    if key.lower() in SENSITIVE_KEYS:
        return REDACTED
    if isinstance(value, Mapping):
        return {k: _scrub(str(k), v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [_scrub(key, item) for item in value]
    if isinstance(value, str):
        for pattern, replacement in _INLINE_CREDENTIALS:
            value = pattern.sub(replacement, value)
    return value


def _redact_sensitive_keys(
    logger: logging.Logger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Redact sensitive keys at any depth and inline bearer tokens or API keys.

    Nested mappings such as a logged ``headers`` dict are walked, so
    ``headers={"X-API-Key": ...}`` is masked as well as a top-level
    ``api_key=...``.
    """
    for key in list(event_dict):
        event_dict[key] = _scrub(key, event_dict[key])
    return event_dict


def configure_logging(
    environment: str = "development",
    log_level: str = "INFO",
) -> None:
    """Configure structlog processor chain and stdlib root logger.

    Args:
        environment: 'production' for JSON output, anything else
            for colored console output.
        log_level: Python log level name (DEBUG, INFO, WARNING, etc.).
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _redact_sensitive_keys,
    ]

    if environment == "production":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    # Quiet noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

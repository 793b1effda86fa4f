"""
Structured Logging - structlog over the standard library.

Every entry carries the service name and version. Values bound with
log_context (request id, user id) ride along through contextvars. Credentials
are masked and generated text is clipped before the renderer sees them.
"""

import logging
import sys
from contextlib import AbstractContextManager
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from auraflow.config import settings

REDACTED = "[redacted]"
SECRET_FIELDS = frozenset(
    {"api_key", "authorization", "signature", "stripe_signature", "webhook_secret", "token"}
)
CLIPPED_FIELDS = frozenset({"content", "matched_content", "body_preview", "error"})
MAX_FIELD_CHARS = 300

# Client libraries that log every HTTP round-trip at INFO
CHATTY_LOGGERS = ("httpx", "httpcore", "openai", "stripe")


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp service and version unless the call site set them."""
    event_dict.setdefault("service", settings.service_name)
    event_dict.setdefault("version", settings.api_version)
    return event_dict


def redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask credential-shaped fields."""
    for key in SECRET_FIELDS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def clip_long_text(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Shorten message bodies and upstream error text."""
    for key in CLIPPED_FIELDS.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, str) and len(value) > MAX_FIELD_CHARS:
            event_dict[key] = f"{value[:MAX_FIELD_CHARS]}... ({len(value)} chars)"
    return event_dict


def build_processors(log_format: str) -> list[Processor]:
    """Processor chain ending in the JSON or console renderer."""
    renderer: Processor
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_app_context,
        redact_secrets,
        clip_long_text,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]


def setup_logging() -> None:
    """
    Configure structlog and the stdlib root logger from settings.

    A JSON entry looks like:
    {
        "event": "daily_drop_generated",
        "level": "info",
        "timestamp": "2025-03-14T05:00:00.123456Z",
        "logger": "auraflow.services.daily_drop",
        "service": "auraflow-core",
        "version": "0.1.0",
        "request_id": "3f2b...",
        "locale": "en-US",
        "used_fallback": false
    }
    """
    level = getattr(logging, settings.log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=build_processors(settings.log_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Named structlog logger, e.g. get_logger(__name__)."""
    return structlog.get_logger(name)  # type: ignore[no-any-return]


def log_context(**values: Any) -> AbstractContextManager[None]:
    """
    Bind values to every entry logged inside the block.

    Values bound by an enclosing block are restored on exit, so nested
    contexts (a request inside a job) do not clobber each other.

    Usage:
        with log_context(request_id=request_id):
            logger.info("request_started")
    """
    return structlog.contextvars.bound_contextvars(**values)

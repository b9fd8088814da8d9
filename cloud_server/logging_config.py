"""structlog setup for the stand-in cloud, with credential scrubbing."""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict

# Event keys that may carry credentials or tokens
SECRET_KEYS = frozenset(
    {"api_key", "password", "token", "x_auth_key", "x_auth_token", "x_storage_token"}
)


def scrub_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Replace credential values with a short prefix so they never reach the log."""
    for key in SECRET_KEYS.intersection(event_dict):
        value = event_dict[key]
        if value:
            event_dict[key] = f"{str(value)[:4]}..."
    return event_dict


def setup_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """
    Configure structured logging.

    Request-scoped values bound with ``structlog.contextvars`` (the request
    middleware binds a correlation id) are merged into every event.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        log_format: ``json`` or ``console``
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        scrub_secrets,
        structlog.processors.format_exc_info,
    ]
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    # Client libraries used by the tests share the process
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    if level > logging.DEBUG:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

"""
Structured logging for the credential core.

Provides:
- get_logger(): structlog logger bound to a module name
- setup_logging(): configure stdlib logging + structlog once at startup

JSON output in production, pretty console output in development. Secret
material is redacted by a processor, but call sites must still never pass
plaintext codes, tokens or passwords to a logger.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import structlog
from structlog.stdlib import BoundLogger
from structlog.types import EventDict, Processor

# Keys whose values never reach a log sink
REDACTED_FIELDS = {
    "password",
    "new_password",
    "password_hash",
    "code",
    "otp",
    "otp_hash",
    "token",
    "raw_token",
    "reset_token_hash",
    "remember_token_hash",
    "secret",
    "cookie",
    "authorization",
}
_REDACTED_FRAGMENTS = ("password", "token", "secret", "otp")
_NEVER_REDACT = {"level", "event", "timestamp", "logger"}


def get_logger(name: str) -> BoundLogger:
    """
    Get a configured logger instance.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("otp_issued", account_id="65f0c0ffee")
    """
    return structlog.get_logger(name)


def redact_sensitive_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Redact sensitive fields from logs."""
    for key in list(event_dict.keys()):
        if key in _NEVER_REDACT:
            continue
        lowered = key.lower()
        if lowered in REDACTED_FIELDS or any(
            fragment in lowered for fragment in _REDACTED_FRAGMENTS
        ):
            event_dict[key] = "***REDACTED***"
    return event_dict


def configure_structlog(log_format: str = "console") -> None:
    """
    Configure structlog processors.

    ``log_format="json"``: JSON lines for log shipping.
    anything else: coloured console output for development.
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        redact_sensitive_fields,
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True, pad_event=15)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def setup_logging(level: str = "INFO", log_format: Optional[str] = None) -> None:
    """Configure stdlib logging (stdout) and structlog together."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    configure_structlog(log_format or "console")

"""
Structured logging setup (structlog).

Every module gets its logger through get_logger(__name__) and logs a
snake_case event name plus key/value context:

    logger = get_logger(__name__)
    logger.info("session_issued", user_id=str(user.id))

Output is JSON lines by default (LOG_JSON=true) so log shippers can index the
fields; set LOG_JSON=false for a colored console renderer during development.
LOG_LEVEL picks the threshold. Both are read straight from the environment
rather than from fleet_auth.config: the client package logs too, and a client
process has no SECRET_KEY to satisfy the server settings.

Security:
  Passwords and session tokens must never be passed as log fields. As a second
  line of defense, the redaction processor masks any field whose name looks
  like a credential or an email address.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict

import structlog


_PII_KEYS = {"password", "secret", "token", "authorization", "email"}


def _redact_pii(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Mask values of credential-like keys, keeping the first/last 2 chars."""
    for key in list(event_dict.keys()):
        lower_key = key.lower()
        if any(pii in lower_key for pii in _PII_KEYS):
            value = event_dict[key]
            if isinstance(value, str) and len(value) > 4:
                event_dict[key] = value[:2] + "***" + value[-2:]
    return event_dict


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog processors and the level filter."""
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _redact_pii,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# Initialize logging on module import
configure_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    json_output=os.getenv("LOG_JSON", "true").lower() in {"1", "true", "yes", "on"},
)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a configured structlog logger."""
    return structlog.get_logger(name)

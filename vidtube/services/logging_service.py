"""Structured logging: JSON events with credentials scrubbed."""

import logging
import re
import sys
from typing import Any, Dict

import structlog

REDACTED = "REDACTED"

# Matched as substrings of the lower-cased key
SENSITIVE_KEYS = {
    "api_key",
    "authorization",
    "secret",
    "password",
    "token",
    "cookie",
}

# Three base64url segments starting with a JWT header ("eyJ")
_JWT_RE = re.compile(r"eyJ[\w-]*\.[\w-]+\.[\w-]+")


def redact_sensitive(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Replace the value of any credential-bearing field.

    A field is credential-bearing when its name contains one of
    SENSITIVE_KEYS, so ``refresh_token``, ``cloudinary_api_secret`` and
    ``Authorization`` are all caught. The event name itself is kept.
    """
    for key in list(event_dict.keys()):
        if key == "event":
            continue
        if any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
            event_dict[key] = REDACTED

    return event_dict


def scrub_jwts(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Mask JWTs embedded in free-text values such as error messages."""
    for key, value in event_dict.items():
        if isinstance(value, str) and "eyJ" in value:
            event_dict[key] = _JWT_RE.sub(REDACTED, value)
    return event_dict


def configure_logging(log_level: str = "INFO") -> None:
    """Set up structlog to print one JSON object per event on stdout.

    Context bound through structlog.contextvars (the correlation id, path
    and method from the request middleware) is merged into every event.

    Args:
        log_level: Minimum level name (DEBUG, INFO, WARNING, ERROR)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_sensitive,
            scrub_jwts,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a logger, bound to ``logger_name`` when a name is given."""
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger_name=name)
    return logger

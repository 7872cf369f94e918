from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

_CONFIGURED = False

# Keys whose values must never be written to logs in clear text
REDACTED_KEYS = frozenset({"password", "temp_password", "hashed_password", "tempPassword"})


def redact_credentials(
    _: Any, __: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Mask credential-bearing values before rendering."""
    for key in REDACTED_KEYS.intersection(event_dict):
        if event_dict[key] is not None:
            event_dict[key] = "***"
    return event_dict


def setup_logging(level: int | str = logging.INFO) -> None:
    """Configure structlog to emit JSON logs with contextvars support."""
    global _CONFIGURED
    if _CONFIGURED:
        return

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stdout,
    )

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
        redact_credentials,
        structlog.processors.dict_tracebacks,
        structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )

    _CONFIGURED = True

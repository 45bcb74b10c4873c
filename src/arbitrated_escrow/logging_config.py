"""Structured logging configuration using structlog.

Console output in development, JSON in every other environment. Entries
emitted while serving an HTTP request carry the request_id bound by the
middleware; engine entries carry the transaction_id and actor of the call.

Amounts are base-unit integers (1.0 unit = 10**18). JSON output renders any
integer outside the IEEE-754 safe range as a decimal string so log
consumers that parse numbers as doubles do not silently round balances.

Usage:
    from arbitrated_escrow.logging_config import setup_logging, get_logger
    setup_logging(log_level="DEBUG", json_logs=False)
    logger = get_logger()
    logger.info("escrow.payment_deposited", transaction_id=0, amount=10**18)
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

# Largest integer a double represents exactly.
MAX_SAFE_INTEGER = 2**53 - 1

_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "httpx")


def _stringify_large_ints(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    for key, value in event_dict.items():
        if isinstance(value, int) and not isinstance(value, bool) and abs(value) > MAX_SAFE_INTEGER:
            event_dict[key] = str(value)
    return event_dict


def setup_logging(log_level: str = "DEBUG", json_logs: bool = False) -> None:
    """Configure structlog over the standard library root logger.

    Args:
        log_level: Standard Python log level string (DEBUG, INFO, WARNING, etc.)
        json_logs: If True, output JSON. If False, colored console.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    render_chain: list[structlog.types.Processor] = [
        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
    ]
    if json_logs:
        render_chain += [
            structlog.processors.format_exc_info,
            _stringify_large_ints,
            structlog.processors.JSONRenderer(),
        ]
    else:
        render_chain.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=render_chain,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.DEBUG))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to ``name`` (the module name by convention)."""
    return structlog.get_logger(name)

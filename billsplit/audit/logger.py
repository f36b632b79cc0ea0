"""
Engine Logging

DESIGN DECISION: Every state transition of the allocation engine and every
record the ledger skips is logged. This provides:
1. Traceability of how a split ended up the way it did
2. Debugging capability when balances look wrong
3. Visibility into malformed expense documents

Logging never changes results. The engines stay pure; the logger
only observes.

Related events (one editing session, one ledger run) share a
correlation ID.
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from billsplit.config import get_settings

LOGGER_NAME = "billsplit"


def configure_logging(
    json_logs: Optional[bool] = None,
    debug: Optional[bool] = None,
) -> None:
    """
    Configure structlog for the package.

    Arguments default to the values in AppSettings.
    Safe to call more than once; the last call wins.
    """
    if json_logs is None or debug is None:
        app_settings = get_settings().app
        json_logs = app_settings.log_json if json_logs is None else json_logs
        debug = app_settings.debug_mode if debug is None else debug

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.getLogger(LOGGER_NAME).setLevel(
        logging.DEBUG if debug else logging.INFO
    )


def get_logger(name: Optional[str] = None, **initial_values):
    """
    Get a structlog logger under the package namespace.

    Args:
        name: Dotted suffix, e.g. "allocation" -> "billsplit.allocation"
        initial_values: Context bound to every event from this logger
    """
    logger_name = f"{LOGGER_NAME}.{name}" if name else LOGGER_NAME
    return structlog.get_logger(logger_name, **initial_values)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of an editing session or a ledger run.
    Pass it through all subsequent operations.
    """
    return uuid4()


configure_logging(json_logs=True, debug=False)

"""
Module: logger.py
Description: Structured logging configuration for the delivery engine.

Configures structlog for JSON output so that delivery, retry and
buffer events can be shipped alongside the host application's logs.
Provides consistent logging across all modules with proper context
and structured data.

Key Components:
- JSON output with timestamp and level processors
- Level filtering driven by RelaySettings.log_level
- get_logger() helper function

Dependencies: structlog, logging, datetime
"""

import logging
from datetime import datetime, timezone

import structlog


def _add_timestamp(logger, method_name, event_dict):
    """
    Add ISO 8601 timestamp to log entries.

    Args:
        logger: Logger instance
        method_name: Log method name (info, error, etc.)
        event_dict: Current log event dictionary

    Returns:
        Updated event dictionary with timestamp
    """
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return event_dict


def _add_log_level(logger, method_name, event_dict):
    """
    Add log level to event dictionary.

    Args:
        logger: Logger instance
        method_name: Log method name (info, error, etc.)
        event_dict: Current log event dictionary

    Returns:
        Updated event dictionary with level
    """
    event_dict["level"] = method_name.upper()
    return event_dict


def configure_logging(level: str = "INFO") -> None:
    """
    (Re)configure structlog for the whole package.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    structlog.configure(
        processors=[
            # Add timestamp and log level
            _add_timestamp,
            _add_log_level,
            # Add exception information
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.WriteLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        # Loggers are re-resolved after configure_logging() is called again
        cache_logger_on_first_use=False,
    )


configure_logging()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a configured structlog logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Batch delivered", items=3, status_code=202)
        {"event": "Batch delivered", "items": 3, "status_code": 202, "timestamp": "2024-01-15T10:30:00Z", "level": "INFO"}
    """
    return structlog.get_logger(name)

"""Structured logging configuration for the queue consumer.

structlog renders each event to a single line and hands it to the standard
library root logger, so consumer events and botocore/uvicorn records share
the same handlers (stdout, plus an optional file).
"""

import logging
import sys
from typing import TYPE_CHECKING, Optional

import structlog

if TYPE_CHECKING:
    from sqs_dispatch.core.config import Settings

# Libraries that log request bodies or per-call chatter at DEBUG
_QUIET_LOGGERS = ("botocore", "boto3", "urllib3")


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """Configure structured logging for the process.

    Safe to call more than once; each call replaces the previous handlers.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Whether to output logs in JSON format
        log_file: Optional file path that receives a copy of every record
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        format="%(message)s",
        level=log_level,
        handlers=handlers,
        force=True,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.INFO))

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if json_format:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        # Colour codes would end up in the log file
        processors.append(structlog.dev.ConsoleRenderer(colors=not log_file))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_from_settings(settings: "Settings") -> None:
    """Apply the logging options carried by the process settings."""
    configure_logging(
        level=settings.log_level,
        json_format=settings.log_json,
        log_file=settings.log_file,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically module name)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)

"""structlog setup."""

from __future__ import annotations

import logging
import sys

import structlog

from depot.config import LoggingConfig


def configure_logging(config: LoggingConfig) -> None:
    """Configure stdlib logging and structlog from settings.

    Safe to call more than once; the last call wins.
    """
    level = logging.getLevelName(config.level)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)

    processors: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if config.json_output:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )

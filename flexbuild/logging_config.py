"""Structured logging configuration - structlog + stdlib logging.

Logs go to stderr so the CLI's JSON output on stdout stays parseable.
"""

import logging
import logging.config
import os
from typing import Optional

import structlog


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Configure structlog and stdlib logging.

    Reads from environment variables when arguments are omitted:
        FLEXBUILD_LOG_LEVEL  - log level (default: WARNING)
        FLEXBUILD_LOG_FORMAT - console | json (default: console)
    """
    log_level = (level or os.environ.get("FLEXBUILD_LOG_LEVEL", "WARNING")).upper()
    log_format = (log_format or os.environ.get("FLEXBUILD_LOG_FORMAT", "console")).lower()

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structlog": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": shared_processors,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        renderer,
                    ],
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "structlog",
                },
            },
            "root": {
                "handlers": ["default"],
                "level": log_level,
            },
            "loggers": {
                "flexbuild": {"level": log_level},
                "urllib3": {"level": "WARNING"},
            },
        }
    )

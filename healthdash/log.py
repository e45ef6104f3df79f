"""
Structured logging setup.

Services log event names with key/value context (``assessment_completed``,
``relay_upstream_failed``) through structlog on top of the stdlib logging tree.
"""

import logging
from pathlib import Path

import structlog

from healthdash.config import LoggingConfig


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Configure structlog: JSON lines in production, a readable console in development."""
    config = config or LoggingConfig()

    renderer: structlog.types.Processor
    if config.format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.enable_file_logging:
        Path(config.log_file_path).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(config.log_file_path, encoding="utf-8"))

    logging.basicConfig(level=config.level, format="%(message)s", handlers=handlers, force=True)

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
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

"""Structured logging setup (structlog on top of stdlib logging)."""

from __future__ import annotations

import logging

import structlog

from zyphon.config import LoggingConfig


def configure_logging(config: LoggingConfig) -> None:
    """Configure structlog and the stdlib root logger."""
    level = getattr(logging, config.level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(message)s")

    renderer = (
        structlog.processors.JSONRenderer()
        if config.json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
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

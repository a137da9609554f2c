"""Structlog setup for the crawl scheduler.

Library modules get their logger from ``get_logger(__name__)`` and log dotted
event names with key/value context. Only the CLI calls ``configure_logging``;
an embedding application is free to configure structlog itself.
"""
from __future__ import annotations

import logging
from typing import Any, Literal

import structlog

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def configure_logging(level: LogLevel = "INFO", *, json_output: bool = True) -> None:
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=False)
    logging.basicConfig(format="%(message)s", level=getattr(logging, level))
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level)),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "crawl_scheduler", **context: Any):
    logger = structlog.get_logger(name)
    return logger.bind(**context) if context else logger

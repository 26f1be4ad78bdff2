"""
Logging — structlog setup.

Modules log through ``structlog.get_logger(__name__)``; call
``configure_logging`` once at process start.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager

import structlog


def configure_logging(level: str = "INFO", *, json: bool = False) -> None:
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping()[level.upper()]
        ),
        cache_logger_on_first_use=True,
    )


def checkout_context(**values: object) -> AbstractContextManager[None]:
    """Attach context to every log line inside the ``with`` block."""
    return structlog.contextvars.bound_contextvars(**values)


__all__ = ("configure_logging", "checkout_context")

"""Structured logging with structlog + rich."""

from __future__ import annotations

import logging
import sys

import structlog

from agent_workflows.config import settings


def setup_logging() -> None:
    """Configure structlog for the entire application."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_json:
        renderer: structlog.typing.Processor = structlog.processors.JSONRenderer()
        exc_processor: structlog.typing.Processor = structlog.processors.format_exc_info
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False),
        )
        exc_processor = structlog.dev.set_exc_info

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            exc_processor,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a named logger."""
    return structlog.get_logger(name)


def truncate_for_log(value: str, max_chars: int | None = None) -> str:
    """Truncate long text fields for structured logging output."""
    if max_chars is None:
        max_chars = settings.log_max_chars
    if max_chars <= 0 or len(value) <= max_chars:
        return value
    return f"{value[:max_chars]}... <truncated {len(value) - max_chars} chars>"

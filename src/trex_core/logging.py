"""Logging configuration for trex-core."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from .context import RequestContext


def configure_logging(level: str = "INFO", *, json: bool = True) -> None:
    """Configure stdlib logging and route structlog through it."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )

    renderer: Any = (
        structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(ctx: RequestContext | None = None, name: str = "trex_core") -> Any:
    """Return a structlog logger with the request fields of ``ctx`` bound."""
    logger = structlog.get_logger(name)
    if ctx is None:
        return logger
    return logger.bind(**ctx.log_fields())


__all__ = ["configure_logging", "get_logger"]

"""Centralised logging configuration built on loguru."""

from __future__ import annotations

import sys
from contextlib import contextmanager
from time import perf_counter
from typing import Any

from loguru import logger

from ..config.settings import Settings, get_settings

_LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[batch_id]}</cyan> | "
    "<magenta>{extra[step]}</magenta> | "
    "{name}:{function} - {message} | {extra}"
)


def configure_logging(settings: Settings | None = None, level: str | None = None) -> None:
    """Initialise loguru sinks according to the active settings.

    A stderr sink is always installed; a rotating file sink is added when the
    settings declare a log directory.
    """

    cfg = settings or get_settings()
    effective_level = (level or cfg.log_level).upper()

    logger.remove()
    logger.configure(extra={"batch_id": "-", "step": "-"})
    logger.add(
        sys.stderr,
        level=effective_level,
        enqueue=True,
        backtrace=False,
        diagnose=False,
        format=_LOG_FORMAT,
    )
    log_path = cfg.log_file
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            rotation="10 MB",
            retention="14 days",
            enqueue=True,
            format=_LOG_FORMAT,
            level=effective_level,
        )


def get_logger(**context: Any):
    """Return a contextualised logger instance."""

    return logger.bind(**context)


@contextmanager
def logging_context(**context: Any):
    """Context manager that temporarily binds structured context fields."""

    with logger.contextualize(**context):
        yield logger


@contextmanager
def log_timing(step: str, *, logger_=logger):
    """Log elapsed wall time for a block."""

    start = perf_counter()
    try:
        yield
    finally:
        logger_.info("Step timing", step=step, seconds=round(perf_counter() - start, 6))


__all__ = ["configure_logging", "get_logger", "logging_context", "log_timing"]

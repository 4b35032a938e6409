"""Central logging configuration using a Loguru JSON sink."""

from __future__ import annotations

import logging
import sys

from loguru import logger as loguru_logger


class InterceptHandler(logging.Handler):
    """Forward stdlib log records to Loguru, keeping the originating logger name."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        loguru_logger.bind(logger_name=record.name).opt(exception=record.exc_info).log(
            level, record.getMessage()
        )


def configure_json_logging(level: str = "INFO") -> None:
    """Route stdlib logging through a JSON-serialised Loguru sink on stderr."""
    loguru_logger.remove()
    loguru_logger.add(
        sys.stderr,
        level=level.upper(),
        serialize=True,
        enqueue=False,
        backtrace=False,
        diagnose=False,
    )
    logging.basicConfig(
        handlers=[InterceptHandler()],
        level=getattr(logging, level.upper(), logging.INFO),
        force=True,
    )

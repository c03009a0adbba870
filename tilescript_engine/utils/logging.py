"""
Logging configuration for TileScript.

All engine loggers live under the "tilescript" namespace so a host
application can route or silence them as a group.
"""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal

ROOT_LOGGER_NAME = "tilescript"

_loggers: dict[str, logging.Logger] = {}


# ============================================================================
# Custom Formatter
# ============================================================================


class TileScriptFormatter(logging.Formatter):
    """Formatter with optional ANSI colours and a shortened logger name."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
        "RESET": "\033[0m",
    }

    def __init__(self, use_colors: bool = True, include_timestamp: bool = True):
        self.use_colors = use_colors
        self.include_timestamp = include_timestamp
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        parts = []

        if self.include_timestamp:
            timestamp = datetime.fromtimestamp(record.created, UTC).strftime("%H:%M:%S")
            parts.append(f"[{timestamp}]")

        level = record.levelname
        if self.use_colors:
            color = self.COLORS.get(level, "")
            parts.append(f"{color}{level:8}{self.COLORS['RESET']}")
        else:
            parts.append(f"{level:8}")

        name = record.name
        if name.startswith(f"{ROOT_LOGGER_NAME}."):
            name = name[len(ROOT_LOGGER_NAME) + 1:]
        parts.append(f"[{name:12}]")

        parts.append(record.getMessage())

        if record.exc_info:
            parts.append(self.formatException(record.exc_info))

        return " ".join(parts)


# ============================================================================
# Setup Functions
# ============================================================================


def setup_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO",
    log_dir: str | Path | None = None,
    console_output: bool = True,
    file_output: bool = False,
    log_filename: str = "tilescript.log",
) -> None:
    """Configure the "tilescript" logger tree.

    Args:
        level: Minimum log level to capture
        log_dir: Directory for log files (required if file_output=True)
        console_output: Whether to log to stderr
        file_output: Whether to log to a file in log_dir
        log_filename: Name of the log file
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, level))
    root_logger.handlers = []

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(getattr(logging, level))
        console_handler.setFormatter(TileScriptFormatter(use_colors=sys.stderr.isatty()))
        root_logger.addHandler(console_handler)

    if file_output and log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path / log_filename, encoding="utf-8")
        file_handler.setLevel(getattr(logging, level))
        file_handler.setFormatter(TileScriptFormatter(use_colors=False))
        root_logger.addHandler(file_handler)

    root_logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Get or create a logger, prefixed with "tilescript." if needed.

    Usage:
        logger = get_logger("scheduler")
        logger.info("Task started")
    """
    full_name = name if name.startswith(f"{ROOT_LOGGER_NAME}.") else f"{ROOT_LOGGER_NAME}.{name}"
    if full_name not in _loggers:
        _loggers[full_name] = logging.getLogger(full_name)
    return _loggers[full_name]


# ============================================================================
# Convenience Functions
# ============================================================================


def log_operation(logger: logging.Logger, operation: str, details: dict | None = None) -> None:
    """Log an operation at INFO with optional key=value details."""
    if details:
        detail_str = ", ".join(f"{k}={v}" for k, v in details.items())
        logger.info(f"{operation}: {detail_str}")
    else:
        logger.info(operation)


def log_error(logger: logging.Logger, operation: str, error: Exception, context: dict | None = None) -> None:
    """Log a failed operation with its exception and context."""
    msg = f"FAILED {operation}: {type(error).__name__}: {error}"
    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items())
        msg = f"{msg} | Context: {context_str}"
    logger.error(msg, exc_info=True)

"""Shared utilities for TileScript Engine."""

from .logging import get_logger, log_error, log_operation, setup_logging

__all__ = ["get_logger", "log_error", "log_operation", "setup_logging"]

"""Utilities module for Inbox Sorter."""

from .logging_config import setup_logging, get_logger, LoggingConfig, RunContext, Timer
from .exceptions import (
    ErrorCode,
    InboxSorterError,
    ConfigurationError,
    FileProcessingError,
    DeduplicationError,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "LoggingConfig",
    "RunContext",
    "Timer",
    "ErrorCode",
    "InboxSorterError",
    "ConfigurationError",
    "FileProcessingError",
    "DeduplicationError",
]

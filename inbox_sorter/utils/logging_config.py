"""
Logging Configuration
=====================

Provides structured JSON logging with correlation IDs for run tracing.
Supports both console and file output with configurable log levels.
"""

import logging
import logging.handlers
import json
import sys
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field
import threading

ROOT_LOGGER_NAME = "inbox_sorter"

# Thread-local storage for correlation IDs
_thread_local = threading.local()

# Extra record attributes copied into JSON output
_EXTRA_FIELDS = ("file_path", "outcome", "digest", "destination", "operation", "duration_ms")


def new_correlation_id() -> str:
    """Generate a fresh short correlation ID."""
    return str(uuid.uuid4())[:8]


def get_correlation_id() -> str:
    """Get the current correlation ID for the thread."""
    if not hasattr(_thread_local, 'correlation_id'):
        _thread_local.correlation_id = new_correlation_id()
    return _thread_local.correlation_id


def set_correlation_id(correlation_id: str) -> None:
    """Set a correlation ID for the current thread."""
    _thread_local.correlation_id = correlation_id


class RunContext:
    """Context manager tagging the current thread's records with a run ID.

    Worker threads enter a RunContext with the ID of the run they work
    for, so their records can be grouped with the main thread's. The
    previous ID is restored on exit.
    """

    def __init__(self, correlation_id: Optional[str] = None):
        """Initialize with an existing run ID, or a new one if None."""
        self.correlation_id = correlation_id or new_correlation_id()
        self._previous: Optional[str] = None

    def __enter__(self) -> "RunContext":
        self._previous = getattr(_thread_local, 'correlation_id', None)
        set_correlation_id(self.correlation_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._previous is None:
            del _thread_local.correlation_id
        else:
            set_correlation_id(self._previous)
        return False


class JSONFormatter(logging.Formatter):
    """Formats log records as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": get_correlation_id(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable colored console formatter."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        """Format with colors for console output."""
        color = self.COLORS.get(record.levelname, '') if self.use_color else ''
        reset = self.RESET if self.use_color else ''
        timestamp = datetime.now().strftime('%H:%M:%S')

        msg = f"{color}[{timestamp}] {record.levelname:8}{reset} "
        msg += f"[{get_correlation_id()}] "
        msg += f"{record.name}: {record.getMessage()}"

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


@dataclass
class LoggingConfig:
    """Configuration for the logging system."""
    level: str = "INFO"
    log_dir: Path = field(default_factory=lambda: Path.home() / ".inbox_sorter" / "logs")
    console_output: bool = True
    file_output: bool = False
    json_format: bool = False  # Use JSON for console
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """Set up the logging system.

    Args:
        config: Logging configuration. Uses defaults if not provided.
    """
    if config is None:
        config = LoggingConfig()

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, config.level.upper()))

    root_logger.handlers.clear()

    if config.console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        if config.json_format:
            console_handler.setFormatter(JSONFormatter())
        else:
            console_handler.setFormatter(ConsoleFormatter(use_color=sys.stdout.isatty()))
        root_logger.addHandler(console_handler)

    if config.file_output:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        log_file = config.log_dir / "inbox_sorter.log"

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=config.max_file_size,
            backupCount=config.backup_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    # Prevent propagation to root logger
    root_logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific module.

    Args:
        name: Name of the module (typically __name__).

    Returns:
        Logger instance under the application namespace.
    """
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class Timer:
    """Context manager for timing operations and logging duration."""

    def __init__(self, logger: logging.Logger, operation: str):
        """Initialize timer.

        Args:
            logger: Logger to log the duration to.
            operation: Name of the operation being timed.
        """
        self.logger = logger
        self.operation = operation
        self.start_time: Optional[float] = None
        self.duration_ms: float = 0.0

    def __enter__(self):
        """Start the timer."""
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Stop the timer and log the duration."""
        self.duration_ms = round((time.perf_counter() - self.start_time) * 1000, 2)

        if exc_type is None:
            self.logger.info(
                f"Operation completed: {self.operation} ({self.duration_ms} ms)",
                extra={"operation": self.operation, "duration_ms": self.duration_ms},
            )
        else:
            self.logger.warning(
                f"Operation aborted: {self.operation} ({self.duration_ms} ms)",
                extra={"operation": self.operation, "duration_ms": self.duration_ms},
            )

        return False

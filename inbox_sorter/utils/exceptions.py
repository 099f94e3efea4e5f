"""
Custom Exceptions
=================

Defines custom exception classes for the Inbox Sorter.
All exceptions include error codes for programmatic handling.
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Error codes for programmatic error handling."""

    # General errors (1000-1099)
    UNKNOWN_ERROR = 1000
    CONFIGURATION_ERROR = 1001
    FILE_NOT_FOUND = 1002
    PERMISSION_DENIED = 1003

    # Processing errors (1100-1199)
    PROCESSING_FAILED = 1100
    MOVE_FAILED = 1102
    PATH_OUTSIDE_ROOT = 1103
    TOO_MANY_NAME_COLLISIONS = 1104
    TRAVERSAL_FAILED = 1105

    # Deduplication errors (1400-1499)
    DEDUPLICATION_FAILED = 1400
    HASH_COMPUTATION_FAILED = 1401


class InboxSorterError(Exception):
    """Base exception for all Inbox Sorter errors.

    Attributes:
        message: Human-readable error message.
        error_code: Programmatic error code.
        details: Additional error context.
        cause: Original exception that caused this error.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: Optional[dict] = None,
        cause: Optional[Exception] = None
    ):
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Programmatic error code.
            details: Additional context as key-value pairs.
            cause: Original exception if wrapping another error.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        """Return a formatted error string."""
        result = f"[{self.error_code.name}] {self.message}"
        if self.details:
            result += f" | Details: {self.details}"
        if self.cause:
            result += f" | Caused by: {type(self.cause).__name__}: {self.cause}"
        return result

    def to_dict(self) -> dict:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "error_code": self.error_code.value,
            "error_name": self.error_code.name,
            "details": self.details,
            "cause": str(self.cause) if self.cause else None,
        }


class ConfigurationError(InboxSorterError):
    """Raised when there's a configuration problem.

    Examples:
        - Taxonomy or exclusion document missing or malformed
        - Invalid configuration values
        - Overlapping inbox/destination/quarantine roots
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type
        super().__init__(
            message,
            error_code=ErrorCode.CONFIGURATION_ERROR,
            details=details,
            **kwargs
        )


class FileProcessingError(InboxSorterError):
    """Raised when handling a single file or directory fails.

    Examples:
        - File cannot be relocated
        - Destination escapes its root
        - Inbox directory cannot be listed
    """

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.PROCESSING_FAILED,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if file_path:
            details["file_path"] = file_path
        super().__init__(
            message,
            error_code=error_code,
            details=details,
            **kwargs
        )


class DeduplicationError(InboxSorterError):
    """Raised when content hashing fails.

    Examples:
        - File vanished between listing and hashing
        - Read error in the middle of the stream
    """

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        hash_type: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.DEDUPLICATION_FAILED,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if file_path:
            details["file_path"] = file_path
        if hash_type:
            details["hash_type"] = hash_type
        super().__init__(
            message,
            error_code=error_code,
            details=details,
            **kwargs
        )

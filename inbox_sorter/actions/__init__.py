"""Actions module for file operations."""

from .file_operations import FileMover
from .conflict_resolver import ConflictResolver, ConflictInfo, QUARANTINE_MARKER

__all__ = [
    "FileMover",
    "ConflictResolver",
    "ConflictInfo",
    "QUARANTINE_MARKER",
]

"""
Conflict Resolver
=================

Destination naming rules. Existing files are never overwritten: a name
collision is resolved by appending a fragment of the incoming file's own
digest, then a counter if that name is taken as well.
"""

import threading
from pathlib import Path
from typing import List, Optional
from dataclasses import dataclass

from inbox_sorter.config.taxonomy import split_extension
from inbox_sorter.deduplication.hash_engine import digest_prefix
from inbox_sorter.utils.exceptions import ErrorCode, FileProcessingError
from inbox_sorter.utils.logging_config import get_logger

logger = get_logger(__name__)

QUARANTINE_MARKER = "processed_delete"
MAX_COUNTER = 1000


@dataclass
class ConflictInfo:
    """Information about a resolved name collision.

    Attributes:
        source: Source file path.
        existing: File occupying the intended destination.
        conflict_type: Type of conflict.
        result_path: Final file path after resolution.
    """

    source: Path
    existing: Path
    conflict_type: str
    result_path: Optional[Path] = None


class ConflictResolver:
    """Chooses free destination names for classified and quarantined files."""

    def __init__(self):
        """Initialize conflict resolver."""
        self._conflicts: List[ConflictInfo] = []
        self._history_lock = threading.Lock()

    def classified_path(self, source: Path, dest_dir: Path, digest: str) -> Path:
        """Destination for a novel file in its category folder.

        Args:
            source: File being placed.
            dest_dir: Category directory.
            digest: Content digest of ``source``.

        Returns:
            ``dest_dir/<name>`` when free, else ``<stem>_<digest6><ext>``,
            else that name with a counter.
        """
        dest_path = dest_dir / source.name
        if not self._occupied(dest_path):
            return dest_path

        stem, ext = split_extension(source.name)
        new_path = self._first_free(dest_dir, f"{stem}_{digest_prefix(digest)}", ext)
        self._record(source, dest_path, "name_collision", new_path)
        logger.info(f"Name taken in {dest_dir}: {source.name} -> {new_path.name}")
        return new_path

    def quarantine_path(self, source: Path, quarantine_dir: Path, digest: str) -> Path:
        """Destination for a duplicate in the quarantine folder.

        The name always carries a digest fragment and the quarantine marker,
        so quarantined files describe themselves.

        Args:
            source: Duplicate file.
            quarantine_dir: Quarantine directory.
            digest: Content digest of ``source``.

        Returns:
            ``<stem>_<digest6>_processed_delete<ext>``, with a counter on collision.
        """
        stem, ext = split_extension(source.name)
        base = f"{stem}_{digest_prefix(digest)}_{QUARANTINE_MARKER}"
        dest_path = quarantine_dir / f"{base}{ext}"
        if not self._occupied(dest_path):
            return dest_path

        new_path = self._first_free(quarantine_dir, base, ext, start=1)
        self._record(source, dest_path, "quarantine_collision", new_path)
        return new_path

    def _first_free(self, parent: Path, base: str, ext: str, start: int = 0) -> Path:
        """Find ``base<ext>`` or ``base_<n><ext>`` that does not exist yet."""
        for counter in range(start, MAX_COUNTER + 1):
            name = f"{base}{ext}" if counter == 0 else f"{base}_{counter}{ext}"
            candidate = parent / name
            if not self._occupied(candidate):
                return candidate

        raise FileProcessingError(
            "Too many files with same name",
            file_path=str(parent / f"{base}{ext}"),
            error_code=ErrorCode.TOO_MANY_NAME_COLLISIONS,
        )

    @staticmethod
    def _occupied(path: Path) -> bool:
        # Dangling symlinks occupy a name too
        return path.exists() or path.is_symlink()

    def _record(self, source: Path, existing: Path, conflict_type: str, result: Path) -> None:
        with self._history_lock:
            self._conflicts.append(
                ConflictInfo(
                    source=source,
                    existing=existing,
                    conflict_type=conflict_type,
                    result_path=result,
                )
            )

    def get_conflict_history(self) -> List[ConflictInfo]:
        """Get history of resolved conflicts.

        Returns:
            List of ConflictInfo objects.
        """
        with self._history_lock:
            return self._conflicts.copy()

    def clear_history(self) -> None:
        """Clear conflict history."""
        with self._history_lock:
            self._conflicts.clear()

    def get_stats(self) -> dict:
        """Get conflict resolution statistics.

        Returns:
            Dictionary with statistics.
        """
        with self._history_lock:
            stats = {
                "total": len(self._conflicts),
                "by_type": {},
            }
            for conflict in self._conflicts:
                kind = conflict.conflict_type
                stats["by_type"][kind] = stats["by_type"].get(kind, 0) + 1

        return stats

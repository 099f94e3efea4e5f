"""
File Operations
===============

Relocation of inbox files into the sorted tree or the quarantine folder.
A move either completes or leaves the source where it was.
"""

import os
import shutil
import threading
from pathlib import Path
from typing import Optional

from inbox_sorter.actions.conflict_resolver import ConflictResolver
from inbox_sorter.utils.logging_config import get_logger
from inbox_sorter.utils.exceptions import FileProcessingError, ErrorCode

logger = get_logger(__name__)


class FileMover:
    """Moves files under the sorted and quarantine roots.

    Name resolution and the move itself happen under one lock, so two
    workers can never choose the same free name.
    """

    def __init__(
        self,
        sorted_root: Path,
        quarantine_root: Path,
        conflict_resolver: Optional[ConflictResolver] = None,
    ):
        """Initialize the mover.

        Args:
            sorted_root: Root of the category tree.
            quarantine_root: Folder receiving duplicates.
            conflict_resolver: Naming rules; a default one is created if None.
        """
        self.sorted_root = Path(sorted_root)
        self.quarantine_root = Path(quarantine_root)
        self.conflict_resolver = conflict_resolver or ConflictResolver()
        self._lock = threading.Lock()

    def place(self, source: Path, category: str, digest: str) -> Path:
        """Move a novel file into its category folder.

        Args:
            source: File in the inbox.
            category: ``/``-separated category path, e.g. ``Documents/PDF``.
            digest: Content digest of ``source``.

        Returns:
            Final path of the moved file.

        Raises:
            FileProcessingError: If the category escapes the sorted root or
                the move fails.
        """
        source = Path(source)
        dest_dir = self.sorted_root.joinpath(*[p for p in category.split("/") if p])
        self._ensure_inside(self.sorted_root, dest_dir, source)

        with self._lock:
            self._make_dir(dest_dir, source)
            dest_path = self._resolve_name(
                self.conflict_resolver.classified_path, source, dest_dir, digest
            )
            return self._move(source, dest_path)

    def quarantine(self, source: Path, digest: str) -> Path:
        """Move a duplicate into the quarantine folder.

        Args:
            source: Duplicate file in the inbox.
            digest: Content digest of ``source``.

        Returns:
            Final path in quarantine.

        Raises:
            FileProcessingError: If the move fails.
        """
        source = Path(source)

        with self._lock:
            self._make_dir(self.quarantine_root, source)
            dest_path = self._resolve_name(
                self.conflict_resolver.quarantine_path, source, self.quarantine_root, digest
            )
            return self._move(source, dest_path)

    @staticmethod
    def _resolve_name(resolve, source: Path, directory: Path, digest: str) -> Path:
        """Pick a free destination name, turning stat failures into move failures."""
        try:
            return resolve(source, directory, digest)
        except OSError as e:
            raise FileProcessingError(
                f"Cannot inspect destination directory {directory}: {e}",
                file_path=str(source),
                error_code=ErrorCode.MOVE_FAILED,
                cause=e,
            )

    def _move(self, source: Path, dest_path: Path) -> Path:
        """Relocate ``source`` to a destination known to be free."""
        try:
            shutil.move(str(source), str(dest_path))
        except OSError as e:
            self._discard_partial_copy(source, dest_path)
            raise FileProcessingError(
                f"Failed to move file: {e}",
                file_path=str(source),
                error_code=ErrorCode.MOVE_FAILED,
                details={"destination": str(dest_path)},
                cause=e,
            )

        logger.debug(f"Moved: {source} -> {dest_path}")
        return dest_path

    @staticmethod
    def _discard_partial_copy(source: Path, dest_path: Path) -> None:
        # A cross-device move copies first; while the source still exists
        # anything at dest_path is our own incomplete copy.
        try:
            if source.exists() and dest_path.exists() and not dest_path.is_symlink():
                os.remove(dest_path)
                logger.warning(f"Removed partial copy after failed move: {dest_path}")
        except OSError as e:
            logger.error(f"Could not remove partial copy {dest_path}: {e}")

    @staticmethod
    def _make_dir(directory: Path, source: Path) -> None:
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileProcessingError(
                f"Cannot create destination directory {directory}: {e}",
                file_path=str(source),
                error_code=ErrorCode.MOVE_FAILED,
                cause=e,
            )

    @staticmethod
    def _ensure_inside(root: Path, directory: Path, source: Path) -> None:
        """Refuse destinations that resolve outside their root."""
        try:
            directory.resolve().relative_to(root.resolve())
        except ValueError:
            raise FileProcessingError(
                f"Destination {directory} is outside {root}",
                file_path=str(source),
                error_code=ErrorCode.PATH_OUTSIDE_ROOT,
            )

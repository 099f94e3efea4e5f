"""
Sorted-Tree Index
=================

Builds the digest index of files already organized in the destination
tree. The index is rebuilt from scratch at the start of every run, so
files added, removed or edited outside the sorter are always accounted
for.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from inbox_sorter.deduplication.hash_engine import ContentHasher, HashStore
from inbox_sorter.utils.exceptions import DeduplicationError
from inbox_sorter.utils.logging_config import Timer, get_logger

logger = get_logger(__name__)


@dataclass
class IndexStats:
    """Statistics of one index build.

    Attributes:
        root: Destination root that was indexed.
        files_indexed: Files whose content became an index entry.
        duplicate_copies: Files whose content was already indexed.
        failures: (path, error) for files or directories that could not be read.
        duration_ms: Wall time of the build.
    """
    root: Path
    files_indexed: int = 0
    duplicate_copies: int = 0
    failures: List[Tuple[Path, str]] = field(default_factory=list)
    duration_ms: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "root": str(self.root),
            "files_indexed": self.files_indexed,
            "duplicate_copies": self.duplicate_copies,
            "failures": len(self.failures),
            "duration_ms": self.duration_ms,
        }


class SortedTreeIndexer:
    """Walks the destination tree and seeds a :class:`HashStore`."""

    def __init__(
        self,
        root: Path,
        hasher: ContentHasher,
        skip_directories: Iterable[Path] = (),
    ):
        """Initialize the indexer.

        Args:
            root: Destination root to index.
            hasher: The hasher also used for inbox candidates.
            skip_directories: Subtrees never indexed (e.g. a nested quarantine root).
        """
        self.root = Path(root)
        self.hasher = hasher
        self._skip = {Path(p).resolve() for p in skip_directories}

    def build(self, store: HashStore) -> IndexStats:
        """Index every regular file under the root.

        Unreadable files and directories are logged and left out of the
        index; a missing root yields an empty index.

        Args:
            store: Store to seed; first occurrence of a digest wins.

        Returns:
            IndexStats for this build.
        """
        stats = IndexStats(root=self.root)

        if not self.root.is_dir():
            logger.info(f"Sorted directory does not exist yet, index is empty: {self.root}")
            return stats

        def on_walk_error(error: OSError) -> None:
            path = Path(error.filename) if error.filename else self.root
            logger.warning(f"Cannot list directory, not indexed: {path} ({error})")
            stats.failures.append((path, str(error)))

        with Timer(logger, "index sorted tree") as timer:
            for dirpath, dirnames, filenames in os.walk(self.root, onerror=on_walk_error):
                current = Path(dirpath)
                dirnames[:] = [
                    d for d in dirnames
                    if (current / d).resolve() not in self._skip
                ]
                for name in filenames:
                    self._index_file(current / name, store, stats)

        stats.duration_ms = timer.duration_ms
        logger.info(
            f"Indexed {stats.files_indexed} files under {self.root} "
            f"({stats.duplicate_copies} duplicate copies, {len(stats.failures)} failures)"
        )
        return stats

    def _index_file(self, path: Path, store: HashStore, stats: IndexStats) -> None:
        if path.is_symlink() or not path.is_file():
            logger.debug(f"Not indexing non-regular file: {path}")
            return

        try:
            digest = self.hasher.compute(path)
        except DeduplicationError as e:
            logger.warning(f"Error hashing file {path}, omitted from index: {e.message}")
            stats.failures.append((path, e.message))
            return

        existing: Optional[Path] = store.insert_if_absent(digest, path)
        if existing is None:
            stats.files_indexed += 1
        else:
            stats.duplicate_copies += 1
            logger.debug(f"Already indexed: {path} has the same content as {existing}")

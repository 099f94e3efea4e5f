"""
Hash Engine
===========

Content digests and the per-run digest store used for deduplication.

Indexing the destination tree and evaluating inbox candidates must go
through the same :class:`ContentHasher`; digests from different
algorithms never compare equal.
"""

from contextlib import nullcontext
from pathlib import Path
from typing import ContextManager, Dict, Optional, Set
from dataclasses import dataclass
from enum import Enum
import hashlib

from inbox_sorter.utils.logging_config import get_logger
from inbox_sorter.utils.exceptions import DeduplicationError, ErrorCode

logger = get_logger(__name__)

DIGEST_PREFIX_LENGTH = 6


class ClaimStatus(Enum):
    """Outcome of claiming a digest for a candidate file."""
    NOVEL = "novel"
    IN_RUN_DUPLICATE = "in_run_duplicate"
    INDEXED_DUPLICATE = "indexed_duplicate"


@dataclass(frozen=True)
class ClaimResult:
    """Result of :meth:`HashStore.claim`.

    Attributes:
        status: Whether the content is new to this run and the index.
        existing: Path already holding the content, for duplicates.
    """
    status: ClaimStatus
    existing: Optional[Path] = None

    @property
    def is_duplicate(self) -> bool:
        return self.status is not ClaimStatus.NOVEL


def digest_prefix(digest: str, length: int = DIGEST_PREFIX_LENGTH) -> str:
    """Short digest fragment used to disambiguate file names."""
    return digest[:length]


class ContentHasher:
    """Computes the SHA-256 digest of a file's full content.

    Uses buffered reading for memory efficiency with large files.
    """

    ALGORITHM = "sha256"
    BUFFER_SIZE = 65536  # 64KB buffer

    def compute(self, file_path: Path) -> str:
        """Compute the content digest of a file.

        The stream is read exactly once, start to end.

        Args:
            file_path: Path to the file.

        Returns:
            Lowercase hexadecimal digest.

        Raises:
            DeduplicationError: If the file cannot be read.
        """
        hasher = hashlib.new(self.ALGORITHM)

        try:
            with open(file_path, 'rb') as f:
                while True:
                    data = f.read(self.BUFFER_SIZE)
                    if not data:
                        break
                    hasher.update(data)

            return hasher.hexdigest()

        except OSError as e:
            raise DeduplicationError(
                f"Cannot read file: {e}",
                file_path=str(file_path),
                hash_type=self.ALGORITHM,
                error_code=ErrorCode.HASH_COMPUTATION_FAILED,
                cause=e,
            )


class HashStore:
    """Digest index and in-run seen set for a single run.

    ``index`` maps each digest to the first path observed holding that
    content (seeded from the destination tree, extended with placements).
    ``seen`` holds digests claimed by inbox files during the current run.

    Every read-then-write goes through one ``with self._lock`` block. Pass
    a ``threading.Lock`` when several workers share the store; the default
    no-op lock suits sequential runs.
    """

    def __init__(self, lock: Optional[ContextManager] = None):
        """Initialize an empty store.

        Args:
            lock: Context manager guarding every operation.
        """
        self._lock = lock if lock is not None else nullcontext()
        self._index: Dict[str, Path] = {}
        self._seen: Set[str] = set()

    def insert_if_absent(self, digest: str, path: Path) -> Optional[Path]:
        """Add a digest to the index unless it is already present.

        Args:
            digest: Content digest.
            path: Path holding that content.

        Returns:
            None if inserted, otherwise the path already indexed.
        """
        with self._lock:
            existing = self._index.get(digest)
            if existing is None:
                self._index[digest] = Path(path)
            return existing

    def claim(self, digest: str, path: Path) -> ClaimResult:
        """Atomically classify a candidate digest and record it.

        In-run duplicates are checked before the index. A novel digest is
        entered into both the seen set and the index, so any later copy
        is a duplicate even before the first copy has been moved.

        Args:
            digest: Content digest of the candidate.
            path: Current location of the candidate.

        Returns:
            ClaimResult describing the candidate.
        """
        with self._lock:
            if digest in self._seen:
                return ClaimResult(ClaimStatus.IN_RUN_DUPLICATE, self._index.get(digest))

            self._seen.add(digest)

            existing = self._index.get(digest)
            if existing is not None:
                return ClaimResult(ClaimStatus.INDEXED_DUPLICATE, existing)

            self._index[digest] = Path(path)
            return ClaimResult(ClaimStatus.NOVEL)

    def record_placement(self, digest: str, path: Path) -> None:
        """Point a claimed digest at the file's final location."""
        with self._lock:
            self._index[digest] = Path(path)

    def release(self, digest: str, path: Path) -> None:
        """Undo a novel claim whose file could not be placed.

        Only the claim made for ``path`` is removed; later copies of the
        same content may then become canonical.
        """
        with self._lock:
            if self._index.get(digest) == Path(path):
                del self._index[digest]
                self._seen.discard(digest)

    def lookup(self, digest: str) -> Optional[Path]:
        """Get the indexed path for a digest, if any."""
        with self._lock:
            return self._index.get(digest)

    def was_seen(self, digest: str) -> bool:
        """Check whether a digest was claimed during this run."""
        with self._lock:
            return digest in self._seen

    def __contains__(self, digest: str) -> bool:
        return self.lookup(digest) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._index)

    def get_stats(self) -> dict:
        """Get store statistics.

        Returns:
            Dictionary with index statistics.
        """
        with self._lock:
            return {
                "indexed_digests": len(self._index),
                "seen_in_run": len(self._seen),
            }

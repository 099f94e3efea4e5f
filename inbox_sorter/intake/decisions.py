"""
Intake Decisions
================

Per-file outcomes of an intake pass and the run report built from them.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from inbox_sorter.deduplication.tree_index import IndexStats


class Outcome(Enum):
    """Terminal outcome for one inbox file, in order of evaluation."""

    EXCLUDED = "excluded"
    INELIGIBLE = "ineligible"
    DIGEST_FAILED = "digest_failed"
    IN_RUN_DUPLICATE = "in_run_duplicate"
    INDEXED_DUPLICATE = "indexed_duplicate"
    CLASSIFIED = "classified"
    MOVE_FAILED = "move_failed"

    @property
    def relocated(self) -> bool:
        """Whether the file left the inbox."""
        return self in (
            Outcome.IN_RUN_DUPLICATE,
            Outcome.INDEXED_DUPLICATE,
            Outcome.CLASSIFIED,
        )

    @property
    def is_error(self) -> bool:
        """Whether the outcome is a per-file failure."""
        return self in (Outcome.DIGEST_FAILED, Outcome.MOVE_FAILED)


@dataclass
class FileDecision:
    """What happened to one inbox file.

    Attributes:
        path: Original location in the inbox.
        outcome: Terminal outcome.
        reason: Short human-readable explanation.
        digest: Content digest, when computed.
        category: Resolved category path, for classified files.
        destination: Final location, for relocated files.
        duplicate_of: Path already holding the content, for duplicates.
        error: Error text for failures.
    """

    path: Path
    outcome: Outcome
    reason: str = ""
    digest: Optional[str] = None
    category: Optional[str] = None
    destination: Optional[Path] = None
    duplicate_of: Optional[Path] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "path": str(self.path),
            "outcome": self.outcome.value,
            "reason": self.reason,
            "digest": self.digest,
            "category": self.category,
            "destination": str(self.destination) if self.destination else None,
            "duplicate_of": str(self.duplicate_of) if self.duplicate_of else None,
            "error": self.error,
        }

    def describe(self) -> str:
        """One-line description for the console summary."""
        if self.destination is not None:
            return f"{self.path} -> {self.destination}"
        detail = self.error or self.reason
        return f"{self.path} ({detail})" if detail else str(self.path)


@dataclass
class RunReport:
    """Summary of one sorting run.

    Decisions are appended from worker threads in concurrent mode, so
    all mutation goes through :meth:`add`.
    """

    inbox: Path
    correlation_id: str = ""
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    index: Optional[IndexStats] = None
    decisions: List[FileDecision] = field(default_factory=list)
    skipped_directories: List[Path] = field(default_factory=list)
    completed: bool = False

    def __post_init__(self):
        self._lock = threading.Lock()

    def add(self, decision: FileDecision) -> None:
        """Record a file decision."""
        with self._lock:
            self.decisions.append(decision)

    def add_skipped_directory(self, path: Path) -> None:
        """Record a pruned directory."""
        with self._lock:
            self.skipped_directories.append(path)

    def finish(self) -> None:
        """Mark the traversal as fully completed."""
        self.finished_at = datetime.now()
        self.completed = True

    def by_outcome(self, outcome: Outcome) -> List[FileDecision]:
        """Decisions with the given outcome."""
        with self._lock:
            return [d for d in self.decisions if d.outcome is outcome]

    @property
    def relocations(self) -> List[FileDecision]:
        """Decisions that moved a file out of the inbox."""
        with self._lock:
            return [d for d in self.decisions if d.outcome.relocated]

    @property
    def errors(self) -> List[FileDecision]:
        """Per-file failures."""
        with self._lock:
            return [d for d in self.decisions if d.outcome.is_error]

    @property
    def duration_seconds(self) -> float:
        end = self.finished_at or datetime.now()
        return (end - self.started_at).total_seconds()

    def counts(self) -> Dict[str, int]:
        """Number of decisions per outcome, every outcome included."""
        counts = {outcome.value: 0 for outcome in Outcome}
        with self._lock:
            for decision in self.decisions:
                counts[decision.outcome.value] += 1
        return counts

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        with self._lock:
            decisions = [d.to_dict() for d in self.decisions]
            skipped = [str(p) for p in self.skipped_directories]
        return {
            "inbox": str(self.inbox),
            "correlation_id": self.correlation_id,
            "completed": self.completed,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "index": self.index.to_dict() if self.index else None,
            "counts": self.counts(),
            "skipped_directories": skipped,
            "decisions": decisions,
        }

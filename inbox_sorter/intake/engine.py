"""
Intake Decision Engine
======================

Walks the inbox and decides, file by file, whether to skip, quarantine
or classify. Checks are applied in this order:

1. excluded (pattern, hidden or sidecar name; excluded ancestors are
   pruned before the walk ever reaches their files)
2. ineligible (symlink, special file, empty, unsafe name)
3. digest failure
4. duplicate within this run
5. duplicate of indexed content
6. novel: classified and placed

Steps 4-6 are a single atomic claim on the :class:`HashStore`.

Traversal order is whatever ``os.walk`` yields. When several inbox files
share content, the first one processed becomes the canonical copy; no
particular copy is guaranteed to win.

If the canonical copy then fails to move, its claim is released and
copies processed after that can still become canonical. Copies already
quarantined as in-run duplicates stay in quarantine (with workers this
can include copies handled while the move was in flight); until the
next run the content exists only there and in the inbox.
"""

import os
import stat
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional

from inbox_sorter.actions.file_operations import FileMover
from inbox_sorter.config.exclusions import ExclusionSet
from inbox_sorter.config.platform import PlatformProfile
from inbox_sorter.config.taxonomy import Taxonomy
from inbox_sorter.deduplication.hash_engine import (
    ClaimStatus,
    ContentHasher,
    HashStore,
)
from inbox_sorter.intake.decisions import FileDecision, Outcome, RunReport
from inbox_sorter.utils.exceptions import (
    DeduplicationError,
    ErrorCode,
    FileProcessingError,
)
from inbox_sorter.utils.logging_config import (
    RunContext,
    get_correlation_id,
    get_logger,
)

logger = get_logger(__name__)


class IntakeEngine:
    """Classification and deduplication of one inbox.

    With ``workers == 1`` everything runs on the calling thread. With more
    workers the calling thread walks and screens the inbox while hashing,
    claiming and moving run on a thread pool.
    """

    def __init__(
        self,
        inbox: Path,
        taxonomy: Taxonomy,
        exclusions: ExclusionSet,
        hasher: ContentHasher,
        mover: FileMover,
        profile: PlatformProfile,
        workers: int = 1,
        prune_directories: Iterable[Path] = (),
    ):
        """Initialize the engine.

        Args:
            inbox: Directory to drain.
            taxonomy: Extension lookup.
            exclusions: Directory and file exclusion patterns.
            hasher: The hasher also used to index the sorted tree.
            mover: Relocates files into the sorted tree or quarantine.
            profile: Platform profile (sidecars, unsafe characters).
            workers: Worker threads; 1 means sequential.
            prune_directories: Directories inside the inbox that are never
                entered (the sorted and quarantine roots, when nested).
        """
        self.inbox = Path(inbox)
        self.taxonomy = taxonomy
        self.exclusions = exclusions
        self.hasher = hasher
        self.mover = mover
        self.profile = profile
        self.workers = max(1, int(workers))
        self._prune = {Path(p).resolve() for p in prune_directories}

    @property
    def concurrent(self) -> bool:
        return self.workers > 1

    def new_store(self) -> HashStore:
        """Create a store guarded the way this engine needs."""
        return HashStore(lock=threading.Lock() if self.concurrent else None)

    def run(self, store: HashStore, report: Optional[RunReport] = None) -> RunReport:
        """Drain the inbox once.

        Args:
            store: Store seeded from the sorted tree.
            report: Report to fill; a new one is created if None.

        Returns:
            The filled RunReport, marked completed.

        Raises:
            FileProcessingError: If the inbox or one of its directories
                cannot be listed (``TRAVERSAL_FAILED``).
        """
        report = report or RunReport(inbox=self.inbox, correlation_id=get_correlation_id())

        if self.concurrent:
            self._run_concurrent(store, report)
        else:
            for path in self._walk(report):
                decision = self.evaluate(path, store)
                self._record(decision, report)

        report.finish()
        return report

    def _run_concurrent(self, store: HashStore, report: RunReport) -> None:
        correlation_id = get_correlation_id()
        futures: List[Future] = []

        def work(path: Path) -> None:
            with RunContext(correlation_id):
                self._record(self.process(path, store), report)

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="intake") as pool:
            for path in self._walk(report):
                decision = self.screen(path)
                if decision is not None:
                    self._record(decision, report)
                else:
                    futures.append(pool.submit(work, path))

        for future in futures:
            future.result()

    def evaluate(self, path: Path, store: HashStore) -> FileDecision:
        """Run every check for a single file and act on the result."""
        path = Path(path)
        return self.screen(path) or self.process(path, store)

    def screen(self, path: Path) -> Optional[FileDecision]:
        """Apply exclusion and eligibility checks.

        Args:
            path: Inbox file.

        Returns:
            A terminal decision if the file is skipped, None if it goes on
            to hashing.
        """
        name = path.name

        match = self.exclusions.match_file(name)
        if match is not None:
            reason = match.reason if match.pattern is None else f"{match.reason} ({match.pattern})"
            return FileDecision(path, Outcome.EXCLUDED, reason=reason)

        try:
            st = os.lstat(path)
        except OSError as e:
            return FileDecision(
                path, Outcome.DIGEST_FAILED, reason="cannot stat file", error=str(e)
            )

        if stat.S_ISLNK(st.st_mode):
            return FileDecision(path, Outcome.INELIGIBLE, reason="symbolic link")
        if not stat.S_ISREG(st.st_mode):
            return FileDecision(path, Outcome.INELIGIBLE, reason="not a regular file")
        if st.st_size == 0:
            return FileDecision(path, Outcome.INELIGIBLE, reason="empty file")
        if self.profile.has_unsafe_name(name):
            return FileDecision(path, Outcome.INELIGIBLE, reason="invalid characters in name")

        return None

    def process(self, path: Path, store: HashStore) -> FileDecision:
        """Hash, claim and relocate a screened file.

        Args:
            path: Inbox file that passed :meth:`screen`.
            store: Shared digest store.

        Returns:
            Terminal decision for the file.
        """
        try:
            digest = self.hasher.compute(path)
        except DeduplicationError as e:
            return FileDecision(
                path, Outcome.DIGEST_FAILED, reason="cannot hash file", error=e.message
            )

        claim = store.claim(digest, path)

        if claim.is_duplicate:
            outcome = (
                Outcome.IN_RUN_DUPLICATE
                if claim.status is ClaimStatus.IN_RUN_DUPLICATE
                else Outcome.INDEXED_DUPLICATE
            )
            try:
                destination = self.mover.quarantine(path, digest)
            except FileProcessingError as e:
                return FileDecision(
                    path,
                    Outcome.MOVE_FAILED,
                    reason="quarantine failed",
                    digest=digest,
                    duplicate_of=claim.existing,
                    error=e.message,
                )
            return FileDecision(
                path,
                outcome,
                reason="duplicate content",
                digest=digest,
                destination=destination,
                duplicate_of=claim.existing,
            )

        category = self.taxonomy.resolve(
            path.name,
            is_sidecar=self.profile.classify_sidecars and self.profile.is_sidecar(path.name),
        )
        try:
            destination = self.mover.place(path, category, digest)
        except FileProcessingError as e:
            store.release(digest, path)
            return FileDecision(
                path,
                Outcome.MOVE_FAILED,
                reason="placement failed",
                digest=digest,
                category=category,
                error=e.message,
            )

        store.record_placement(digest, destination)
        return FileDecision(
            path,
            Outcome.CLASSIFIED,
            reason="unique content",
            digest=digest,
            category=category,
            destination=destination,
        )

    def _walk(self, report: RunReport):
        """Yield inbox files, pruning excluded directories before descending."""

        def on_error(error: OSError) -> None:
            raise FileProcessingError(
                f"Cannot list inbox directory: {error}",
                file_path=error.filename,
                error_code=ErrorCode.TRAVERSAL_FAILED,
                cause=error,
            )

        for dirpath, dirnames, filenames in os.walk(self.inbox, onerror=on_error):
            current = Path(dirpath)

            kept = []
            for name in dirnames:
                directory = current / name
                if directory.resolve() in self._prune:
                    logger.debug(f"Not descending into output directory: {directory}")
                    continue
                match = self.exclusions.match_directory(name)
                if match is not None:
                    logger.info(f"Skipping {match.reason}: {directory}")
                    report.add_skipped_directory(directory)
                    continue
                kept.append(name)
            dirnames[:] = kept

            for name in filenames:
                yield current / name

    def _record(self, decision: FileDecision, report: RunReport) -> None:
        report.add(decision)
        self._log_decision(decision)

    @staticmethod
    def _log_decision(decision: FileDecision) -> None:
        extra = {
            "file_path": str(decision.path),
            "outcome": decision.outcome.value,
        }
        if decision.digest:
            extra["digest"] = decision.digest
        if decision.destination:
            extra["destination"] = str(decision.destination)

        outcome = decision.outcome
        if outcome is Outcome.EXCLUDED:
            logger.debug(f"Skipping {decision.reason}: {decision.path}", extra=extra)
        elif outcome is Outcome.INELIGIBLE:
            logger.info(f"Skipping {decision.reason}: {decision.path}", extra=extra)
        elif outcome is Outcome.CLASSIFIED:
            logger.info(
                f"Unique, moved to {decision.category}: {decision.path} -> {decision.destination}",
                extra=extra,
            )
        elif outcome is Outcome.IN_RUN_DUPLICATE:
            logger.info(
                f"Duplicate within run: {decision.path} -> {decision.destination}",
                extra=extra,
            )
        elif outcome is Outcome.INDEXED_DUPLICATE:
            logger.info(
                f"Duplicate of {decision.duplicate_of}: {decision.path} -> {decision.destination}",
                extra=extra,
            )
        else:
            logger.error(f"{decision.reason}: {decision.path}: {decision.error}", extra=extra)

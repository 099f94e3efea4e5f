"""
Inbox Sorter - Main Application
===============================

Main entry point and orchestration. A run rebuilds the digest index of
the sorted tree, then drains the inbox through the intake engine.
"""

import argparse
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from inbox_sorter.actions import FileMover
from inbox_sorter.config import (
    Config,
    ExclusionSet,
    PlatformProfile,
    ResolvedPaths,
    Taxonomy,
)
from inbox_sorter.deduplication import ContentHasher, SortedTreeIndexer
from inbox_sorter.intake import IntakeEngine, Outcome, RunReport
from inbox_sorter.monitoring import InboxWatcher
from inbox_sorter.utils.exceptions import InboxSorterError
from inbox_sorter.utils.logging_config import (
    RunContext,
    Timer,
    get_logger,
    setup_logging,
)

logger = get_logger(__name__)


def _nested_in(path: Path, root: Path) -> bool:
    try:
        path.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


class InboxSorter:
    """Main orchestrator for the Inbox Sorter.

    Loads taxonomy and exclusions once, then performs any number of
    independent runs. Each run starts from a fresh digest index.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        profile: Optional[PlatformProfile] = None,
    ):
        """Initialize the sorter.

        Args:
            config: Loaded configuration; defaults if None.
            profile: Platform profile; detected from the running platform if None.

        Raises:
            ConfigurationError: If paths, taxonomy or exclusions are invalid.
        """
        self.config = config or Config()

        profile = profile or PlatformProfile.detect()
        self.profile = profile.with_options(
            classify_sidecars=self.config.processing.classify_sidecars
        )
        self.paths: ResolvedPaths = self.config.paths.resolve(self.profile)

        self._init_components()

    def _init_components(self) -> None:
        """Initialize all processing components."""
        self.taxonomy = Taxonomy.load(
            self.config.taxonomy.file,
            lenient=self.config.taxonomy.lenient,
        )
        self.exclusions = ExclusionSet.load(
            self.profile,
            directories_file=self.config.exclusions.directories_file,
            files_file=self.config.exclusions.files_file,
        )

        self.hasher = ContentHasher()
        self.mover = FileMover(self.paths.sorted, self.paths.quarantine)

        self.output_dirs_in_inbox: List[Path] = [
            p for p in (self.paths.sorted, self.paths.quarantine)
            if _nested_in(p, self.paths.inbox)
        ]

        self.indexer = SortedTreeIndexer(
            self.paths.sorted,
            self.hasher,
            # Inbox files nested in the sorted tree are candidates, not sorted content
            skip_directories=[self.paths.quarantine, self.paths.inbox],
        )
        self.engine = IntakeEngine(
            inbox=self.paths.inbox,
            taxonomy=self.taxonomy,
            exclusions=self.exclusions,
            hasher=self.hasher,
            mover=self.mover,
            profile=self.profile,
            workers=self.config.processing.workers,
            prune_directories=self.output_dirs_in_inbox,
        )

        logger.info(
            f"Inbox: {self.paths.inbox} | Sorted: {self.paths.sorted} | "
            f"Quarantine: {self.paths.quarantine} | Workers: {self.engine.workers}"
        )

    def run(self) -> RunReport:
        """Perform one full sorting run.

        Returns:
            RunReport of the run.

        Raises:
            FileProcessingError: If the inbox traversal fails.
        """
        with RunContext() as context:
            report = RunReport(inbox=self.paths.inbox, correlation_id=context.correlation_id)

            store = self.engine.new_store()
            report.index = self.indexer.build(store)

            with Timer(logger, "intake"):
                self.engine.run(store, report)

            self._log_stats(report)
        return report

    def watch(self, stop_event: Optional[threading.Event] = None) -> None:
        """Run once, then keep running whenever the inbox settles after a change."""
        watcher = InboxWatcher(
            inbox=self.paths.inbox,
            run_callback=self._run_logged,
            exclusions=self.exclusions,
            quiet_seconds=self.config.watcher.quiet_seconds,
            poll_interval=self.config.watcher.poll_interval,
            ignore_directories=self.output_dirs_in_inbox,
        )
        # Observe first so files arriving during the initial run trigger another one
        watcher.start()
        try:
            self._run_logged()
        except BaseException:
            watcher.stop()
            raise
        watcher.run_forever(stop_event)

    def _run_logged(self) -> Optional[RunReport]:
        """Run, logging a failed traversal instead of leaving watch mode."""
        try:
            return self.run()
        except InboxSorterError as e:
            logger.error(f"Sorting run failed: {e}")
            return None

    def _log_stats(self, report: RunReport) -> None:
        """Log processing statistics."""
        counts = report.counts()
        logger.info("Statistics:")
        logger.info(f"  Classified: {counts[Outcome.CLASSIFIED.value]}")
        logger.info(
            f"  Duplicates: {counts[Outcome.IN_RUN_DUPLICATE.value]} in run, "
            f"{counts[Outcome.INDEXED_DUPLICATE.value]} already sorted"
        )
        logger.info(
            f"  Skipped: {counts[Outcome.EXCLUDED.value]} excluded, "
            f"{counts[Outcome.INELIGIBLE.value]} ineligible, "
            f"{len(report.skipped_directories)} directories"
        )
        logger.info(
            f"  Failed: {counts[Outcome.DIGEST_FAILED.value]} hash, "
            f"{counts[Outcome.MOVE_FAILED.value]} move"
        )
        renames = self.mover.conflict_resolver.get_stats()["total"]
        if renames:
            logger.info(f"  Renamed on collision: {renames}")


def print_summary(report: RunReport) -> None:
    """Print a human-readable run summary."""
    counts = report.counts()
    status = "✓ Completed" if report.completed else "✗ Incomplete"
    print(f"\n{status} in {report.duration_seconds:.1f}s (run {report.correlation_id})\n")

    if report.index is not None:
        print(f"  Indexed in sorted tree: {report.index.files_indexed}")
    print(f"  Classified:             {counts[Outcome.CLASSIFIED.value]}")
    print(f"  Duplicates (this run):  {counts[Outcome.IN_RUN_DUPLICATE.value]}")
    print(f"  Duplicates (sorted):    {counts[Outcome.INDEXED_DUPLICATE.value]}")
    print(f"  Excluded:               {counts[Outcome.EXCLUDED.value]}")
    print(f"  Ineligible:             {counts[Outcome.INELIGIBLE.value]}")
    print(f"  Skipped directories:    {len(report.skipped_directories)}")

    errors = report.errors
    if errors:
        print(f"\n  Failures ({len(errors)}):")
        for decision in errors:
            print(f"    ✗ {decision.describe()}")


def print_taxonomy(taxonomy: Taxonomy) -> None:
    """Print the flattened extension table."""
    print(f"\n📂 Taxonomy ({len(taxonomy)} extensions):\n")
    for extension, category in sorted(taxonomy.items()):
        print(f"  {extension:<14} → {category}")


def build_parser() -> argparse.ArgumentParser:
    """Create the command line parser."""
    parser = argparse.ArgumentParser(
        prog="inbox-sorter",
        description="Inbox Sorter - classify inbox files by type and quarantine duplicates",
    )
    parser.add_argument('--config', '-c', type=Path, help='Path to config.yaml')
    parser.add_argument('--inbox', type=Path, help='Inbox directory to drain')
    parser.add_argument('--sorted', type=Path, help='Destination tree of category folders')
    parser.add_argument('--quarantine', type=Path, help='Destination for duplicates')
    parser.add_argument('--taxonomy', type=Path, help='Taxonomy document (YAML or JSON)')
    parser.add_argument('--dir-exclusions', type=Path, help='Directory exclusion document')
    parser.add_argument('--file-exclusions', type=Path, help='File exclusion document')
    parser.add_argument('--workers', '-w', type=int, help='Worker threads (1 = sequential)')
    parser.add_argument(
        '--watch',
        action='store_true',
        help='Keep running and sort again whenever the inbox changes'
    )
    parser.add_argument(
        '--show-taxonomy',
        action='store_true',
        help='Print the extension to category table and exit'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Console log level'
    )
    parser.add_argument('--json-logs', action='store_true', help='Log JSON lines to the console')
    parser.add_argument('--log-file', action='store_true', help='Also write a rotating JSON log file')
    return parser


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Apply command line overrides to a loaded configuration."""
    if args.inbox:
        config.paths.inbox = args.inbox.expanduser()
    if args.sorted:
        config.paths.sorted = args.sorted.expanduser()
    if args.quarantine:
        config.paths.quarantine = args.quarantine.expanduser()
    if args.taxonomy:
        config.taxonomy.file = args.taxonomy.expanduser()
    if args.dir_exclusions:
        config.exclusions.directories_file = args.dir_exclusions.expanduser()
    if args.file_exclusions:
        config.exclusions.files_file = args.file_exclusions.expanduser()
    if args.workers is not None:
        config.processing.workers = args.workers
        config.processing.validate()
    if args.log_level:
        config.logging.level = args.log_level
    if args.json_logs:
        config.logging.json_format = True
    if args.log_file:
        config.logging.file_output = True
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point with CLI support."""
    args = build_parser().parse_args(argv)

    try:
        config = apply_overrides(Config.load(args.config), args)
        setup_logging(config.logging)
        sorter = InboxSorter(config)
    except InboxSorterError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1

    if args.show_taxonomy:
        print_taxonomy(sorter.taxonomy)
        return 0

    if args.watch:
        stop_event = threading.Event()

        def signal_handler(sig, frame):
            stop_event.set()

        signal.signal(signal.SIGTERM, signal_handler)
        try:
            sorter.watch(stop_event)
        except RuntimeError as e:
            print(f"✗ {e}", file=sys.stderr)
            return 1
        return 0

    try:
        report = sorter.run()
    except InboxSorterError as e:
        logger.error(f"Sorting run failed: {e}")
        print(f"✗ {e}", file=sys.stderr)
        return 1

    print_summary(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())

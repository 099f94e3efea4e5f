"""
Tests for the orchestrator and command line entry point.
"""

import threading
from pathlib import Path

import pytest
import yaml

from inbox_sorter.config.platform import PlatformProfile
from inbox_sorter.config.settings import Config
from inbox_sorter.intake.decisions import Outcome
from inbox_sorter.main import InboxSorter, main
from inbox_sorter.monitoring.watcher import InboxWatcher
from inbox_sorter.utils.exceptions import ConfigurationError


@pytest.fixture
def roots(tmp_path):
    inbox = tmp_path / "inbox"
    inbox.mkdir()
    return inbox, tmp_path / "sorted", tmp_path / "delete"


@pytest.fixture
def config(roots):
    inbox, sorted_root, quarantine = roots
    config = Config()
    config.paths.inbox = inbox
    config.paths.sorted = sorted_root
    config.paths.quarantine = quarantine
    config.logging.level = "WARNING"
    return config


@pytest.fixture
def profile(tmp_path):
    return PlatformProfile(identifier="linux", default_base_directory=tmp_path)


class TestInboxSorter:
    """Tests for InboxSorter orchestration."""

    def test_run(self, config, profile, roots):
        """Test a full run with the built-in taxonomy."""
        inbox, sorted_root, quarantine = roots
        (inbox / "report.pdf").write_bytes(b"pdf")
        (inbox / "copy.pdf").write_bytes(b"pdf")
        (inbox / "song.mp3").write_bytes(b"mp3")

        report = InboxSorter(config, profile).run()

        assert report.completed
        assert report.correlation_id
        assert report.index.files_indexed == 0
        assert len(report.by_outcome(Outcome.CLASSIFIED)) == 2
        assert len(report.by_outcome(Outcome.IN_RUN_DUPLICATE)) == 1
        assert (sorted_root / "Audio" / "song.mp3").exists()
        assert len(list(quarantine.iterdir())) == 1

    def test_runs_are_independent(self, config, profile, roots):
        """Test each run rebuilds the index from the sorted tree."""
        inbox, sorted_root, _ = roots
        sorter = InboxSorter(config, profile)
        (inbox / "a.pdf").write_bytes(b"A")
        sorter.run()

        # Removing the sorted copy outside the sorter makes the content new again
        (sorted_root / "Documents" / "PDF" / "a.pdf").unlink()
        (inbox / "a.pdf").write_bytes(b"A")
        report = sorter.run()

        assert len(report.by_outcome(Outcome.CLASSIFIED)) == 1

    def test_custom_taxonomy(self, config, profile, roots, tmp_path):
        """Test a taxonomy document from the configuration."""
        inbox, sorted_root, _ = roots
        taxonomy_file = tmp_path / "extensions.yaml"
        taxonomy_file.write_text(yaml.dump({"Papers": {"extensions": ["pdf"]}}))
        config.taxonomy.file = taxonomy_file
        (inbox / "a.pdf").write_bytes(b"A")

        InboxSorter(config, profile).run()

        assert (sorted_root / "Papers" / "a.pdf").exists()

    def test_missing_taxonomy_is_fatal(self, config, profile, tmp_path):
        """Test startup fails on a missing taxonomy document."""
        config.taxonomy.file = tmp_path / "missing.yaml"

        with pytest.raises(ConfigurationError):
            InboxSorter(config, profile)

    def test_nested_sorted_root(self, config, profile, roots):
        """Test a sorted root inside the inbox is not re-sorted."""
        inbox, _, _ = roots
        config.paths.sorted = inbox / "sorted"
        sorter = InboxSorter(config, profile)
        (inbox / "a.pdf").write_bytes(b"A")
        sorter.run()

        report = sorter.run()

        assert report.decisions == []
        assert (inbox / "sorted" / "Documents" / "PDF" / "a.pdf").exists()

    def test_inbox_inside_sorted_root(self, config, profile, tmp_path):
        """Test inbox files nested in the sorted tree are not indexed as sorted content."""
        library = tmp_path / "library"
        inbox = library / "inbox"
        inbox.mkdir(parents=True)
        config.paths.sorted = library
        config.paths.inbox = inbox
        (inbox / "novel.pdf").write_bytes(b"never seen before")
        sorter = InboxSorter(config, profile)

        report = sorter.run()

        assert report.index.files_indexed == 0
        assert [d.path.name for d in report.by_outcome(Outcome.CLASSIFIED)] == ["novel.pdf"]
        assert report.by_outcome(Outcome.INDEXED_DUPLICATE) == []
        assert (library / "Documents" / "PDF" / "novel.pdf").exists()
        assert sorter.run().decisions == []

    def test_watch_observes_before_initial_run(self, config, profile, roots, monkeypatch):
        """Test watch mode starts observing, then sorts the existing backlog."""
        inbox, sorted_root, _ = roots
        (inbox / "a.pdf").write_bytes(b"A")
        stop_event = threading.Event()
        stop_event.set()
        sorter = InboxSorter(config, profile)
        calls = []

        real_start = InboxWatcher.start
        real_run = sorter._run_logged

        def start(watcher):
            calls.append("observe")
            real_start(watcher)

        def run():
            calls.append("run")
            return real_run()

        monkeypatch.setattr(InboxWatcher, "start", start)
        monkeypatch.setattr(sorter, "_run_logged", run)

        sorter.watch(stop_event)

        assert calls == ["observe", "run"]
        assert (sorted_root / "Documents" / "PDF" / "a.pdf").exists()


class TestMain:
    """Tests for the command line entry point."""

    @pytest.fixture(autouse=True)
    def no_config_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

    def test_sorts_inbox(self, roots, capsys):
        """Test a run from the command line."""
        inbox, sorted_root, quarantine = roots
        (inbox / "a.pdf").write_bytes(b"A")

        code = main([
            "--inbox", str(inbox),
            "--sorted", str(sorted_root),
            "--quarantine", str(quarantine),
            "--log-level", "WARNING",
        ])

        assert code == 0
        assert (sorted_root / "Documents" / "PDF" / "a.pdf").exists()
        assert "Classified:             1" in capsys.readouterr().out

    def test_config_file(self, roots, tmp_path):
        """Test paths read from a configuration file."""
        inbox, sorted_root, quarantine = roots
        config_path = tmp_path / "settings.yaml"
        config_path.write_text(yaml.dump({
            "paths": {
                "inbox": str(inbox),
                "sorted": str(sorted_root),
                "quarantine": str(quarantine),
            },
            "processing": {"workers": 2},
            "logging": {"level": "WARNING"},
        }))
        (inbox / "a.txt").write_bytes(b"A")

        assert main(["--config", str(config_path)]) == 0
        assert (sorted_root / "Documents" / "Text" / "a.txt").exists()

    def test_show_taxonomy(self, roots, capsys):
        """Test printing the flattened taxonomy."""
        inbox, sorted_root, quarantine = roots

        code = main([
            "--inbox", str(inbox),
            "--sorted", str(sorted_root),
            "--quarantine", str(quarantine),
            "--log-level", "WARNING",
            "--show-taxonomy",
        ])

        out = capsys.readouterr().out
        assert code == 0
        assert "Documents/PDF" in out
        assert not sorted_root.exists()

    def test_invalid_workers(self, roots):
        """Test invalid options exit with an error."""
        inbox, sorted_root, quarantine = roots

        assert main([
            "--inbox", str(inbox),
            "--sorted", str(sorted_root),
            "--quarantine", str(quarantine),
            "--workers", "0",
        ]) == 1

    def test_same_roots(self, roots):
        """Test overlapping roots exit with an error."""
        inbox, _, quarantine = roots

        assert main([
            "--inbox", str(inbox),
            "--sorted", str(inbox),
            "--quarantine", str(quarantine),
            "--log-level", "WARNING",
        ]) == 1

    def test_missing_inbox(self, tmp_path):
        """Test a missing inbox is a failed run."""
        assert main([
            "--inbox", str(tmp_path / "nowhere"),
            "--sorted", str(tmp_path / "sorted"),
            "--quarantine", str(tmp_path / "delete"),
            "--log-level", "WARNING",
        ]) == 1

    def test_per_file_errors_still_succeed(self, roots, capsys):
        """Test skipped files do not change the exit code."""
        inbox, sorted_root, quarantine = roots
        (inbox / "empty.txt").write_bytes(b"")
        (inbox / "bad:name.txt").write_bytes(b"x")

        code = main([
            "--inbox", str(inbox),
            "--sorted", str(sorted_root),
            "--quarantine", str(quarantine),
            "--log-level", "WARNING",
        ])

        assert code == 0
        assert "Ineligible:             2" in capsys.readouterr().out
        assert Path(inbox / "empty.txt").exists()

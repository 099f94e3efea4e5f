"""
Unit tests for configuration module.
"""

import json
import pytest
from pathlib import Path
import tempfile
import yaml

from inbox_sorter.config.settings import (
    Config,
    PathsConfig,
    TaxonomyConfig,
    ProcessingConfig,
    WatcherConfig,
)
from inbox_sorter.config.platform import PlatformProfile, platform_identifier
from inbox_sorter.config.taxonomy import (
    Taxonomy,
    flatten_taxonomy,
    DEFAULT_TAXONOMY,
    SIDECAR_CATEGORY,
)
from inbox_sorter.config.exclusions import ExclusionSet, merge_for_platform
from inbox_sorter.utils.exceptions import ConfigurationError


@pytest.fixture
def linux_profile(tmp_path):
    """Linux profile rooted in a temporary directory."""
    return PlatformProfile(identifier="linux", default_base_directory=tmp_path / "sort")


class TestPlatformProfile:
    """Tests for PlatformProfile."""

    def test_identifier_normalization(self):
        """Test sys.platform values map to exclusion document keys."""
        assert platform_identifier("win32") == "windows"
        assert platform_identifier("darwin") == "darwin"
        assert platform_identifier("linux") == "linux"
        assert platform_identifier("freebsd14") == "freebsd14"

    def test_hidden_and_sidecar(self):
        """Test hidden and sidecar name detection."""
        profile = PlatformProfile(identifier="darwin")

        assert profile.is_hidden(".DS_Store")
        assert profile.is_sidecar("._photo.jpg")
        assert not profile.is_sidecar(".photo.jpg")
        assert not profile.is_hidden("photo.jpg")

    def test_unsafe_names(self):
        """Test names with non-portable characters are flagged."""
        profile = PlatformProfile(identifier="linux")

        assert profile.has_unsafe_name("report:final.pdf")
        assert profile.has_unsafe_name("what?.txt")
        assert profile.has_unsafe_name("tab\there.txt")
        assert not profile.has_unsafe_name("report final (2).pdf")

    def test_with_options(self):
        """Test overriding a field keeps the rest."""
        profile = PlatformProfile(identifier="darwin")
        changed = profile.with_options(classify_sidecars=True)

        assert changed.classify_sidecars is True
        assert changed.identifier == "darwin"
        assert profile.classify_sidecars is False


class TestTaxonomy:
    """Tests for taxonomy flattening and resolution."""

    def test_nested_paths(self):
        """Test subcategory paths join ancestor names."""
        lookup = flatten_taxonomy({
            "Documents": {
                "extensions": ["doc"],
                "subcategories": {
                    "PDF": {"extensions": ["pdf"]},
                    "Office": {
                        "subcategories": {"Sheets": {"extensions": ["xlsx"]}},
                    },
                },
            },
        })

        assert lookup["doc"] == "Documents"
        assert lookup["pdf"] == "Documents/PDF"
        assert lookup["xlsx"] == "Documents/Office/Sheets"

    def test_extensions_are_normalized(self):
        """Test extensions are lower-cased and lose their dot."""
        taxonomy = Taxonomy.from_tree({"Images": {"extensions": [".JPG", "Png"]}})

        assert taxonomy.category_for_extension("jpg") == "Images"
        assert taxonomy.category_for_extension(".PNG") == "Images"
        assert taxonomy.resolve("Holiday.JpG") == "Images"

    def test_last_write_wins(self):
        """Test an extension listed twice belongs to the last branch visited."""
        lookup = flatten_taxonomy({
            "Data": {"extensions": ["csv"]},
            "Documents": {"subcategories": {"Sheets": {"extensions": ["csv"]}}},
        })

        assert lookup["csv"] == "Documents/Sheets"

    def test_unknown_extension_fallback(self):
        """Test unknown extensions go to Miscellaneous/<EXT>."""
        taxonomy = Taxonomy.from_tree({"Documents": {"extensions": ["pdf"]}})

        assert taxonomy.resolve("model.stl") == "Miscellaneous/STL"
        assert taxonomy.resolve("archive.tar.XZ") == "Miscellaneous/XZ"

    def test_no_extension(self):
        """Test files without an extension use the reserved entry."""
        taxonomy = Taxonomy.empty()

        assert taxonomy.resolve("Makefile") == "Miscellaneous/NO_EXTENSION"
        assert taxonomy.resolve("trailing.") == "Miscellaneous/NO_EXTENSION"

    def test_no_extension_can_be_mapped(self):
        """Test the no_extension entry can be assigned by the taxonomy."""
        taxonomy = Taxonomy.from_tree({"Plain": {"extensions": ["no_extension"]}})

        assert taxonomy.resolve("README") == "Plain"

    def test_sidecar_category_is_fixed(self):
        """Test sidecars always resolve to the system category."""
        taxonomy = Taxonomy.from_tree({"Other": {"extensions": ["._"]}})

        assert taxonomy.resolve("._photo.jpg", is_sidecar=True) == SIDECAR_CATEGORY

    def test_lookup_is_read_only(self):
        """Test the flattened lookup cannot be mutated."""
        taxonomy = Taxonomy.default()

        with pytest.raises(TypeError):
            taxonomy.lookup["pdf"] = "Elsewhere"

    def test_default_taxonomy(self):
        """Test the built-in taxonomy covers common types."""
        taxonomy = Taxonomy.from_tree(DEFAULT_TAXONOMY)

        assert taxonomy.resolve("a.pdf") == "Documents/PDF"
        assert taxonomy.resolve("song.mp3") == "Audio"
        assert taxonomy.resolve("book.m4b") == "Audio/Audiobooks"

    @pytest.mark.parametrize("tree", [
        ["not", "a", "mapping"],
        {"Documents": "pdf"},
        {"Documents": {"extensions": "pdf"}},
        {"Documents": {"extensions": [""]}},
        {"Documents": {"subcategories": ["PDF"]}},
        {"..": {"extensions": ["pdf"]}},
        {"Documents": {"subcategories": {"a/b": {"extensions": ["pdf"]}}}},
    ])
    def test_malformed_tree(self, tree):
        """Test structural problems are configuration errors."""
        with pytest.raises(ConfigurationError):
            flatten_taxonomy(tree)

    def test_load_json_document(self, tmp_path):
        """Test loading a JSON taxonomy document."""
        path = tmp_path / "extensions.json"
        path.write_text(json.dumps({
            "Documents": {"subcategories": {"PDF": {"extensions": ["pdf"]}}},
        }))

        taxonomy = Taxonomy.load(path)

        assert taxonomy.resolve("a.pdf") == "Documents/PDF"

    def test_load_missing_is_fatal(self, tmp_path):
        """Test a configured but missing taxonomy fails closed."""
        with pytest.raises(ConfigurationError):
            Taxonomy.load(tmp_path / "missing.yaml")

    def test_load_malformed_lenient(self, tmp_path):
        """Test the lenient policy degrades to Miscellaneous."""
        path = tmp_path / "extensions.yaml"
        path.write_text("Documents: [unclosed\n")

        taxonomy = Taxonomy.load(path, lenient=True)

        assert taxonomy.resolve("a.pdf") == "Miscellaneous/PDF"

    def test_load_none_uses_default(self):
        """Test no configured file selects the built-in taxonomy."""
        assert Taxonomy.load(None).resolve("a.pdf") == "Documents/PDF"


class TestExclusionSet:
    """Tests for the exclusion matcher."""

    def test_merge_for_platform(self):
        """Test common and platform lists are concatenated in order."""
        document = {
            "common": ["node_modules"],
            "os_specific": {"linux": ["lost+found"], "windows": ["$RECYCLE.BIN"]},
        }

        assert merge_for_platform(document, "linux", "dirs") == ["node_modules", "lost+found"]
        assert merge_for_platform(document, "darwin", "dirs") == ["node_modules"]

    def test_directory_patterns(self, linux_profile):
        """Test directory globs and hidden directories."""
        exclusions = ExclusionSet.from_documents(
            {"common": ["node_modules", "build-*"]}, {}, linux_profile
        )

        assert exclusions.match_directory("node_modules").pattern == "node_modules"
        assert exclusions.is_directory_excluded("build-2024")
        assert exclusions.match_directory(".git").reason == "hidden directory"
        assert not exclusions.is_directory_excluded("photos")

    def test_file_patterns_first_match(self, linux_profile):
        """Test file patterns report the first matching pattern."""
        exclusions = ExclusionSet.from_documents(
            {}, {"common": ["*.tmp", "draft*", "*.t?p"]}, linux_profile
        )

        assert exclusions.match_file("draft.tmp").pattern == "*.tmp"
        assert exclusions.match_file("draft.txt").pattern == "draft*"
        assert exclusions.match_file("x.tap").pattern == "*.t?p"
        assert exclusions.match_file("notes.txt") is None

    def test_matching_is_case_sensitive(self, linux_profile):
        """Test glob matching respects case."""
        exclusions = ExclusionSet.from_documents({}, {"common": ["*.tmp"]}, linux_profile)

        assert exclusions.is_file_excluded("a.tmp")
        assert not exclusions.is_file_excluded("a.TMP")

    def test_character_class(self, linux_profile):
        """Test bracket expressions."""
        exclusions = ExclusionSet.from_documents({}, {"common": ["backup[0-9].zip"]}, linux_profile)

        assert exclusions.is_file_excluded("backup3.zip")
        assert not exclusions.is_file_excluded("backupX.zip")

    def test_malformed_patterns_are_skipped(self, linux_profile):
        """Test non-string and empty patterns are dropped, the rest still apply."""
        exclusions = ExclusionSet.from_documents(
            {}, {"common": [123, None, "", "*.tmp"]}, linux_profile
        )

        assert [p.pattern for p in exclusions.file_patterns] == ["*.tmp"]
        assert exclusions.is_file_excluded("a.tmp")

    def test_hidden_files_always_excluded(self, linux_profile):
        """Test hidden files are excluded with empty pattern lists."""
        exclusions = ExclusionSet.from_documents({}, {}, linux_profile)

        assert exclusions.match_file(".env").reason == "hidden file"

    def test_sidecars(self, linux_profile):
        """Test sidecars are excluded unless the profile classifies them."""
        excluded = ExclusionSet.from_documents({}, {}, linux_profile)
        classified = ExclusionSet.from_documents(
            {}, {}, linux_profile.with_options(classify_sidecars=True)
        )

        assert excluded.match_file("._photo.jpg").reason == "metadata sidecar"
        assert classified.match_file("._photo.jpg") is None

    def test_bad_document_shape(self, linux_profile):
        """Test malformed exclusion documents are configuration errors."""
        with pytest.raises(ConfigurationError):
            ExclusionSet.from_documents({"common": "node_modules"}, {}, linux_profile)
        with pytest.raises(ConfigurationError):
            ExclusionSet.from_documents({}, ["*.tmp"], linux_profile)

    def test_load_missing_file_is_empty(self, tmp_path, linux_profile):
        """Test a configured file that does not exist yields no patterns."""
        exclusions = ExclusionSet.load(
            linux_profile,
            directories_file=tmp_path / "dir_exclusions.json",
            files_file=tmp_path / "file_exclusions.json",
        )

        assert exclusions.directory_patterns == ()
        assert exclusions.file_patterns == ()

    def test_load_defaults(self, linux_profile):
        """Test unset files select the built-in lists."""
        exclusions = ExclusionSet.load(linux_profile)

        assert exclusions.is_directory_excluded("node_modules")
        assert exclusions.is_directory_excluded("lost+found")
        assert exclusions.is_file_excluded("movie.part")


class TestPathsConfig:
    """Tests for PathsConfig."""

    def test_defaults_from_base(self, linux_profile):
        """Test roots default to inbox/sorted/delete under the base."""
        paths = PathsConfig().resolve(linux_profile)
        base = linux_profile.default_base_directory

        assert paths.inbox == (base / "inbox").absolute()
        assert paths.sorted == (base / "sorted").absolute()
        assert paths.quarantine == (base / "delete").absolute()

    def test_explicit_paths(self, tmp_path, linux_profile):
        """Test explicitly configured roots win."""
        paths = PathsConfig.from_dict({
            "inbox": str(tmp_path / "in"),
            "sorted": str(tmp_path / "out"),
            "quarantine": str(tmp_path / "dupes"),
        }).resolve(linux_profile)

        assert paths.sorted == tmp_path / "out"

    def test_roots_must_differ(self, tmp_path, linux_profile):
        """Test identical roots are rejected."""
        config = PathsConfig(inbox=tmp_path, sorted=tmp_path, quarantine=tmp_path / "q")

        with pytest.raises(ConfigurationError):
            config.resolve(linux_profile)


class TestSectionConfigs:
    """Tests for the smaller configuration sections."""

    def test_taxonomy_policy(self):
        """Test taxonomy on_error validation."""
        assert TaxonomyConfig.from_dict({"on_error": "fallback"}).lenient is True
        assert TaxonomyConfig().lenient is False
        with pytest.raises(ConfigurationError):
            TaxonomyConfig.from_dict({"on_error": "ignore"})

    def test_processing_workers(self):
        """Test worker count validation."""
        assert ProcessingConfig.from_dict({"workers": "4"}).workers == 4
        with pytest.raises(ConfigurationError):
            ProcessingConfig.from_dict({"workers": 0})
        with pytest.raises(ConfigurationError):
            ProcessingConfig.from_dict({"workers": "many"})

    def test_watcher_defaults(self):
        """Test default watcher settings."""
        config = WatcherConfig()

        assert config.quiet_seconds == 5.0
        assert config.poll_interval == 1.0


class TestConfig:
    """Tests for main Config class."""

    def test_default_config(self):
        """Test default configuration."""
        config = Config()

        assert config.processing.workers == 1
        assert config.taxonomy.file is None
        assert config.logging.level == "INFO"

    def test_load_from_file(self):
        """Test loading configuration from YAML file."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            yaml.dump({
                "paths": {"inbox": "~/inbox"},
                "processing": {"workers": 3, "classify_sidecars": True},
                "watcher": {"quiet_seconds": 2},
                "logging": {"level": "DEBUG", "json_format": True},
            }, f)
            f.flush()

        config = Config.load(Path(f.name))
        Path(f.name).unlink()

        assert config.paths.inbox == Path("~/inbox").expanduser()
        assert config.processing.workers == 3
        assert config.processing.classify_sidecars is True
        assert config.watcher.quiet_seconds == 2.0
        assert config.logging.json_format is True

    def test_load_missing_file(self):
        """Test loading from non-existent file returns defaults."""
        config = Config.load(Path("/nonexistent/config.yaml"))

        assert config.processing.workers == 1

    def test_load_malformed_file(self, tmp_path):
        """Test invalid YAML is a configuration error."""
        path = tmp_path / "config.yaml"
        path.write_text("paths: [oops\n")

        with pytest.raises(ConfigurationError):
            Config.load(path)

    def test_save_and_reload(self, tmp_path):
        """Test saved configuration loads back with the same values."""
        config = Config()
        config.paths.inbox = tmp_path / "in"
        config.taxonomy.on_error = "fallback"
        config.processing.workers = 2
        path = tmp_path / "config.yaml"

        config.save(path)
        loaded = Config.load(path)

        assert loaded.paths.inbox == tmp_path / "in"
        assert loaded.paths.sorted is None
        assert loaded.taxonomy.on_error == "fallback"
        assert loaded.processing.workers == 2

"""
Exclusion Matcher
=================

Glob-style exclusion lists for directory and file names.

Each exclusion document has a ``common`` list and an ``os_specific``
mapping from platform identifier to list; both are merged for the running
platform at load time. Directory matches prune the whole subtree, file
matches skip only that file. Hidden names are always excluded, whatever
the lists say.
"""

import re
from dataclasses import dataclass, field
from fnmatch import translate
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Pattern, Tuple

from inbox_sorter.config.documents import load_document
from inbox_sorter.config.platform import PlatformProfile
from inbox_sorter.utils.exceptions import ConfigurationError
from inbox_sorter.utils.logging_config import get_logger

logger = get_logger(__name__)


DEFAULT_DIRECTORY_EXCLUSIONS: Mapping[str, Any] = {
    "common": [
        "node_modules",
        "__pycache__",
        ".git",
        ".svn",
        ".hg",
        ".venv",
        "venv",
    ],
    "os_specific": {
        "darwin": ["*.app", "*.photoslibrary", ".Trashes", ".Spotlight-V100", ".fseventsd"],
        "windows": ["$RECYCLE.BIN", "System Volume Information"],
        "linux": [".Trash-*", "lost+found"],
    },
}

DEFAULT_FILE_EXCLUSIONS: Mapping[str, Any] = {
    "common": [
        "*.tmp",
        "*.part",
        "*.crdownload",
        "*.download",
        "~$*",
        "*.swp",
    ],
    "os_specific": {
        "darwin": [".DS_Store", "Icon?"],
        "windows": ["Thumbs.db", "desktop.ini", "ehthumbs.db"],
        "linux": [".directory"],
    },
}


@dataclass(frozen=True)
class CompiledPattern:
    """A glob pattern with its compiled regular expression."""
    pattern: str
    regex: Pattern


def compile_patterns(patterns: Iterable[Any], kind: str) -> Tuple[CompiledPattern, ...]:
    """Compile glob patterns, skipping malformed ones.

    Args:
        patterns: Raw pattern entries in evaluation order.
        kind: "directory" or "file", for log messages.

    Returns:
        Compiled patterns in the original order.
    """
    compiled: List[CompiledPattern] = []
    for pattern in patterns:
        if not isinstance(pattern, str) or not pattern:
            logger.warning(f"Skipping malformed {kind} exclusion pattern: {pattern!r}")
            continue
        try:
            compiled.append(CompiledPattern(pattern, re.compile(translate(pattern))))
        except re.error as e:
            logger.warning(f"Skipping malformed {kind} exclusion pattern {pattern!r}: {e}")
    return tuple(compiled)


def merge_for_platform(document: Any, platform: str, what: str) -> List[Any]:
    """Merge ``common`` and ``os_specific[platform]`` lists of a document.

    Raises:
        ConfigurationError: If the document does not have the expected shape.
    """
    if not isinstance(document, Mapping):
        raise ConfigurationError(
            f"{what} document must be a mapping with 'common' and 'os_specific'",
            expected_type="mapping",
        )

    common = document.get("common") or []
    os_specific = document.get("os_specific") or {}

    if not isinstance(common, list):
        raise ConfigurationError(
            f"'common' of {what} must be a list",
            config_key="common",
            expected_type="list",
        )
    if not isinstance(os_specific, Mapping):
        raise ConfigurationError(
            f"'os_specific' of {what} must be a mapping",
            config_key="os_specific",
            expected_type="mapping",
        )

    platform_entries = os_specific.get(platform) or []
    if not isinstance(platform_entries, list):
        raise ConfigurationError(
            f"'os_specific.{platform}' of {what} must be a list",
            config_key=f"os_specific.{platform}",
            expected_type="list",
        )

    return list(common) + list(platform_entries)


@dataclass(frozen=True)
class ExclusionMatch:
    """Why an entry was excluded."""
    reason: str
    pattern: Optional[str] = None


@dataclass(frozen=True)
class ExclusionSet:
    """Directory and file exclusion patterns for one platform.

    Attributes:
        directory_patterns: Compiled patterns for directory names.
        file_patterns: Compiled patterns for file names.
        profile: Platform profile supplying hidden/sidecar rules.
    """
    directory_patterns: Tuple[CompiledPattern, ...] = ()
    file_patterns: Tuple[CompiledPattern, ...] = ()
    profile: PlatformProfile = field(default_factory=PlatformProfile.detect)

    @classmethod
    def from_documents(
        cls,
        directory_document: Any,
        file_document: Any,
        profile: PlatformProfile,
    ) -> "ExclusionSet":
        """Build an exclusion set from two parsed exclusion documents."""
        directory_patterns = merge_for_platform(
            directory_document, profile.identifier, "directory exclusions"
        )
        file_patterns = merge_for_platform(
            file_document, profile.identifier, "file exclusions"
        )
        return cls(
            directory_patterns=compile_patterns(directory_patterns, "directory"),
            file_patterns=compile_patterns(file_patterns, "file"),
            profile=profile,
        )

    @classmethod
    def load(
        cls,
        profile: PlatformProfile,
        directories_file: Optional[Path] = None,
        files_file: Optional[Path] = None,
    ) -> "ExclusionSet":
        """Load exclusion documents for the given platform.

        An unset path selects the built-in defaults. A configured path that
        does not exist is treated as an empty list; malformed content is fatal.

        Raises:
            ConfigurationError: If a document cannot be parsed or has the wrong shape.
        """
        directory_document = _load_exclusion_document(
            directories_file, DEFAULT_DIRECTORY_EXCLUSIONS, "directory exclusions"
        )
        file_document = _load_exclusion_document(
            files_file, DEFAULT_FILE_EXCLUSIONS, "file exclusions"
        )
        exclusions = cls.from_documents(directory_document, file_document, profile)
        logger.info(
            f"Exclusions for {profile.identifier}: "
            f"{len(exclusions.directory_patterns)} directory, "
            f"{len(exclusions.file_patterns)} file patterns"
        )
        return exclusions

    def match_directory(self, name: str) -> Optional[ExclusionMatch]:
        """Check a directory name.

        Args:
            name: Base name of the directory.

        Returns:
            ExclusionMatch if the directory (and its subtree) is excluded.
        """
        pattern = _first_match(self.directory_patterns, name)
        if pattern is not None:
            return ExclusionMatch("excluded directory", pattern)
        if self.profile.is_hidden(name):
            return ExclusionMatch("hidden directory")
        return None

    def match_file(self, name: str) -> Optional[ExclusionMatch]:
        """Check a file name.

        Sidecar files are excluded as hidden unless the platform profile
        classifies them.

        Args:
            name: Base name of the file.

        Returns:
            ExclusionMatch if the file is excluded.
        """
        if self.profile.is_sidecar(name):
            if not self.profile.classify_sidecars:
                return ExclusionMatch("metadata sidecar")
        elif self.profile.is_hidden(name):
            return ExclusionMatch("hidden file")

        pattern = _first_match(self.file_patterns, name)
        if pattern is not None:
            return ExclusionMatch("excluded file", pattern)
        return None

    def is_directory_excluded(self, name: str) -> bool:
        """Check whether a directory name is excluded."""
        return self.match_directory(name) is not None

    def is_file_excluded(self, name: str) -> bool:
        """Check whether a file name is excluded."""
        return self.match_file(name) is not None


def _first_match(patterns: Tuple[CompiledPattern, ...], name: str) -> Optional[str]:
    for compiled in patterns:
        if compiled.regex.match(name):
            return compiled.pattern
    return None


def _load_exclusion_document(
    path: Optional[Path],
    default: Mapping[str, Any],
    what: str,
) -> Any:
    if path is None:
        return default

    path = Path(path).expanduser()
    if not path.exists():
        logger.warning(f"{what} file not found at {path}, using no {what}")
        return {}

    return load_document(path, what)

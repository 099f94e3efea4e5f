"""
Category Taxonomy
=================

Hierarchical extension taxonomy and its flattened lookup.

A taxonomy document is a mapping of top-level group names to groups. Each
group may carry a list of ``extensions`` and a mapping of named
``subcategories``; a group's destination path is the join of its
ancestors' names down to itself::

    Documents:
      subcategories:
        PDF:
          extensions: [pdf]
        Text:
          extensions: [txt, md]

An extension listed in more than one branch belongs to the branch visited
last in document order. Keeping extensions unique is up to whoever writes
the taxonomy; the resolver only logs the reassignment.
"""

import os
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from inbox_sorter.config.documents import load_document
from inbox_sorter.utils.exceptions import ConfigurationError
from inbox_sorter.utils.logging_config import get_logger

logger = get_logger(__name__)

NO_EXTENSION_KEY = "no_extension"
SIDECAR_KEY = "._"

MISC_CATEGORY = "Miscellaneous"
SIDECAR_CATEGORY = "System/Attribute_Files"

EXTENSIONS_FIELD = "extensions"
SUBCATEGORIES_FIELD = "subcategories"


DEFAULT_TAXONOMY: Dict[str, Any] = {
    "Documents": {
        "subcategories": {
            "PDF": {"extensions": ["pdf"]},
            "Word": {"extensions": ["doc", "docx", "odt", "rtf", "pages"]},
            "Text": {"extensions": ["txt", "md", "tex"]},
            "Spreadsheets": {"extensions": ["xls", "xlsx", "ods", "csv", "numbers"]},
            "Presentations": {"extensions": ["ppt", "pptx", "odp", "key", "keynote"]},
        },
    },
    "Images": {
        "subcategories": {
            "Photos": {"extensions": ["jpg", "jpeg", "tiff", "tif", "heic", "heif"]},
            "Graphics": {"extensions": ["png", "gif", "bmp", "webp", "svg", "ico"]},
            "RAW": {"extensions": ["raw", "cr2", "cr3", "nef", "arw", "dng", "orf", "rw2", "raf"]},
            "Artwork": {"extensions": ["psd", "ai", "xcf"]},
        },
    },
    "Audio": {
        "extensions": ["mp3", "m4a", "aac", "flac", "wav", "ogg", "wma", "aiff", "opus"],
        "subcategories": {
            "Audiobooks": {"extensions": ["m4b"]},
        },
    },
    "Video": {
        "extensions": ["mp4", "mov", "avi", "mkv", "wmv", "flv", "webm", "m4v", "mpeg", "mpg", "3gp"],
    },
    "Archives": {
        "extensions": ["zip", "rar", "7z", "tar", "gz", "bz2", "xz", "tgz", "tbz2", "lz", "lzma"],
    },
    "Installers": {
        "extensions": ["exe", "msi", "dmg", "pkg", "deb", "rpm", "appimage", "snap", "flatpak"],
    },
    "Code": {
        "subcategories": {
            "Python": {"extensions": ["py", "ipynb"]},
            "JavaScript": {"extensions": ["js", "jsx", "ts", "tsx"]},
            "C": {"extensions": ["c", "h", "cpp", "hpp", "cc"]},
            "Go": {"extensions": ["go"]},
            "Rust": {"extensions": ["rs"]},
            "Java": {"extensions": ["java", "kt", "scala"]},
            "Shell": {"extensions": ["sh", "bash", "zsh", "ps1"]},
            "Web": {"extensions": ["html", "css", "scss", "sass", "less", "vue", "svelte"]},
        },
    },
    "Data": {
        "subcategories": {
            "Structured": {"extensions": ["json", "xml", "yaml", "yml", "toml"]},
            "Config": {"extensions": ["ini", "conf", "cfg"]},
            "Databases": {"extensions": ["db", "sqlite", "sqlite3", "sql"]},
            "Datasets": {"extensions": ["parquet", "feather", "pickle", "pkl"]},
        },
    },
    "Ebooks": {
        "extensions": ["epub", "mobi", "azw", "azw3", "fb2", "djvu"],
    },
    "Fonts": {
        "extensions": ["ttf", "otf", "woff", "woff2", "eot"],
    },
}


def normalize_extension(extension: str) -> str:
    """Lower-case an extension and strip its leading dot."""
    return extension.strip().lower().lstrip(".")


def split_extension(file_name: str) -> Tuple[str, str]:
    """Split a file name into stem and extension (extension keeps its dot)."""
    return os.path.splitext(file_name)


def misc_category(extension: str) -> str:
    """Fallback category for an extension missing from the taxonomy."""
    return f"{MISC_CATEGORY}/{extension.upper()}"


def _check_category_name(name: Any, parent: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ConfigurationError(
            f"Invalid category name {name!r} under {parent or '<root>'}",
            config_key=parent or "<root>",
            expected_type="non-empty string",
        )
    if name in (".", "..") or "/" in name or "\\" in name:
        raise ConfigurationError(
            f"Category name {name!r} must not contain path separators or dot segments",
            config_key=f"{parent}/{name}" if parent else name,
        )
    return name


def _flatten_group(
    path: str,
    group: Any,
    lookup: Dict[str, str],
) -> None:
    """Depth-first flattening of one group into ``lookup``."""
    if group is None:
        return
    if not isinstance(group, Mapping):
        raise ConfigurationError(
            f"Category group {path} must be a mapping",
            config_key=path,
            expected_type="mapping",
        )

    extensions = group.get(EXTENSIONS_FIELD) or []
    if not isinstance(extensions, list):
        raise ConfigurationError(
            f"'{EXTENSIONS_FIELD}' of {path} must be a list",
            config_key=f"{path}.{EXTENSIONS_FIELD}",
            expected_type="list",
        )

    for ext in extensions:
        if not isinstance(ext, str) or not normalize_extension(ext):
            raise ConfigurationError(
                f"Invalid extension {ext!r} in {path}",
                config_key=f"{path}.{EXTENSIONS_FIELD}",
                expected_type="non-empty string",
            )
        key = normalize_extension(ext)
        previous = lookup.get(key)
        if previous is not None and previous != path:
            logger.debug(f"Extension '{key}' reassigned: {previous} -> {path}")
        lookup[key] = path

    subcategories = group.get(SUBCATEGORIES_FIELD) or {}
    if not isinstance(subcategories, Mapping):
        raise ConfigurationError(
            f"'{SUBCATEGORIES_FIELD}' of {path} must be a mapping",
            config_key=f"{path}.{SUBCATEGORIES_FIELD}",
            expected_type="mapping",
        )

    for sub_name, sub_group in subcategories.items():
        sub_name = _check_category_name(sub_name, path)
        _flatten_group(f"{path}/{sub_name}", sub_group, lookup)


def flatten_taxonomy(tree: Mapping[str, Any]) -> Dict[str, str]:
    """Flatten a taxonomy tree into an extension -> category path lookup.

    Args:
        tree: Mapping of top-level group names to groups.

    Returns:
        Dictionary of normalized extension to ``/``-joined category path,
        including the reserved ``no_extension`` and sidecar entries.

    Raises:
        ConfigurationError: If the tree is structurally invalid.
    """
    if not isinstance(tree, Mapping):
        raise ConfigurationError(
            "Taxonomy document must be a mapping of category groups",
            expected_type="mapping",
        )

    lookup: Dict[str, str] = {NO_EXTENSION_KEY: misc_category(NO_EXTENSION_KEY)}

    for name, group in tree.items():
        name = _check_category_name(name, "")
        _flatten_group(name, group, lookup)

    # Sidecars always land in the fixed system category
    lookup[SIDECAR_KEY] = SIDECAR_CATEGORY
    return lookup


class Taxonomy:
    """Read-only extension lookup built from a category tree.

    Resolution never fails: unknown extensions fall back to
    ``Miscellaneous/<EXT>``.
    """

    def __init__(self, lookup: Mapping[str, str]):
        """Initialize from an already flattened lookup.

        Args:
            lookup: Normalized extension -> category path.
        """
        self._lookup = MappingProxyType(dict(lookup))

    @classmethod
    def from_tree(cls, tree: Mapping[str, Any]) -> "Taxonomy":
        """Build a taxonomy from a category tree."""
        return cls(flatten_taxonomy(tree))

    @classmethod
    def default(cls) -> "Taxonomy":
        """Build the built-in default taxonomy."""
        return cls.from_tree(DEFAULT_TAXONOMY)

    @classmethod
    def empty(cls) -> "Taxonomy":
        """Taxonomy with only reserved entries; everything goes to Miscellaneous."""
        return cls.from_tree({})

    @classmethod
    def load(cls, path: Optional[Path] = None, lenient: bool = False) -> "Taxonomy":
        """Load a taxonomy document.

        Args:
            path: YAML/JSON taxonomy file. ``None`` selects the built-in default.
            lenient: On a missing or malformed document, log the problem and
                route everything through the Miscellaneous fallback instead
                of failing.

        Returns:
            Loaded Taxonomy.

        Raises:
            ConfigurationError: If the document is missing or malformed and
                ``lenient`` is False.
        """
        if path is None:
            logger.info("No taxonomy file configured, using built-in taxonomy")
            return cls.default()

        try:
            taxonomy = cls.from_tree(load_document(path, "taxonomy"))
        except ConfigurationError as e:
            if not lenient:
                raise
            logger.error(f"Taxonomy unusable, classifying everything as {MISC_CATEGORY}: {e}")
            return cls.empty()

        logger.info(f"Loaded taxonomy from {path}: {len(taxonomy)} extensions")
        return taxonomy

    @property
    def lookup(self) -> Mapping[str, str]:
        """Read-only view of the flattened lookup."""
        return self._lookup

    def __len__(self) -> int:
        return len(self._lookup)

    def __iter__(self) -> Iterator[str]:
        return iter(self._lookup)

    def items(self):
        """Iterate over (extension, category path) pairs."""
        return self._lookup.items()

    def category_for_extension(self, extension: str) -> str:
        """Get the category path for an extension.

        Args:
            extension: Extension with or without leading dot, any case.
                An empty string means "no extension".

        Returns:
            Category path, e.g. ``Documents/PDF``.
        """
        key = normalize_extension(extension) or NO_EXTENSION_KEY
        category = self._lookup.get(key)
        if category is None:
            category = misc_category(key)
        return category

    def resolve(self, file_name: str, is_sidecar: bool = False) -> str:
        """Resolve the destination category for a file name.

        Args:
            file_name: Base name of the file.
            is_sidecar: The file is a platform metadata sidecar.

        Returns:
            Category path relative to the destination root.
        """
        if is_sidecar:
            return self._lookup[SIDECAR_KEY]
        _, extension = split_extension(file_name)
        return self.category_for_extension(extension)

"""
Platform Profile
================

Everything that differs between operating systems is resolved once at
startup into a :class:`PlatformProfile` and injected where needed.
"""

import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import FrozenSet, Optional

# Characters that are not portable in file names across platforms
UNSAFE_NAME_CHARACTERS: FrozenSet[str] = frozenset('<>:"/\\|?*')

SIDECAR_PREFIX = "._"
HIDDEN_PREFIX = "."


def platform_identifier(raw: Optional[str] = None) -> str:
    """Normalize ``sys.platform`` to the keys used by exclusion documents.

    Args:
        raw: Platform string to normalize. Defaults to ``sys.platform``.

    Returns:
        One of ``windows``, ``darwin``, ``linux`` or the raw value.
    """
    raw = raw or sys.platform
    if raw in ("win32", "cygwin"):
        return "windows"
    if raw.startswith("linux"):
        return "linux"
    return raw


@dataclass(frozen=True)
class PlatformProfile:
    """Platform capabilities injected into the engine.

    Attributes:
        identifier: Normalized platform key (``windows``, ``darwin``, ``linux``).
        default_base_directory: Root under which inbox/sorted/delete live by default.
        sidecar_prefix: Name prefix of platform metadata sidecar files.
        classify_sidecars: Route sidecars to the system category instead of
            excluding them as hidden files.
        unsafe_name_characters: Characters that make a file name ineligible.
    """
    identifier: str
    default_base_directory: Path = field(default_factory=lambda: Path.home() / "sort")
    sidecar_prefix: str = SIDECAR_PREFIX
    classify_sidecars: bool = False
    unsafe_name_characters: FrozenSet[str] = UNSAFE_NAME_CHARACTERS

    @classmethod
    def detect(cls, raw: Optional[str] = None) -> "PlatformProfile":
        """Build the profile for the running (or given) platform."""
        return cls(identifier=platform_identifier(raw))

    def with_options(self, **changes) -> "PlatformProfile":
        """Return a copy with selected fields overridden."""
        return replace(self, **changes)

    def is_hidden(self, name: str) -> bool:
        """Check whether a directory or file name is hidden."""
        return name.startswith(HIDDEN_PREFIX)

    def is_sidecar(self, name: str) -> bool:
        """Check whether a file name is a platform metadata sidecar."""
        return name.startswith(self.sidecar_prefix)

    def has_unsafe_name(self, name: str) -> bool:
        """Check for characters that are not portable across platforms."""
        return any(
            ch in self.unsafe_name_characters or ord(ch) < 32
            for ch in name
        )

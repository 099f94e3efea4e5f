"""Configuration module for Inbox Sorter."""

from .settings import (
    Config,
    PathsConfig,
    ResolvedPaths,
    TaxonomyConfig,
    ExclusionsConfig,
    ProcessingConfig,
    WatcherConfig,
)
from .platform import PlatformProfile
from .taxonomy import Taxonomy, flatten_taxonomy, DEFAULT_TAXONOMY
from .exclusions import ExclusionSet, ExclusionMatch

__all__ = [
    "Config",
    "PathsConfig",
    "ResolvedPaths",
    "TaxonomyConfig",
    "ExclusionsConfig",
    "ProcessingConfig",
    "WatcherConfig",
    "PlatformProfile",
    "Taxonomy",
    "flatten_taxonomy",
    "DEFAULT_TAXONOMY",
    "ExclusionSet",
    "ExclusionMatch",
]

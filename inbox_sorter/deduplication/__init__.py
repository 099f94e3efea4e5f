"""Deduplication module."""

from .hash_engine import (
    ContentHasher,
    HashStore,
    ClaimResult,
    ClaimStatus,
    digest_prefix,
)
from .tree_index import SortedTreeIndexer, IndexStats

__all__ = [
    "ContentHasher",
    "HashStore",
    "ClaimResult",
    "ClaimStatus",
    "digest_prefix",
    "SortedTreeIndexer",
    "IndexStats",
]

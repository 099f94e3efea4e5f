"""
Inbox Sorter
============

Sorts an inbox directory into a category tree and quarantines duplicates.

Features:
- Classification by file extension through a configurable category taxonomy
- Exact duplicate detection with SHA-256 content digests
- Collision-safe moves: existing files are never overwritten

Every run re-derives its state from the sorted tree, so repeated runs
over the same inbox are safe.
"""

__version__ = "0.1.0"

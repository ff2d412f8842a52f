"""Snapshot package for recording and undoing applied preferences.

This package provides:
- SnapshotStore: Loads, saves and deletes the snapshot file
- Snapshot: Managed keys with their original values and run metadata
- SnapshotEntry: A single managed key
"""

from .store import (
    Snapshot,
    SnapshotEntry,
    SnapshotStore,
    SNAPSHOT_FILENAME,
)

__all__ = [
    "Snapshot",
    "SnapshotEntry",
    "SnapshotStore",
    "SNAPSHOT_FILENAME",
]

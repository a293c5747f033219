"""Persistent stores for probegen state."""

from .snapshot import SnapshotDiff, SnapshotStore, diff_entries, entries_to_probes

__all__ = ["SnapshotDiff", "SnapshotStore", "diff_entries", "entries_to_probes"]

"""Decide whether the manifest's logical content changed."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .logging import get_logger
from .manifest.canonical import content_hash
from .models import Manifest, snapshot_entries
from .stores import SnapshotDiff, SnapshotStore, diff_entries, entries_to_probes


@dataclass(frozen=True)
class ChangeReport:
    """Outcome of a full-rescan comparison."""

    hash: str
    changed: bool
    snapshot_diff: Optional[SnapshotDiff] = None


class ChangeDetector:
    """Tracks the last built and the last computed manifest hash.

    ``last_hash`` is the hash of the last successful build. ``last_computed``
    follows every hash computed since, including those computed while a build
    is running, so that reverting an edit mid-build still counts as a change.
    The persisted snapshot only feeds the added/removed report logged after a
    restart.
    """

    def __init__(self, snapshots: SnapshotStore, last_hash: Optional[str] = None) -> None:
        self.snapshots = snapshots
        self.last_hash = last_hash
        self.last_computed = last_hash
        self.logger = get_logger("detector")

    @classmethod
    def from_sidecar(cls, snapshots: SnapshotStore, sidecar: Path) -> "ChangeDetector":
        """Seed the last-known hash from a ``<manifest>.sha256`` file, if any."""
        try:
            recorded = sidecar.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError):
            recorded = ""
        return cls(snapshots, last_hash=recorded or None)

    def has_changed(self, current_hash: str, *, force: bool = False) -> bool:
        """Compare with the last computed hash, then remember ``current_hash``."""
        changed = force or current_hash != self.last_computed
        self.last_computed = current_hash
        return changed

    def observe(self, current_hash: str) -> None:
        """Note a hash computed by a full rescan without making a decision."""
        self.last_computed = current_hash

    def check_full(self, manifest: Manifest, *, force: bool = False) -> ChangeReport:
        """Compare a freshly rescanned manifest with the snapshot and last hash."""
        current_hash = content_hash(manifest)
        diff = self._snapshot_diff(manifest, current_hash)
        self.observe(current_hash)
        return ChangeReport(
            hash=current_hash,
            changed=force or current_hash != self.last_hash,
            snapshot_diff=diff,
        )

    def record(self, manifest: Manifest, built_hash: str) -> None:
        """Remember a successful build and persist its snapshot."""
        self.last_hash = built_hash
        self.snapshots.persist(manifest)

    def _snapshot_diff(self, manifest: Manifest, current_hash: str) -> Optional[SnapshotDiff]:
        previous = self.snapshots.load()
        if previous is None:
            self.logger.debug("No usable probe snapshot; skipping diff report")
            return None
        rebuilt = Manifest(
            provider=manifest.provider,
            module=manifest.module,
            probes=entries_to_probes(previous),
        )
        if content_hash(rebuilt) == current_hash:
            return None
        diff = diff_entries(previous, snapshot_entries(manifest.probes))
        for entry in diff.added:
            self.logger.info("Probe added: %s", entry)
        for entry in diff.removed:
            self.logger.info("Probe removed: %s", entry)
        return diff


__all__ = ["ChangeDetector", "ChangeReport"]

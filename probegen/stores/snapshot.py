"""Persisted probe snapshot used for cross-run diff reports."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from ..models import Manifest, ProbeEntry, snapshot_entries


@dataclass(frozen=True)
class SnapshotDiff:
    """Entries that appeared or disappeared since the last snapshot."""

    added: Tuple[str, ...]
    removed: Tuple[str, ...]

    def is_empty(self) -> bool:
        return not self.added and not self.removed


class SnapshotStore:
    """Reads and writes the flat ``name|type,type`` snapshot array."""

    def __init__(self, path: Path | None) -> None:
        self._path = path

    @property
    def path(self) -> Path | None:
        return self._path

    def load(self) -> Optional[List[str]]:
        """Return stored entries, or None when missing or unparsable."""
        if self._path is None:
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            return None
        if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
            return None
        if not all("|" in item for item in data):
            return None
        return data

    def persist(self, manifest: Manifest) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(snapshot_entries(manifest.probes), indent=2) + "\n", encoding="utf-8"
        )


def entries_to_probes(entries: Sequence[str]) -> Tuple[ProbeEntry, ...]:
    """Rebuild probe entries from ``name|type,type`` strings."""
    probes = []
    for entry in entries:
        name, _, types = entry.partition("|")
        arg_types = tuple(item for item in types.split(",") if item) if types else ()
        probes.append(ProbeEntry(name=name, arg_types=arg_types))
    return tuple(probes)


def diff_entries(previous: Sequence[str], current: Sequence[str]) -> SnapshotDiff:
    before = set(previous)
    after = set(current)
    return SnapshotDiff(
        added=tuple(sorted(after - before)),
        removed=tuple(sorted(before - after)),
    )


__all__ = ["SnapshotDiff", "SnapshotStore", "diff_entries", "entries_to_probes"]

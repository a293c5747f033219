"""Tests for probegen.detector."""

from __future__ import annotations

import logging
from pathlib import Path

from probegen.detector import ChangeDetector
from probegen.manifest.canonical import content_hash
from probegen.models import Manifest, ProbeEntry
from probegen.stores import SnapshotStore


def _manifest(*probes: ProbeEntry) -> Manifest:
    return Manifest(provider="nodeapp", probes=probes)


def test_identical_hash_is_skipped_unless_forced(tmp_path: Path) -> None:
    manifest = _manifest(ProbeEntry("p1", ("int",)))
    detector = ChangeDetector(SnapshotStore(tmp_path / "snap.json"), last_hash=content_hash(manifest))

    assert detector.has_changed(content_hash(manifest)) is False
    assert detector.has_changed(content_hash(manifest), force=True) is True
    assert detector.has_changed(content_hash(_manifest())) is True


def test_record_updates_hash_and_snapshot(tmp_path: Path) -> None:
    store = SnapshotStore(tmp_path / "snap.json")
    detector = ChangeDetector(store)
    manifest = _manifest(ProbeEntry("p1", ("int",)))

    detector.record(manifest, content_hash(manifest))

    assert detector.last_hash == content_hash(manifest)
    assert store.load() == ["p1|int"]


def test_check_full_logs_diff_against_snapshot(tmp_path: Path, caplog, monkeypatch) -> None:
    store = SnapshotStore(tmp_path / "snap.json")
    store.persist(_manifest(ProbeEntry("old", ()), ProbeEntry("kept", ("int",))))
    detector = ChangeDetector(store)

    monkeypatch.setattr(logging.getLogger("probegen"), "propagate", True)
    with caplog.at_level(logging.INFO, logger="probegen"):
        report = detector.check_full(_manifest(ProbeEntry("kept", ("int",)), ProbeEntry("new", ("json",))))

    assert report.changed is True
    assert report.snapshot_diff is not None
    assert report.snapshot_diff.added == ("new|json",)
    assert report.snapshot_diff.removed == ("old|",)
    assert "Probe added: new|json" in caplog.text


def test_check_full_without_difference_has_no_diff(tmp_path: Path) -> None:
    manifest = _manifest(ProbeEntry("a", ("int",)))
    store = SnapshotStore(tmp_path / "snap.json")
    store.persist(manifest)
    detector = ChangeDetector(store, last_hash=content_hash(manifest))

    report = detector.check_full(manifest)

    assert report.changed is False
    assert report.snapshot_diff is None


def test_diff_never_blocks_build_decision(tmp_path: Path) -> None:
    (tmp_path / "snap.json").write_text("garbage", encoding="utf-8")
    detector = ChangeDetector(SnapshotStore(tmp_path / "snap.json"))

    report = detector.check_full(_manifest(ProbeEntry("a")))

    assert report.changed is True
    assert report.snapshot_diff is None


def test_from_sidecar_seeds_last_hash(tmp_path: Path) -> None:
    sidecar = tmp_path / "probes.manifest.json.sha256"
    sidecar.write_text("abc123\n", encoding="utf-8")

    detector = ChangeDetector.from_sidecar(SnapshotStore(None), sidecar)
    missing = ChangeDetector.from_sidecar(SnapshotStore(None), tmp_path / "nope.sha256")

    assert detector.last_hash == "abc123"
    assert missing.last_hash is None


def test_has_changed_follows_last_computed_hash() -> None:
    built = content_hash(_manifest(ProbeEntry("p", ("int",))))
    edited = content_hash(_manifest(ProbeEntry("p", ("int", "int"))))
    detector = ChangeDetector(SnapshotStore(None), last_hash=built)

    assert detector.has_changed(edited) is True
    assert detector.has_changed(built) is True
    assert detector.has_changed(built) is False
    assert detector.last_hash == built


def test_check_full_decides_against_last_build() -> None:
    built = _manifest(ProbeEntry("p", ("int",)))
    detector = ChangeDetector(SnapshotStore(None), last_hash=content_hash(built))
    detector.observe(content_hash(_manifest()))

    report = detector.check_full(built)

    assert report.changed is False
    assert detector.last_computed == content_hash(built)

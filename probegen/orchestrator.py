"""Pipeline orchestration for emit, one-shot build and watch flows."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .build import BuildScheduler, NativeBuildRunner, sidecar_path, write_sidecars
from .config import ProbegenConfig
from .detector import ChangeDetector
from .logging import get_logger
from .manifest.aggregator import aggregate
from .manifest.canonical import (
    content_hash,
    manifest_from_aggregates,
    render_manifest,
    validate_manifest,
)
from .manifest.sources import HeuristicScan, ManifestSource, resolve_source
from .models import Manifest, ProbeAggregate
from .scanner import SourceScanner
from .stores import SnapshotStore
from .watcher import ADD, CHANGE, UNLINK, WatchFrontEnd


@dataclass
class EmitOutcome:
    """Manifest written by an emit run."""

    path: Path
    hash: str


@dataclass
class BuildOutcome:
    """Result of a one-shot build run."""

    hash: str
    built: bool


class Orchestrator:
    """Owns the scanner cache, change detector and build scheduler for one session."""

    def __init__(
        self,
        config: ProbegenConfig,
        *,
        source: ManifestSource | None = None,
        scanner: SourceScanner | None = None,
        build_runner: NativeBuildRunner | None = None,
        snapshots: SnapshotStore | None = None,
        force: bool = False,
        rescan: bool = False,
        observer_factory=None,
    ) -> None:
        self.config = config
        self.source = source if source is not None else resolve_source(config, rescan=rescan)
        self.scanner = scanner or SourceScanner(config)
        self.snapshots = snapshots or SnapshotStore(config.snapshot_path)
        self.detector = ChangeDetector.from_sidecar(self.snapshots, sidecar_path(config.manifest_path))
        self.build_runner = build_runner or NativeBuildRunner(config.build.command, cwd=config.root)
        self.scheduler = BuildScheduler(self.run_build_cycle)
        self.force = force
        self.logger = get_logger("orchestrator")
        self._aggregates: List[ProbeAggregate] = []
        self._observer_factory = observer_factory
        self.watcher: Optional[WatchFrontEnd] = None
        self._stopped: Optional[asyncio.Future[None]] = None

    # ------------------------------------------------------------------
    # Manifest generation

    def current_manifest(self, *, rescan: bool) -> Manifest:
        """Regenerate the manifest from the configured source and validate it."""
        if isinstance(self.source, HeuristicScan):
            if rescan:
                self.scanner.rescan()
            self._aggregates = aggregate(self.scanner.signatures)
            manifest = manifest_from_aggregates(
                self._aggregates, provider=self.config.provider, module=self.config.module
            )
        else:
            self._aggregates = []
            manifest = self.source.load()
        validate_manifest(manifest)
        return manifest

    def write_manifest(self, manifest: Manifest) -> str:
        """Persist a validated manifest and return its content hash."""
        path = self.config.manifest_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            render_manifest(manifest, self._aggregates, development=self.config.development),
            encoding="utf-8",
        )
        return content_hash(manifest)

    def emit(self) -> EmitOutcome:
        manifest = self.current_manifest(rescan=True)
        digest = self.write_manifest(manifest)
        self.logger.info("Wrote %d probes to %s", len(manifest.probes), self.config.manifest_path)
        return EmitOutcome(path=self.config.manifest_path, hash=digest)

    # ------------------------------------------------------------------
    # Building

    async def run_build_cycle(self) -> None:
        """Rescan, write the manifest, build, then record hashes and snapshot."""
        manifest = self.current_manifest(rescan=True)
        digest = self.write_manifest(manifest)
        self.detector.observe(digest)
        await self.build_runner.run()
        written = write_sidecars(
            self.config.manifest_path,
            digest,
            root=self.config.root,
            artifact_patterns=self.config.build.artifacts,
        )
        self.detector.record(manifest, digest)
        self.logger.info(
            "Probes built with manifest hash %s (%d sidecar files)", digest, len(written)
        )

    async def run_once(self) -> BuildOutcome:
        """Build when the manifest changed since the last successful build."""
        manifest = self.current_manifest(rescan=True)
        report = self.detector.check_full(manifest, force=self.force)
        if not report.changed:
            self.logger.info("Manifest unchanged (%s); skipping build", report.hash)
            return BuildOutcome(hash=report.hash, built=False)
        self.scheduler.request()
        await self.scheduler.wait_idle()
        return BuildOutcome(hash=self.detector.last_hash or report.hash, built=True)

    def request_build(self) -> bool:
        started = self.scheduler.request()
        task = self.scheduler.task
        if started and task is not None:
            task.add_done_callback(self._on_build_done)
        return started

    def _on_build_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._fail(exc)

    # ------------------------------------------------------------------
    # Watch session

    def start(self) -> None:
        """Start watching source directories; must run inside the event loop."""
        if self.watcher is not None:
            raise RuntimeError("Watch session already started")
        loop = asyncio.get_running_loop()
        self._stopped = loop.create_future()
        kwargs = {}
        if self._observer_factory is not None:
            kwargs["observer_factory"] = self._observer_factory
        self.watcher = WatchFrontEnd(
            self.scanner.roots,
            accepts=self.scanner.accepts,
            is_tracked=self.scanner.is_tracked,
            on_event=self._on_event,
            on_ready=self._on_ready,
            settle_delay=self.config.watch.settle_delay,
            max_retries=self.config.watch.max_retries,
            **kwargs,
        )
        self.watcher.start()

    def stop(self) -> None:
        if self.watcher is not None:
            self.watcher.stop()
            self.watcher = None
        if self._stopped is not None and not self._stopped.done():
            self._stopped.set_result(None)

    async def watch(self) -> None:
        """Run a watch session until ``stop`` is called or a build fails."""
        try:
            self.start()
            assert self._stopped is not None
            await self._stopped
        finally:
            self.stop()
        await self.scheduler.wait_idle()

    def handle_event(self, kind: str, path: Path) -> bool:
        """Apply one file event and request a build when the hash moved."""
        if kind in (ADD, CHANGE):
            self.scanner.update_file(path)
        elif kind == UNLINK:
            self.scanner.remove_file(path)
        else:
            raise ValueError(f"Unknown watch event kind: {kind}")

        manifest = self.current_manifest(rescan=False)
        digest = content_hash(manifest)
        if not self.detector.has_changed(digest, force=self.force):
            self.logger.debug("%s %s left the manifest unchanged", kind, path)
            return False
        self.logger.info("%s %s changed the manifest; requesting build", kind, path)
        self.request_build()
        return True

    def _on_ready(self) -> None:
        manifest = self.current_manifest(rescan=True)
        report = self.detector.check_full(manifest, force=self.force)
        if report.changed:
            self.request_build()
        else:
            self.logger.info("Manifest up to date (%s); waiting for changes", report.hash)

    def _on_event(self, kind: str, path: Path) -> None:
        try:
            self.handle_event(kind, path)
        except Exception as exc:
            self._fail(exc)

    def _fail(self, exc: BaseException) -> None:
        if self._stopped is not None and not self._stopped.done():
            self._stopped.set_exception(exc)


__all__ = ["BuildOutcome", "EmitOutcome", "Orchestrator"]

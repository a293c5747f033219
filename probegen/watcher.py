"""Filesystem watch front-end built on watchdog.

Watchdog delivers events on its observer thread; every event is marshalled onto
the asyncio loop with ``call_soon_threadsafe`` so that all state changes happen
on one thread.

Rename events (``moved``) are treated as ambiguous: editors that save
atomically rename a temporary file over the target, and some backends report
only a bare file name. Each candidate path is re-checked after a short settle
delay and turned into a plain ``add``/``change``/``unlink`` event.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .logging import get_logger

ADD = "add"
CHANGE = "change"
UNLINK = "unlink"
RAW = "raw"

EventCallback = Callable[[str, Path], None]


def classify_raw(*, exists: bool, tracked: bool, retries_left: int) -> Optional[str]:
    """Resolve a settled rename candidate; None means check again later."""
    if exists:
        return CHANGE if tracked else ADD
    if retries_left > 0:
        return None
    return UNLINK


class _ForwardingHandler(FileSystemEventHandler):
    """Posts watchdog events to the front-end on the event loop thread."""

    def __init__(self, front_end: "WatchFrontEnd", loop: asyncio.AbstractEventLoop) -> None:
        super().__init__()
        self._front_end = front_end
        self._loop = loop

    def on_created(self, event: FileSystemEvent) -> None:
        self._post(event, ADD)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._post(event, CHANGE)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._post(event, UNLINK)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        paths = [os.fsdecode(event.src_path), os.fsdecode(getattr(event, "dest_path", ""))]
        self._send(RAW, tuple(path for path in paths if path))

    def _post(self, event: FileSystemEvent, kind: str) -> None:
        if event.is_directory:
            return
        self._send(kind, (os.fsdecode(event.src_path),))

    def _send(self, kind: str, paths: Tuple[str, ...]) -> None:
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._front_end.dispatch, kind, *paths)


class WatchFrontEnd:
    """Turns filesystem notifications into add/change/unlink callbacks."""

    def __init__(
        self,
        roots: Sequence[Path],
        *,
        accepts: Callable[[Path], bool],
        is_tracked: Callable[[Path], bool],
        on_event: EventCallback,
        on_ready: Callable[[], None],
        settle_delay: float = 0.05,
        max_retries: int = 5,
        observer_factory: Callable[[], Any] = Observer,
    ) -> None:
        self.roots = [Path(root).resolve() for root in roots]
        self._accepts = accepts
        self._is_tracked = is_tracked
        self._on_event = on_event
        self._on_ready = on_ready
        self.settle_delay = settle_delay
        self.max_retries = max_retries
        self._observer_factory = observer_factory
        self._observer: Any = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._timers: Dict[Path, asyncio.TimerHandle] = {}
        self._pending: List[Tuple[str, Tuple[str, ...]]] = []
        self._ready = False
        self.logger = get_logger("watcher")

    @property
    def pending_paths(self) -> List[Path]:
        return sorted(self._timers)

    def start(self) -> None:
        """Begin observing, then seed state before replaying any early events."""
        self._loop = asyncio.get_running_loop()
        observer = self._observer_factory()
        handler = _ForwardingHandler(self, self._loop)
        watched = 0
        for root in self.roots:
            if root.is_dir():
                observer.schedule(handler, str(root), recursive=True)
                watched += 1
            else:
                self.logger.debug("Source directory %s does not exist; not watching", root)
        observer.start()
        self._observer = observer
        self.logger.info("Watching %d source directories", watched)

        self._on_ready()
        self._ready = True
        pending, self._pending = self._pending, []
        for kind, paths in pending:
            self.dispatch(kind, *paths)

    def stop(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        self._ready = False
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None

    def dispatch(self, kind: str, *paths: str) -> None:
        """Entry point for every event, native or synthesized."""
        if not self._ready:
            self._pending.append((kind, paths))
            return
        if kind == RAW:
            for candidate in self.candidates(paths):
                if candidate in self._timers:
                    continue
                self._schedule(candidate, attempt=0)
            return
        for raw in paths:
            path = Path(raw).resolve()
            if self._accepts(path):
                self._on_event(kind, path)

    def candidates(self, raw_paths: Iterable[str]) -> List[Path]:
        """Possible real locations for the paths named by a rename event."""
        seen: List[Path] = []
        for raw in raw_paths:
            path = Path(raw)
            if path.is_absolute():
                options = [path]
            else:
                options = [root / path for root in self.roots]
                if path.name != raw:
                    options.extend(root / path.name for root in self.roots)
            for option in options:
                resolved = option.resolve()
                if resolved not in seen and self._accepts(resolved):
                    seen.append(resolved)
        return seen

    def _schedule(self, path: Path, *, attempt: int) -> None:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self._timers[path] = self._loop.call_later(self.settle_delay, self._settle, path, attempt)

    def _settle(self, path: Path, attempt: int) -> None:
        self._timers.pop(path, None)
        kind = classify_raw(
            exists=path.is_file(),
            tracked=self._is_tracked(path),
            retries_left=self.max_retries - attempt,
        )
        if kind is None:
            self._schedule(path, attempt=attempt + 1)
            return
        self.logger.debug("Resolved rename for %s as %s after %d retries", path, kind, attempt)
        self._on_event(kind, path)


__all__ = ["ADD", "CHANGE", "RAW", "UNLINK", "WatchFrontEnd", "classify_raw"]

"""
Detecting external edits to source files and reacting to them.

SourceWatcher only detects: it watches the parent directories of the source
files with watchdog and reports which source path changed, picking up
source directories that are created after it starts. Reconciler only
reacts: it collapses bursts of changes and then runs one full rescan.
"""

import asyncio
import logging
import os
import threading
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch

logger = logging.getLogger(__name__)


def _normalize(path: Path | str) -> str:
    return os.path.abspath(os.fspath(path))


def _nearest_existing(directory: Path) -> Optional[Path]:
    for candidate in (directory, *directory.parents):
        if candidate.is_dir():
            return candidate
    return None


class SourceChangeHandler(FileSystemEventHandler):
    """Forwards events that touch one of the watched files."""

    def __init__(self, paths: Iterable[Path], callback: Callable[[Path], None]) -> None:
        super().__init__()
        self.paths = {_normalize(p) for p in paths}
        self.callback = callback

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        # atomic saves show up as a move onto the watched name
        candidates = [event.src_path, getattr(event, "dest_path", "") or ""]
        for candidate in candidates:
            if not candidate:
                continue
            path = _normalize(os.fsdecode(candidate))
            if path in self.paths:
                logger.debug(f"Source changed ({event.event_type}): {path}")
                self.callback(Path(path))
                return


class DirectoryAppearedHandler(FileSystemEventHandler):
    """Calls back whenever a directory is created or moved into place."""

    def __init__(self, callback: Callable[[], None]) -> None:
        super().__init__()
        self.callback = callback

    def on_created(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            self.callback()

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            self.callback()


class SourceWatcher:
    """
    Watches the directories holding the source files.

    A source directory that does not exist yet (a tool installed later) is
    pending: its nearest existing ancestor is watched for new directories,
    and once it appears it is watched like the others. Source files already
    inside it at that point are reported as changed.
    """

    def __init__(self, paths: Iterable[Path], callback: Callable[[Path], None]) -> None:
        self.paths = [Path(p) for p in paths]
        self.callback = callback
        self.handler = SourceChangeHandler(self.paths, callback)
        self.appeared_handler = DirectoryAppearedHandler(self._watch_new_dirs)
        self.observer: Optional[Observer] = None
        self.watched_dirs: list[Path] = []
        self.pending_dirs: list[Path] = []
        self._ancestor_watches: dict[Path, ObservedWatch] = {}
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self.observer is not None

    def start(self) -> None:
        if self.observer is not None:
            logger.warning("Source watcher is already running")
            return

        self.observer = Observer()
        self.watched_dirs = []
        self.pending_dirs = sorted({p.parent for p in self.paths})
        self._ancestor_watches = {}
        self._watch_new_dirs(report=False)
        self.observer.start()
        logger.info(
            f"Watching {len(self.watched_dirs)} source directories"
            + (f", waiting for {len(self.pending_dirs)}" if self.pending_dirs else "")
        )

    def _watch_new_dirs(self, report: bool = True) -> None:
        with self._lock:
            if self.observer is None:
                return
            appeared = True
            while appeared:
                appeared = False
                for directory in list(self.pending_dirs):
                    if not directory.is_dir():
                        continue
                    try:
                        self.observer.schedule(self.handler, str(directory), recursive=False)
                    except OSError as e:
                        logger.warning(f"Cannot watch {directory}: {e}")
                        continue
                    self.watched_dirs.append(directory)
                    self.pending_dirs.remove(directory)
                    appeared = True
                    if report:
                        logger.info(f"Source directory appeared: {directory}")
                        self._report_existing(directory)
                self._watch_ancestors()

    def _report_existing(self, directory: Path) -> None:
        for path in self.paths:
            if path.parent == directory and path.exists():
                self.callback(path)

    def _watch_ancestors(self) -> None:
        wanted = {_nearest_existing(d) for d in self.pending_dirs} - {None}
        for directory in list(self._ancestor_watches):
            if directory not in wanted:
                watch = self._ancestor_watches.pop(directory)
                # other handlers may share the same watch
                self.observer.remove_handler_for_watch(self.appeared_handler, watch)
        for directory in sorted(wanted - set(self._ancestor_watches)):
            self._ancestor_watches[directory] = self.observer.schedule(
                self.appeared_handler, str(directory), recursive=False
            )
            logger.debug(f"Watching {directory} for missing source directories")

    def stop(self) -> None:
        if self.observer is None:
            return
        observer = self.observer
        with self._lock:
            self.observer = None
        observer.stop()
        observer.join()
        logger.info("Stopped watching source directories")

    def __enter__(self) -> "SourceWatcher":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()


class Reconciler:
    """
    Debounces change notifications into single rescans.

    notify() is safe to call from watchdog's thread. Each burst of
    notifications closer together than `debounce` seconds results in one
    call of `on_change` on the event loop.
    """

    def __init__(
        self,
        on_change: Callable[[], Awaitable[object]],
        debounce: float = 0.5,
    ) -> None:
        self.on_change = on_change
        self.debounce = debounce
        self.changed: set[Path] = set()
        self.runs = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()

    def bind(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop or asyncio.get_running_loop()

    def notify(self, path: Path) -> None:
        if self._loop is None or self._loop.is_closed():
            logger.debug(f"Reconciler not bound, dropping change to {path}")
            return
        self._loop.call_soon_threadsafe(self._schedule, path)

    def _schedule(self, path: Path) -> None:
        self.changed.add(path)
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._loop.call_later(self.debounce, self._fire)

    def _fire(self) -> None:
        self._timer = None
        changed, self.changed = self.changed, set()
        logger.info(f"Sources changed on disk, rescanning: {', '.join(sorted(str(p) for p in changed))}")
        task = self._loop.create_task(self._run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self) -> None:
        try:
            await self.on_change()
        except Exception as e:
            logger.error(f"Rescan after external change failed: {e}", exc_info=True)
        self.runs += 1

    async def close(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

"""
Watch mode: rebuild the bundle when its inputs change.

Watchdog delivers events on its observer thread; they are handed to the event
loop, where a RebuildGate makes sure only one bundling pass runs at a time.
Any number of events arriving during a pass collapse into a single follow-up
pass.
"""
import asyncio
import fnmatch
import os
from enum import Enum

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from .log import debug_log, warn
from .resolver import is_invalid_path, is_url


class GateState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PENDING = "running+pending"


class RebuildGate:
    """
    Single-slot throttle for bundling passes.

    ``trigger()`` while idle starts a pass. While a pass runs, triggers only
    remember that another pass is wanted; when the running pass finishes,
    exactly one more starts.
    """

    def __init__(self, run_pass):
        self.run_pass = run_pass
        self.state = GateState.IDLE
        self.passes = 0
        self._task = None
        self._idle = asyncio.Event()
        self._idle.set()

    def trigger(self):
        if self.state is GateState.IDLE:
            self._start()
        elif self.state is GateState.RUNNING:
            self.state = GateState.PENDING

    def _start(self):
        self.state = GateState.RUNNING
        self.passes += 1
        self._idle.clear()
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self):
        try:
            await self.run_pass()
        except Exception as e:
            warn(f"Bundling failed: {e}")
        finally:
            self._finished()

    def _finished(self):
        if self.state is GateState.PENDING:
            self._start()
        else:
            self.state = GateState.IDLE
            self._idle.set()

    async def wait_idle(self):
        """Wait until no pass is running or pending."""
        await self._idle.wait()


def _event_name(event):
    """chokidar-style name for a watchdog event, or None if it is not interesting."""
    if event.event_type == EVENT_TYPE_CREATED:
        return "addDir" if event.is_directory else "add"
    if event.event_type == EVENT_TYPE_MODIFIED:
        # a directory's mtime changes whenever its children do
        return None if event.is_directory else "change"
    if event.event_type == EVENT_TYPE_DELETED:
        return "unlinkDir" if event.is_directory else "unlink"
    if event.event_type == EVENT_TYPE_MOVED:
        return "move"
    return None


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, session, files=None):
        super().__init__()
        self.session = session
        self.files = files  # None: every path under the watched directory counts

    def on_any_event(self, event):
        self.session.handle_event(event, self.files)


class WatchSession:
    """Watches the source locations and runs ``run_pass`` through a RebuildGate."""

    def __init__(self, locations, run_pass, options, destination=None):
        self.locations = [loc for loc in locations if not is_url(loc) and not is_invalid_path(loc)]
        self.options = options
        self.destination = os.path.abspath(os.fspath(destination)) if destination else None
        self.gate = RebuildGate(run_pass)
        self.observer = None
        self._loop = None
        self._stopped = None

    def targets(self):
        """
        Directories to schedule, mapped to the files to filter on.

        Returns:
            dict of directory -> set of absolute file paths, or None when
            everything under the directory is watched.
        """
        targets = {}
        for location in self.locations:
            path = os.path.abspath(location)
            if os.path.isdir(path):
                targets[path] = None
                continue

            parent = os.path.dirname(path)
            if not os.path.isdir(parent):
                warn(f"Not watching {location}: directory {parent} does not exist")
                continue
            if parent in targets and targets[parent] is None:
                continue
            targets.setdefault(parent, set()).add(path)
        return targets

    def _is_ignored(self, path):
        if self.destination and path == self.destination:
            return True
        name = os.path.basename(path)
        return any(fnmatch.fnmatch(path, pattern) or fnmatch.fnmatch(name, pattern)
                   for pattern in self.options.ignored)

    def handle_event(self, event, files=None):
        """Filter one watchdog event and, if it matters, request a rebuild. Thread-safe."""
        name = _event_name(event)
        if name is None:
            return

        paths = [os.path.abspath(os.fsdecode(event.src_path))]
        if event.event_type == EVENT_TYPE_MOVED:
            paths.append(os.path.abspath(os.fsdecode(event.dest_path)))

        relevant = [p for p in paths
                    if (files is None or p in files) and not self._is_ignored(p)]
        if not relevant or self._loop is None:
            return

        self._loop.call_soon_threadsafe(self._on_change, name, relevant[0])

    def _on_change(self, name, path):
        debug_log(f"Change detected ({name} {os.path.basename(path)}). Starting bundling...")
        self.gate.trigger()

    def start(self):
        """Start watching. Must be called from the event loop that runs the passes."""
        self._loop = asyncio.get_running_loop()
        self._stopped = asyncio.Event()

        if self.options.use_polling:
            self.observer = PollingObserver(timeout=self.options.interval)
        else:
            self.observer = Observer()
        self.observer.daemon = not self.options.persistent

        for path, files in self.targets().items():
            recursive = files is None and self.options.recursive
            self.observer.schedule(_ChangeHandler(self, files), path, recursive=recursive)
        self.observer.start()

        debug_log(f"Watching {self.locations}")
        if not self.options.ignore_initial:
            self.gate.trigger()
        return self

    def stop(self):
        if self.observer is not None:
            self.observer.stop()
            self.observer.join()
            self.observer = None
        if self._stopped is not None:
            self._stopped.set()

    async def wait(self):
        """Block until stop() is called."""
        await self._stopped.wait()

"""Filesystem change notification for the development server.

:class:`Watcher` is the capability interface: ``start(root, callback)``
begins reporting changed paths under *root* and returns a
:class:`WatchHandle` whose :meth:`~WatchHandle.stop` ends the watch. The
shipped implementation, :class:`PollingWatcher`, snapshots file metadata on
a daemon thread; it needs no platform notification API and sees changes on
network and container mounts where native events are unreliable.

Callbacks receive a sorted list of POSIX paths relative to *root* and run
on the watcher thread.
A scan that fails with an :class:`OSError` (a directory that vanished or
lost its permissions) is reported once as a warning and retried on the next
tick, so live reload resumes when the tree is readable again.
"""

from __future__ import annotations

import os
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import Optional

from plugcraft.output import info, warning
from plugcraft.pipeline.tree import TreeFilter, relative_posix, walk_files

ChangeCallback = Callable[[list[str]], None]

Snapshot = dict[str, tuple[int, int]]


class WatchHandle:
    """A running watch; call :meth:`stop` to end it."""

    def __init__(self, stop_event: threading.Event, thread: Optional[threading.Thread] = None):
        self._stop_event = stop_event
        self._thread = thread

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the watcher to stop and wait for its thread to exit."""
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)


class Watcher(ABC):
    """Interface for reporting filesystem changes below a directory."""

    @abstractmethod
    def start(self, root: Path, callback: ChangeCallback) -> WatchHandle:
        """Begin watching *root*; *callback* receives changed relative paths."""
        ...


class PollingWatcher(Watcher):
    """Detect changes by comparing ``(mtime_ns, size)`` snapshots.

    Args:
        interval: Seconds between scans.
        tree_filter: Directories to skip (the build output,
            ``node_modules``, ``.git``).
    """

    def __init__(self, interval: float = 0.5, tree_filter: Optional[TreeFilter] = None):
        self.interval = interval
        self.tree_filter = tree_filter or TreeFilter()

    def snapshot(self, root: Path) -> Snapshot:
        """Return metadata for every non-excluded file under *root*."""
        state: Snapshot = {}
        for path in walk_files(root, self.tree_filter):
            try:
                st = os.stat(path)
            except FileNotFoundError:
                continue
            state[relative_posix(path, root)] = (st.st_mtime_ns, st.st_size)
        return state

    @staticmethod
    def diff(before: Snapshot, after: Snapshot) -> list[str]:
        """Return created, modified and deleted paths between two snapshots."""
        changed = {path for path, meta in after.items() if before.get(path) != meta}
        changed.update(path for path in before if path not in after)
        return sorted(changed)

    def start(self, root: Path, callback: ChangeCallback) -> WatchHandle:
        if not root.is_dir():
            raise NotADirectoryError(f"Cannot watch {root}: not a directory")
        stop_event = threading.Event()
        baseline = self.snapshot(root)

        def _run() -> None:
            previous = baseline
            failing = False
            while not stop_event.wait(self.interval):
                try:
                    current = self.snapshot(root)
                except OSError as exc:
                    if not failing:
                        warning(f"Watching {root} failed, retrying: {exc}")
                    failing = True
                    continue
                if failing:
                    info(f"Watching {root} again")
                    failing = False
                changes = self.diff(previous, current)
                previous = current
                if changes:
                    callback(changes)

        thread = threading.Thread(target=_run, name="plugcraft-watcher", daemon=True)
        thread.start()
        return WatchHandle(stop_event, thread)


def watch(
    root: str | Path,
    callback: ChangeCallback,
    *,
    exclude: Optional[TreeFilter] = None,
    interval: float = 0.5,
) -> WatchHandle:
    """Start the default watcher on *root* and return its handle.

    Raises:
        OSError: If the watch cannot be set up (e.g. *root* is not a
            directory). Callers treat this as "no live reload".
    """
    return PollingWatcher(interval=interval, tree_filter=exclude).start(Path(root), callback)

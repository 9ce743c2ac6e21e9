"""Development server lifecycle: bind, serve, watch, stop.

:func:`start` binds the listener, starts the filesystem watcher and begins
serving on a background thread, returning a :class:`DevServer` handle.
:meth:`DevServer.stop` shuts down in a fixed order: stop accepting
connections, wait for in-flight requests to finish, release the port, stop
the watcher.

Requests are handled one thread each (:class:`DevHTTPServer`), so a slow or
failing request never blocks the others.
"""

from __future__ import annotations

import errno
import threading
from http.server import ThreadingHTTPServer
from pathlib import Path
from typing import Optional

from plugcraft.exceptions import PlugcraftError, PortInUseError
from plugcraft.manifest import load_manifest
from plugcraft.models import ServeConfig
from plugcraft.output import debug, info, warning
from plugcraft.pipeline.tree import DEFAULT_OUTPUT_DIR, make_filter
from plugcraft.server.handler import make_handler
from plugcraft.server.state import ReloadState
from plugcraft.server.watcher import WatchHandle, watch

# errno values meaning "address already in use" (POSIX, Windows)
_ADDR_IN_USE = {errno.EADDRINUSE, 10048}

_MAX_LOGGED_CHANGES = 5


class DevHTTPServer(ThreadingHTTPServer):
    """Threaded HTTP server whose ``server_close`` waits for request threads."""

    daemon_threads = False
    block_on_close = True
    allow_reuse_port = False


class DevServer:
    """Handle for a running development server.

    Use :func:`start` to create one. The handle is a context manager; leaving
    the ``with`` block stops the server.
    """

    def __init__(
        self,
        project_root: Path,
        httpd: DevHTTPServer,
        state: ReloadState,
        watcher: Optional[WatchHandle] = None,
    ):
        self.project_root = project_root
        self.state = state
        self._httpd = httpd
        self._watcher = watcher
        self._stopped = threading.Event()
        self._stop_lock = threading.Lock()
        self._thread = threading.Thread(
            target=self._httpd.serve_forever,
            kwargs={"poll_interval": 0.2},
            name="plugcraft-devserver",
            daemon=True,
        )

    @property
    def host(self) -> str:
        return str(self._httpd.server_address[0])

    @property
    def port(self) -> int:
        return int(self._httpd.server_address[1])

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def live_reload(self) -> bool:
        return self._watcher is not None

    def _serve(self) -> None:
        self._thread.start()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the server is stopped; return ``True`` once it has."""
        return self._stopped.wait(timeout)

    def serve_forever(self) -> None:
        """Block the calling thread until :meth:`stop` is called."""
        while not self.wait(0.5):
            pass

    def stop(self) -> None:
        """Stop accepting, drain in-flight requests, release the port, stop watching.

        Safe to call more than once.
        """
        with self._stop_lock:
            if self._stopped.is_set():
                return
            if self._thread.is_alive():
                self._httpd.shutdown()
                self._thread.join()
            self._httpd.server_close()
            if self._watcher is not None:
                self._watcher.stop()
            self._stopped.set()
        debug("Development server stopped")

    def __enter__(self) -> DevServer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


def bind(host: str, port: int, handler: type) -> DevHTTPServer:
    """Bind a :class:`DevHTTPServer` to *host*:*port*.

    Raises:
        PortInUseError: If the address is already bound.
        PlugcraftError: For any other bind failure.
    """
    try:
        return DevHTTPServer((host, port), handler)
    except OSError as exc:
        if exc.errno in _ADDR_IN_USE:
            raise PortInUseError(host, port) from exc
        raise PlugcraftError(f"Cannot listen on {host}:{port}: {exc}") from exc


def start(
    project_root: str | Path,
    host: str,
    port: int,
    *,
    config: Optional[ServeConfig] = None,
    output_dir: Optional[str] = None,
) -> DevServer:
    """Start serving *project_root* on *host*:*port* (port 0 picks a free one).

    Args:
        project_root: Directory containing ``manifest.json``.
        host: Interface to bind.
        port: TCP port to bind.
        config: Polling, watch and live-reload settings.
        output_dir: Build output directory to ignore when watching
            (default ``dist``).

    Raises:
        MissingManifestError: If the project has no manifest.
        PortInUseError: If the port is already bound.
    """
    root = Path(project_root).resolve()
    config = config or ServeConfig()
    load_manifest(root)

    state = ReloadState()
    httpd = bind(host, port, make_handler(root, state, config))

    watcher: Optional[WatchHandle] = None
    if config.live_reload:
        tree_filter = make_filter(root, output_dir or DEFAULT_OUTPUT_DIR)

        def _on_change(paths: list[str]) -> None:
            state.mark_changed()
            for path in paths[:_MAX_LOGGED_CHANGES]:
                info(f"File changed: {path}")
            if len(paths) > _MAX_LOGGED_CHANGES:
                info(f"... and {len(paths) - _MAX_LOGGED_CHANGES} more")

        try:
            watcher = watch(root, _on_change, exclude=tree_filter, interval=config.watch_interval)
        except OSError as exc:
            warning(f"File watching unavailable ({exc}); serving without live reload")

    server = DevServer(root, httpd, state, watcher)
    server._serve()
    return server

"""Serve command -- run the development server until interrupted.

Implements ``plugcraft serve``. Ctrl-C shuts the server down gracefully:
the listener stops accepting, in-flight requests finish, the port is
released and the file watcher stops before the command exits with 0.
"""

from __future__ import annotations

import signal
import threading
from pathlib import Path
from typing import Optional

import typer

from plugcraft.commands import fail
from plugcraft.exceptions import PlugcraftError
from plugcraft.output import info, success


def serve_command(
    port: Optional[int] = typer.Option(
        None, "--port", "-p", help="Port to listen on (default: 3000)."
    ),
    host: Optional[str] = typer.Option(
        None, "--host", help="Interface to bind (default: localhost)."
    ),
    no_reload: bool = typer.Option(
        False, "--no-reload", help="Disable live reload."
    ),
) -> None:
    """Start a development server with live reload.

    Example::

        plugcraft serve
        plugcraft serve --port 8080 --host 0.0.0.0
    """
    from plugcraft.config import resolve_config
    from plugcraft.manifest import load_manifest
    from plugcraft.server import start

    root = Path.cwd()
    overrides = {
        "serve": {"port": port, "host": host, "live_reload": False if no_reload else None}
    }
    try:
        config = resolve_config(root, overrides)
        manifest = load_manifest(root)
        info(f"Starting development server for: {manifest.name}")
        server = start(
            root,
            config.serve.host,
            config.serve.port,
            config=config.serve,
            output_dir=config.build.output_dir,
        )
    except PlugcraftError as exc:
        fail(exc)

    # Ctrl-C must unwind into the graceful shutdown below, not the app-wide handler.
    previous = None
    if threading.current_thread() is threading.main_thread():
        previous = signal.signal(signal.SIGINT, signal.default_int_handler)

    success(f"Server running at: {server.url}")
    info("Press Ctrl+C to stop")
    if server.live_reload:
        info("Watching for file changes...")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        info("Shutting down server...")
    finally:
        server.stop()
        if previous is not None:
            signal.signal(signal.SIGINT, previous)
    success("Server stopped.")

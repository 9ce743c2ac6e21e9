"""Live-reloading development server for plugin projects.

:func:`start` serves a project directory over HTTP, injects a small polling
client into HTML responses and bumps a change counter whenever the
filesystem watcher sees an edit, so open pages reload themselves.

Example::

    from plugcraft.server import start

    with start(".", "localhost", 3000) as server:
        print(server.url)
        server.serve_forever()
"""

from plugcraft.server.devserver import DevServer, start
from plugcraft.server.state import ReloadState
from plugcraft.server.watcher import PollingWatcher, Watcher, WatchHandle, watch

__all__ = ["DevServer", "PollingWatcher", "ReloadState", "WatchHandle", "Watcher", "start", "watch"]

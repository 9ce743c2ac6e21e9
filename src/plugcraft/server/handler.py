"""HTTP request handling for the development server.

Each request is mapped to a file under the project root:

* ``/`` serves the manifest's entry file, re-read on every request so an
  edited ``entryPoint`` takes effect without a restart.
* Other paths are percent-decoded and normalised; anything that would leave
  the project root is answered with ``403`` before the filesystem is
  touched.
* A missing path falls back to ``<path>.html``; a directory falls back to
  its ``index.html``.

Connections that send nothing within :data:`REQUEST_TIMEOUT` are dropped
quietly, so an idle socket never keeps a request thread alive.

HTML responses get the live-reload client injected before the last
``</body>``. Everything else is sent byte-for-byte. ``/__reload_check``
answers the client's polling requests from the shared
:class:`~plugcraft.server.state.ReloadState`.
"""

from __future__ import annotations

import json
import os
import posixpath
import re
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler
from pathlib import Path
from typing import Any, Optional
from urllib.parse import parse_qs, unquote

from plugcraft.exceptions import ManifestError, PathTraversalError
from plugcraft.manifest import entry_point_is_safe, load_manifest
from plugcraft.models import ServeConfig
from plugcraft.output import debug, error, info, warning
from plugcraft.server.state import ReloadState

RELOAD_CHECK_PATH = "/__reload_check"
RELOAD_MARKER = "data-plugcraft-live-reload"
DEFAULT_ENTRY_POINT = "index.html"

# Seconds a connection may sit idle before its request thread gives up.
REQUEST_TIMEOUT = 5.0

MIME_TYPES: dict[str, str] = {
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
    ".mjs": "application/javascript",
    ".json": "application/json",
    ".map": "application/json",
    ".txt": "text/plain",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".eot": "application/vnd.ms-fontobject",
}
_TEXT_TYPES = frozenset(
    {
        "text/html",
        "text/css",
        "text/plain",
        "application/javascript",
        "application/json",
        "image/svg+xml",
    }
)
_HTML_SUFFIXES = (".html", ".htm")

_BODY_CLOSE = re.compile(r"</body\s*>", re.IGNORECASE)

_RELOAD_CLIENT = """\
<script {marker}>
(function () {{
  var t = {counter};
  setInterval(function () {{
    fetch('{path}?t=' + t, {{cache: 'no-store'}})
      .then(function (res) {{ return res.json(); }})
      .then(function (data) {{
        if (data.reload) {{ location.reload(); }}
        t = data.t;
      }})
      .catch(function () {{}});
  }}, {interval});
}})();
</script>
"""


def content_type_for(path: Path) -> str:
    """Return the ``Content-Type`` header value for *path*."""
    mime = MIME_TYPES.get(path.suffix.lower(), "application/octet-stream")
    if mime in _TEXT_TYPES:
        return f"{mime}; charset=utf-8"
    return mime


def reload_client(counter: int, poll_interval: float = 1.0) -> str:
    """Return the live-reload ``<script>`` fragment seeded with *counter*."""
    return _RELOAD_CLIENT.format(
        marker=RELOAD_MARKER,
        counter=counter,
        path=RELOAD_CHECK_PATH,
        interval=max(int(poll_interval * 1000), 100),
    )


def inject_reload_client(html: str, fragment: str) -> str:
    """Insert *fragment* before the last ``</body>``, or append it.

    Documents that already carry the live-reload marker are returned
    unchanged.
    """
    if RELOAD_MARKER in html:
        return html
    closings = list(_BODY_CLOSE.finditer(html))
    if not closings:
        return html + fragment
    position = closings[-1].start()
    return html[:position] + fragment + html[position:]


def parse_counter(query: str) -> int:
    """Return the ``t`` query parameter as an int, or 0 if absent or invalid."""
    values = parse_qs(query).get("t")
    if not values:
        return 0
    try:
        return int(values[0])
    except ValueError:
        return 0


def split_request_target(target: str) -> tuple[str, str]:
    """Split a request target into ``(path, query)``, dropping any fragment.

    The path is taken literally; a leading ``//`` is not a network location.
    """
    target = target.split("#", 1)[0]
    path, _, query = target.partition("?")
    return path, query


def entry_point_for(root: Path) -> str:
    """Read the entry file name from the manifest, falling back to ``index.html``."""
    try:
        entry = load_manifest(root).entry_point
    except ManifestError:
        return DEFAULT_ENTRY_POINT
    return entry if entry_point_is_safe(entry) else DEFAULT_ENTRY_POINT


def map_request_path(root: Path, request_path: str) -> Path:
    """Map a decoded URL path to a path under *root* without touching the filesystem.

    Raises:
        PathTraversalError: If the normalised path would leave *root*.
    """
    if request_path in ("", "/"):
        relative = entry_point_for(root)
    else:
        relative = request_path
    if "\x00" in relative:
        raise PathTraversalError(f"Invalid request path: {request_path!r}")
    depth = 0
    for part in relative.replace("\\", "/").split("/"):
        if part == "..":
            depth -= 1
            if depth < 0:
                raise PathTraversalError(f"Request path escapes project root: {request_path}")
        elif part not in ("", "."):
            depth += 1
    normalized = posixpath.normpath(relative.replace("\\", "/")).lstrip("/")
    target = os.path.normpath(os.path.join(str(root), normalized))
    if os.path.commonpath([str(root), target]) != str(root):
        raise PathTraversalError(f"Request path escapes project root: {request_path}")
    return Path(target)


def locate_file(candidate: Path) -> Optional[Path]:
    """Apply the ``.html`` and ``index.html`` fallbacks; ``None`` means 404."""
    if not candidate.exists():
        with_html = candidate.with_name(candidate.name + ".html")
        if with_html.is_file():
            return with_html
        return None
    if candidate.is_dir():
        index = candidate / DEFAULT_ENTRY_POINT
        return index if index.is_file() else None
    return candidate if candidate.is_file() else None


class DevRequestHandler(BaseHTTPRequestHandler):
    """Serve one project directory; bound to a project by :func:`make_handler`."""

    server_version = "plugcraft-dev"
    # Idle sockets (browser preconnects) must not hold up server_close.
    timeout = REQUEST_TIMEOUT

    root: Path
    state: ReloadState
    config: ServeConfig

    def do_GET(self) -> None:
        self._handle(send_body=True)

    def do_HEAD(self) -> None:
        self._handle(send_body=False)

    def _handle(self, send_body: bool) -> None:
        path, query = split_request_target(self.path)
        try:
            if path == RELOAD_CHECK_PATH:
                self._reload_check(query, send_body)
                return
            candidate = map_request_path(self.root, unquote(path))
            found = locate_file(candidate)
            if found is None:
                self._send_text(HTTPStatus.NOT_FOUND, "Not Found", send_body)
                return
            self._send_file(found, send_body)
        except PathTraversalError as exc:
            debug(str(exc))
            self._send_text(HTTPStatus.FORBIDDEN, "Forbidden", send_body)
        except (BrokenPipeError, ConnectionResetError):
            debug(f"Client disconnected: {self.path}")
        except Exception as exc:
            error(f"{self.command} {self.path}: {exc}")
            self._send_text(HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error", send_body)

    def _reload_check(self, query: str, send_body: bool) -> None:
        reload, counter = self.state.should_reload(parse_counter(query))
        body = json.dumps({"reload": reload, "t": counter}).encode("utf-8")
        self._send(HTTPStatus.OK, "application/json; charset=utf-8", body, send_body)

    def _send_file(self, path: Path, send_body: bool) -> None:
        content = path.read_bytes()
        if self.config.live_reload and path.suffix.lower() in _HTML_SUFFIXES:
            html = content.decode("utf-8", errors="surrogateescape")
            fragment = reload_client(self.state.counter, self.config.poll_interval)
            content = inject_reload_client(html, fragment).encode("utf-8", errors="surrogateescape")
        self._send(HTTPStatus.OK, content_type_for(path), content, send_body)

    def _send_text(self, status: HTTPStatus, text: str, send_body: bool) -> None:
        self._send(status, "text/plain; charset=utf-8", text.encode("utf-8"), send_body)

    def _send(self, status: HTTPStatus, content_type: str, body: bytes, send_body: bool) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Cache-Control", "no-store")
        self.end_headers()
        if send_body:
            self.wfile.write(body)

    def log_request(self, code: Any = "-", size: Any = "-") -> None:
        if split_request_target(self.path)[0] == RELOAD_CHECK_PATH:
            return
        status = int(code) if isinstance(code, int) else code
        message = f"{self.command} {self.path} -> {status}"
        if status == HTTPStatus.NOT_FOUND:
            warning(message)
        elif status == HTTPStatus.INTERNAL_SERVER_ERROR:
            error(message)
        else:
            info(message)

    def log_message(self, format: str, *args: Any) -> None:
        debug(format % args)


def make_handler(
    root: Path, state: ReloadState, config: Optional[ServeConfig] = None
) -> type[DevRequestHandler]:
    """Return a handler class bound to *root*, *state* and *config*."""
    return type(
        "BoundDevRequestHandler",
        (DevRequestHandler,),
        {"root": root, "state": state, "config": config or ServeConfig()},
    )

"""Shared test fixtures for plugcraft.

Provides reusable fixtures for building plugin projects on disk, isolating
configuration, managing output state, and running CLI commands. These
fixtures are automatically discovered by pytest and available to all test
modules without explicit imports.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest

from plugcraft.output import OutputFormat, OutputManager, reset_output, set_output


SAMPLE_MANIFEST: dict[str, Any] = {
    "name": "Demo Plugin",
    "id": "demo",
    "version": "1.0.0",
    "entryPoint": "index.html",
    "minHostVersion": "1.0.0",
    "permissions": ["orders"],
}

SAMPLE_HTML = """<!DOCTYPE html>
<html>
<head>
  <title>Demo</title>
  <link rel="stylesheet" href="styles.css">
</head>
<body>
  <!-- greeting -->
  <h1>Hello</h1>
  <script src="lib/sdk.js"></script>
  <script src="main.js"></script>
</body>
</html>
"""

SAMPLE_CSS = """/* base styles */
body {
  color: red;
  margin: 0;
}
"""

SAMPLE_JS = """// entry
function main() {
  console.log("ready");
}

main();
"""

SAMPLE_LIB_JS = "var SDK = {};\n"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Plugin project fixtures
# ---------------------------------------------------------------------------


def write_files(root: Path, files: dict[str, str | bytes]) -> None:
    """Write ``{relative path: content}`` under *root*, creating directories."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")


@pytest.fixture
def make_project(tmp_path: Path) -> Callable[..., Path]:
    """Factory creating a plugin project under ``tmp_path``.

    Call with ``manifest=`` to override manifest fields (``None`` omits the
    manifest entirely) and ``files=`` to add or replace project files.
    """

    def _make(
        name: str = "project",
        manifest: dict[str, Any] | None = SAMPLE_MANIFEST,
        files: dict[str, str | bytes] | None = None,
    ) -> Path:
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        defaults: dict[str, str | bytes] = {
            "index.html": SAMPLE_HTML,
            "styles.css": SAMPLE_CSS,
            "main.js": SAMPLE_JS,
            "lib/sdk.js": SAMPLE_LIB_JS,
            "assets/logo.png": b"\x89PNG\r\n\x1a\n\x00\x01\x02",
        }
        defaults.update(files or {})
        write_files(root, defaults)
        if manifest is not None:
            (root / "manifest.json").write_text(json.dumps(manifest, indent=2), encoding="utf-8")
        return root

    return _make


@pytest.fixture
def plugin_project(make_project: Callable[..., Path]) -> Path:
    """A small complete plugin project."""
    return make_project()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path so
    that tests never touch real user config, forces the XDG code path,
    clears all PLUGCRAFT_* environment variables and changes the working
    directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("plugcraft.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "PLUGCRAFT_HOST",
        "PLUGCRAFT_PORT",
        "PLUGCRAFT_OUTPUT_DIR",
        "PLUGCRAFT_MINIFY",
        "SOURCE_DATE_EPOCH",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()

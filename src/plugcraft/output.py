"""Output formatting with strict stdout/stderr discipline.

Follows `clig.dev <https://clig.dev/>`_ conventions:

* **stdout** carries results only: the JSON or ``key<TAB>value`` summary of
  a build, bundle, package or validation run. Scripts parse this stream.
* **stderr** carries every diagnostic, including dev-server request lines
  and file-change notices.
* Rich formatting is used when stdout is an interactive terminal; plain
  text otherwise. ``NO_COLOR``, ``TERM=dumb`` and ``--no-color`` disable
  colour.

:class:`OutputManager` is created once per invocation in
:func:`~plugcraft.app.main_callback` and installed with :func:`set_output`.
Library code never receives it as an argument; it calls the module-level
helpers (:func:`info`, :func:`warning`, :func:`debug`, ...), which use the
installed instance or a default one.

Diagnostic text is escaped before it reaches Rich, so file names and request
paths containing square brackets print literally.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax


class OutputFormat(str, Enum):
    """Supported stdout formats.

    ``AUTO`` resolves to ``RICH`` on an interactive, colour-capable terminal
    and to ``PLAIN`` otherwise. ``--json`` and ``--plain`` force a format.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


# level -> (plain prefix, rich template, suppressed by --quiet)
_LEVELS: dict[str, tuple[str, str, bool]] = {
    "info": ("", "{}", True),
    "success": ("", "[green]{}[/green]", True),
    "suggest": ("→ ", "[dim]→ {}[/dim]", True),
    "warning": ("Warning: ", "[yellow]Warning:[/yellow] {}", False),
    "error": ("Error: ", "[bold red]Error:[/bold red] {}", False),
    "debug": ("[debug] ", "[dim]\\[debug] {}[/dim]", False),
}


class OutputManager:
    """Routes results to stdout and diagnostics to stderr.

    Args:
        format: Desired stdout format; ``AUTO`` is resolved at construction.
        no_color: Disable colour and Rich markup.
        quiet: Suppress info, success and suggestion messages.
        verbose: Show debug messages.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        if format == OutputFormat.AUTO:
            interactive = _is_tty() and not self._no_color
            format = OutputFormat.RICH if interactive else OutputFormat.PLAIN
        self._format = format

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=(self._format == OutputFormat.RICH),
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # ------------------------------------------------------------------ #
    # Results (stdout)
    # ------------------------------------------------------------------ #

    def format_response(self, data: Any) -> None:
        """Render a result payload to stdout in the active format.

        JSON mode prints indented JSON. Plain mode prints one
        ``key<TAB>value`` line per top-level key, with nested values as
        compact JSON. Rich mode prints highlighted JSON.
        """
        if self._format == OutputFormat.PLAIN:
            self._print_plain(data)
            return
        text = json.dumps(data, indent=2, ensure_ascii=False, default=str)
        if self._format == OutputFormat.JSON:
            self.print_data(text)
        else:
            self._stdout.print(Syntax(text, "json", theme="monokai", word_wrap=True))

    def print_data(self, text: str) -> None:
        """Print raw text to stdout, bypassing Rich."""
        print(text, file=sys.stdout, flush=True)

    def _print_plain(self, data: Any) -> None:
        if isinstance(data, dict):
            for key, value in data.items():
                if isinstance(value, (dict, list)):
                    value = json.dumps(value, ensure_ascii=False, default=str)
                self.print_data(f"{key}\t{value}")
        elif isinstance(data, list):
            for item in data:
                self.print_data(str(item))
        else:
            self.print_data(str(data))

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def _emit(self, level: str, message: str) -> None:
        prefix, template, quietable = _LEVELS[level]
        if quietable and self._quiet:
            return
        if level == "debug" and not self._verbose:
            return
        if self._no_color:
            print(f"{prefix}{message}", file=sys.stderr, flush=True)
        else:
            self._stderr.print(template.format(escape(message)))

    def info(self, message: str) -> None:
        """Status message. Suppressed by ``--quiet``."""
        self._emit("info", message)

    def success(self, message: str) -> None:
        """Completion message in green. Suppressed by ``--quiet``."""
        self._emit("success", message)

    def suggest(self, message: str) -> None:
        """Next-step hint. Suppressed by ``--quiet``."""
        self._emit("suggest", message)

    def warning(self, message: str) -> None:
        """Non-fatal problem. Always shown."""
        self._emit("warning", message)

    def error(self, message: str) -> None:
        """Fatal problem. Always shown."""
        self._emit("error", message)

    def debug(self, message: str) -> None:
        """Detail shown only with ``--verbose``."""
        self._emit("debug", message)


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set (any value) or ``TERM=dumb``."""
    return os.environ.get("NO_COLOR") is not None or os.environ.get("TERM") == "dumb"


def format_size(size: int) -> str:
    """Format a byte count as ``B``, ``KB`` or ``MB`` with two decimals."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.2f} KB"
    return f"{size / (1024 * 1024):.2f} MB"


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one lazily."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Drop the installed instance (used between tests)."""
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)

"""Typer application factory and CLI entry point for plugcraft.

This module wires together the top-level Typer application and registers the
built-in commands (``create``, ``serve``, ``build``, ``package``,
``validate``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers, registers commands, and
invokes the Typer app. Unhandled exceptions are written to a crash log under
the data directory.

See Also:
    :mod:`plugcraft.config`: Configuration resolution.
    :mod:`plugcraft.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import platform
import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any

import typer

from plugcraft import __version__
from plugcraft.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="plugcraft",
    help="Create, serve, build and package web plugins.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"plugcraft {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Skip confirmations."
    ),
) -> None:
    """Root callback executed before every command.

    Initialises the global :class:`~plugcraft.output.OutputManager` from
    CLI flags and stores shared options in the Typer context so that
    commands can read them via ``ctx.obj``.

    Args:
        ctx: Typer invocation context.
        version: If ``True``, print the version string and exit.
        json_output: Force JSON output format.
        plain_output: Force plain-text output format.
        no_color: Disable all colour and Rich markup.
        quiet: Suppress non-essential diagnostic output.
        verbose: Enable debug-level diagnostic output.
        force: Skip interactive confirmations.
    """
    from plugcraft.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(
        format=fmt,
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
    )
    set_output(output)

    ctx.ensure_object(dict)
    ctx.obj["force"] = force
    ctx.obj["verbose"] = verbose


def register_commands() -> None:
    """Attach the built-in commands to :data:`app` (idempotent)."""
    if getattr(app, "_plugcraft_registered", False):
        return

    from plugcraft.commands.build import build_command
    from plugcraft.commands.config import config_app
    from plugcraft.commands.create import create_command
    from plugcraft.commands.package import package_command
    from plugcraft.commands.serve import serve_command
    from plugcraft.commands.validate import validate_command

    app.command("create")(create_command)
    app.command("serve")(serve_command)
    app.command("build")(build_command)
    app.command("package")(package_command)
    app.command("validate")(validate_command)
    app.add_typer(config_app, name="config", help="Configuration management.")
    app._plugcraft_registered = True  # type: ignore[attr-defined]


def _setup_signal_handlers() -> None:
    """Make Ctrl-C outside ``serve`` print ``Cancelled.`` and exit 130."""

    def _on_sigint(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _on_sigint)


def _write_crash_log(exc: BaseException) -> Path:
    """Save the traceback of *exc* under ``<data dir>/logs`` and return the file."""
    from plugcraft.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    details = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    log_path.write_text(
        f"plugcraft {__version__} (python {platform.python_version()})\n"
        f"argv: {' '.join(sys.argv)}\n\n{details}",
        encoding="utf-8",
    )
    return log_path


def main() -> None:
    """Console-script entry point.

    A :class:`~plugcraft.exceptions.PlugcraftError` that escapes a command is
    printed and turned into its exit code. Anything else is a bug: the
    traceback goes to a crash log and the process exits with
    :data:`~plugcraft.exit_codes.EXIT_GENERIC_FAILURE`.
    """
    from plugcraft.exceptions import PlugcraftError
    from plugcraft.output import error

    _setup_signal_handlers()
    register_commands()
    try:
        app()
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except PlugcraftError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)

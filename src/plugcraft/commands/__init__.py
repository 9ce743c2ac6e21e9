"""Built-in CLI commands for plugcraft.

This package groups the Typer command modules that form the CLI's
top-level command tree:

* :mod:`~plugcraft.commands.create` -- scaffold a new plugin project.
* :mod:`~plugcraft.commands.serve` -- run the live-reloading dev server.
* :mod:`~plugcraft.commands.build` -- build (or bundle) the project.
* :mod:`~plugcraft.commands.package` -- create a distributable archive.
* :mod:`~plugcraft.commands.validate` -- check ``manifest.json``.
* :mod:`~plugcraft.commands.config` -- view and modify global settings.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``config``) or a plain callback function
registered directly on the root app (for single commands like ``build``).
"""

from __future__ import annotations

from typing import NoReturn

import typer

from plugcraft.exceptions import PlugcraftError
from plugcraft.output import error


def fail(exc: PlugcraftError) -> NoReturn:
    """Print *exc* to stderr and exit with its exit code."""
    error(str(exc))
    raise typer.Exit(code=exc.exit_code)

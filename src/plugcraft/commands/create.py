"""Create command -- scaffold a new plugin project.

Implements ``plugcraft create``. The project directory is named after the
slug of the plugin name; an existing directory is only replaced after
confirmation (or with the global ``--force`` flag).
"""

from __future__ import annotations

from pathlib import Path

import typer

from plugcraft.commands import fail
from plugcraft.exceptions import PlugcraftError
from plugcraft.output import info, success, suggest


def create_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Plugin display name."),
    template: str = typer.Option(
        "basic", "--template", "-t", help="Project template: basic, payment or report."
    ),
    directory: Path = typer.Option(
        Path("."), "--directory", "-d", help="Parent directory for the project."
    ),
) -> None:
    """Create a new plugin project.

    Example::

        plugcraft create "Loyalty Points"
        plugcraft create "Card Terminal" --template payment --directory ~/plugins
    """
    from plugcraft.models import slugify
    from plugcraft.scaffold import create_project

    force = ctx.obj.get("force", False) if ctx.obj else False
    target = directory.resolve() / slugify(name)

    info(f"Creating plugin: {name}")
    info(f"Template: {template}")
    info(f"Location: {target}")

    overwrite = force
    if target.exists() and slugify(name) and not force:
        overwrite = typer.confirm(f"Directory {target.name} already exists. Overwrite?")
        if not overwrite:
            info("Cancelled.")
            raise typer.Exit()

    try:
        project = create_project(name, template, directory, overwrite=overwrite)
    except PlugcraftError as exc:
        fail(exc)

    success(f'Plugin "{name}" created.')
    suggest(f"cd {project.name}")
    suggest("Edit manifest.json with your plugin details")
    suggest("Run: plugcraft serve")
    suggest("When ready: plugcraft build && plugcraft package")

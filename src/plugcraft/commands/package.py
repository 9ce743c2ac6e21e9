"""Package command -- write the distributable archive and its metadata file."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from plugcraft.commands import fail
from plugcraft.exceptions import PackagingValidationError, PlugcraftError
from plugcraft.output import format_response, format_size, info, success, suggest


def package_command(
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Archive file name (default: <id>-<version>.webplugin)."
    ),
) -> None:
    """Package the plugin in the current directory for distribution.

    Archives the build output when it exists, otherwise the project's
    source files.

    Example::

        plugcraft build && plugcraft package
        plugcraft package --output release/my-plugin.webplugin
    """
    from plugcraft.packager import package

    info("Packaging plugin for distribution...")
    try:
        result = package(Path.cwd(), output=output)
    except PackagingValidationError as exc:
        if "manifest.json" in exc.missing:
            suggest("Are you in a plugin directory?")
        fail(exc)
    except PlugcraftError as exc:
        fail(exc)

    success(f"Package created: {result.archive} ({format_size(result.size)})")
    info(f"Package info: {result.info_file}")
    suggest("Install the package in the host application's plugin manager")
    format_response(result.model_dump(mode="json", by_alias=True))

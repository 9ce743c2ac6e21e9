"""Validate command -- check ``manifest.json`` against the manifest rules."""

from __future__ import annotations

from pathlib import Path

import typer

from plugcraft.commands import fail
from plugcraft.exceptions import PlugcraftError
from plugcraft.exit_codes import EXIT_MANIFEST_ERROR
from plugcraft.output import error, format_response, success, warning


def validate_command() -> None:
    """Validate the plugin manifest in the current directory.

    Errors make the command exit with code 3; warnings (unknown fields or
    permissions) are reported but do not fail it.

    Example::

        plugcraft validate
        plugcraft --json validate
    """
    from plugcraft.manifest import manifest_path, read_manifest_data, validate_manifest

    try:
        data = read_manifest_data(manifest_path(Path.cwd()))
    except PlugcraftError as exc:
        fail(exc)

    report = validate_manifest(data)
    for message in report.warnings:
        warning(message)
    for message in report.errors:
        error(message)

    format_response(
        {"valid": report.valid, "errors": report.errors, "warnings": report.warnings}
    )
    if not report.valid:
        raise typer.Exit(code=EXIT_MANIFEST_ERROR)
    success("manifest.json is valid.")

"""Build command -- produce the deployable output tree or a single-file bundle.

Implements ``plugcraft build``. The output directory and minification
default to the resolved configuration (``plugcraft.json``, environment,
global config); flags override both.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from plugcraft.commands import fail
from plugcraft.exceptions import PlugcraftError
from plugcraft.output import format_response, format_size, info, success, suggest


def build_command(
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Output directory (default: dist)."
    ),
    minify: Optional[bool] = typer.Option(
        None, "--minify/--no-minify", help="Minify HTML, CSS and JavaScript."
    ),
    bundle_mode: bool = typer.Option(
        False, "--bundle", help="Inline all CSS and JS into a single HTML file."
    ),
) -> None:
    """Build the plugin in the current directory for production.

    Example::

        plugcraft build
        plugcraft build --minify --output release
        plugcraft build --bundle
    """
    from plugcraft.config import resolve_config
    from plugcraft.pipeline import build, bundle

    root = Path.cwd()
    try:
        config = resolve_config(root, {"build": {"output_dir": output, "minify": minify}})
        output_dir = config.build.output_dir
        if bundle_mode:
            info("Bundling plugin into a single HTML file...")
            result = bundle(root, output_dir, minify=config.build.minify)
            success(f"Bundle created: {result.output_file} ({format_size(result.size)})")
        else:
            info("Building plugin for production...")
            result = build(root, output_dir, minify=config.build.minify)
            success(f"Build complete: {result.output_dir} ({format_size(result.total_size)})")
            suggest("Package it: plugcraft package")
    except PlugcraftError as exc:
        fail(exc)

    format_response(result.model_dump(mode="json"))

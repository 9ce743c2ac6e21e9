"""Build pipeline -- transform a plugin project into a deployable output tree.

:func:`build` always starts from an empty output directory, so a build never
merges with a previous one and an interrupted run is repaired by the next.
The steps run in a fixed order:

1. Load the manifest before touching the output directory.
2. Clear and recreate the output directory.
3. Write the entry HTML (a missing entry file is a warning, not an error).
4. Write every other stylesheet and script outside ``lib/`` and ``assets/``.
5. Copy ``assets/`` byte-for-byte.
6. Copy ``lib/``, minifying ``.js``/``.css`` members when requested.
7. Write the augmented manifest (``buildDate`` + ``buildMode``).

Without ``minify`` every file is copied byte-for-byte. With it, text files
are decoded as UTF-8, passed through the matching
:class:`~plugcraft.pipeline.minify.Minifier`, and written back as UTF-8.
"""

from __future__ import annotations

import os
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from plugcraft.config import write_json
from plugcraft.exceptions import BuildError, ManifestError
from plugcraft.manifest import MANIFEST_FILENAME, entry_point_is_safe, load_manifest
from plugcraft.models import BuildResult
from plugcraft.output import debug, info, warning
from plugcraft.pipeline.minify import Minifier, get_minifier, minifier_for_path
from plugcraft.pipeline.tree import (
    ASSETS_DIR,
    LIB_DIR,
    directory_size,
    is_under,
    make_filter,
    relative_posix,
    resolve_output_dir,
    walk_files,
)

BUILD_MODE = "production"


def build_timestamp() -> str:
    """Return the ISO-8601 UTC build time, honouring ``SOURCE_DATE_EPOCH``."""
    epoch = os.environ.get("SOURCE_DATE_EPOCH")
    if epoch:
        try:
            moment = datetime.fromtimestamp(int(epoch), tz=timezone.utc)
        except ValueError as exc:
            raise BuildError(f"Invalid SOURCE_DATE_EPOCH: {epoch!r}") from exc
    else:
        moment = datetime.now(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def process_file(source: Path, dest: Path, minifier: Optional[Minifier]) -> None:
    """Write *source* to *dest*, through *minifier* when one is given."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    if minifier is None:
        shutil.copyfile(source, dest)
        return
    try:
        text = source.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise BuildError(f"Cannot minify {source}: not valid UTF-8") from exc
    with open(dest, "w", encoding="utf-8", newline="") as f:
        f.write(minifier.transform(text))


def build(
    project_root: str | Path,
    output_dir: str | Path | None = None,
    *,
    minify: bool = False,
) -> BuildResult:
    """Build *project_root* into *output_dir* (default ``dist``).

    Args:
        project_root: Directory containing ``manifest.json``.
        output_dir: Output directory; relative paths are resolved against
            *project_root*.
        minify: Apply the HTML/CSS/JS minifiers.

    Returns:
        A :class:`~plugcraft.models.BuildResult` summary.

    Raises:
        MissingManifestError: If the project has no manifest.
        ManifestError: If the manifest's entry point escapes the project.
        BuildError: If a step fails; the message names the step.
    """
    root = Path(project_root).resolve()
    out = resolve_output_dir(root, output_dir)
    tree_filter = make_filter(root, out)
    result = BuildResult(output_dir=str(out), minified=minify)

    manifest = load_manifest(root)
    info(f"Plugin: {manifest.name} v{manifest.version}")
    if not entry_point_is_safe(manifest.entry_point):
        raise ManifestError(
            f"entryPoint {manifest.entry_point!r} must be a relative path inside the project"
        )

    step = "Cleaning output directory"
    try:
        debug(f"{step}: {out}")
        if out.exists():
            shutil.rmtree(out)
        out.mkdir(parents=True)

        step = "Processing HTML"
        entry_rel = Path(manifest.entry_point).as_posix()
        entry = root / entry_rel
        if entry.is_file():
            process_file(entry, out / entry_rel, get_minifier("html") if minify else None)
            result.entry_point = entry_rel
            debug(f"{step}: {entry_rel}")
        else:
            message = f"Entry file {entry_rel} not found; continuing without it"
            warning(message)
            result.warnings.append(message)

        step = "Processing stylesheets and scripts"
        for path in walk_files(root, tree_filter):
            rel = relative_posix(path, root)
            if is_under(rel, LIB_DIR) or is_under(rel, ASSETS_DIR):
                continue
            suffix = path.suffix.lower()
            if suffix == ".css":
                result.stylesheets += 1
            elif suffix == ".js":
                result.scripts += 1
            else:
                continue
            process_file(path, out / rel, minifier_for_path(path) if minify else None)
        debug(f"{step}: {result.stylesheets} stylesheet(s), {result.scripts} script(s)")

        step = "Copying assets"
        assets = root / ASSETS_DIR
        if assets.is_dir():
            for path in walk_files(assets, tree_filter):
                process_file(path, out / relative_posix(path, root), None)
                result.asset_files += 1
        debug(f"{step}: {result.asset_files} file(s)")

        step = "Copying libraries"
        lib = root / LIB_DIR
        if lib.is_dir():
            for path in walk_files(lib, tree_filter):
                minifier = minifier_for_path(path) if minify else None
                if minifier is not None and minifier.kind not in ("js", "css"):
                    minifier = None
                process_file(path, out / relative_posix(path, root), minifier)
                result.library_files += 1
        debug(f"{step}: {result.library_files} file(s)")

        step = "Creating production manifest"
        production = manifest.to_dict()
        production["buildDate"] = build_timestamp()
        production["buildMode"] = BUILD_MODE
        write_json(out / MANIFEST_FILENAME, production)

        result.total_size = directory_size(out)
    except OSError as exc:
        raise BuildError(f"{step} failed: {exc}") from exc

    return result

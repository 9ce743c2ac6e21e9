"""Packager -- assemble a plugin into a distributable ``.webplugin`` archive.

The archive is a ZIP file (deflate, level 9) named ``<id>-<version><ext>``
in the project root, accompanied by a sidecar ``<id>-<version>.json`` with
:class:`~plugcraft.models.PackageInfo` metadata.

Source selection:

* **Build output** -- when the build directory exists its whole tree is
  archived, paths relative to the build directory.
* **Project root** -- otherwise a fixed allow-list is archived (entry file,
  manifest, ``styles.css``, ``main.js``, companion scripts, ``assets/`` and
  ``lib/``), each only if present.

Required files are checked before anything is written, so a failed
validation never leaves a partial archive behind. The archive itself is
written to a temporary file in the target directory and renamed into place
only after it has been checked for content.
"""

from __future__ import annotations

import os
import tempfile
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from plugcraft.config import resolve_config, write_json
from plugcraft.exceptions import (
    EmptyArchiveError,
    ManifestError,
    PackagingError,
    PackagingValidationError,
)
from plugcraft.manifest import (
    MANIFEST_FILENAME,
    entry_point_is_safe,
    load_manifest,
    read_manifest_data,
)
from plugcraft.models import VERSION_PATTERN, PackageInfo, PackageResult
from plugcraft.output import debug, info, warning
from plugcraft.pipeline.tree import (
    ASSETS_DIR,
    LIB_DIR,
    make_filter,
    relative_posix,
    resolve_output_dir,
    walk_files,
)

DEFAULT_EXTENSION = ".webplugin"
DEFAULT_ENTRY_POINT = "index.html"
COMPRESSION_LEVEL = 9

# Extensions stripped when deriving the sidecar name.
ARCHIVE_SUFFIXES = (DEFAULT_EXTENSION, ".zip")

# Top-level files copied from the project root when there is no build output.
SOURCE_FILES = (
    "styles.css",
    "main.js",
    "payment-handler.js",
    "report-generator.js",
)
SOURCE_DIRS = (ASSETS_DIR, LIB_DIR)


def _entry_point(project_root: Path) -> str:
    """Best-effort entry file name, read without failing on a broken manifest."""
    try:
        data = read_manifest_data(project_root / MANIFEST_FILENAME)
    except ManifestError:
        return DEFAULT_ENTRY_POINT
    entry = data.get("entryPoint")
    if isinstance(entry, str) and entry_point_is_safe(entry):
        return Path(entry).as_posix()
    return DEFAULT_ENTRY_POINT


def find_missing(source: Path, project_root: Path, entry_point: str) -> list[str]:
    """Return required files absent from *source*.

    When packaging from build output the project root is consulted as a
    secondary location, matching how the host resolves the manifest.
    """
    missing = []
    for name in (entry_point, MANIFEST_FILENAME):
        if (source / name).is_file():
            continue
        if source != project_root and (project_root / name).is_file():
            continue
        missing.append(name)
    return missing


def _dotted(extension: str) -> str:
    return extension if extension.startswith(".") else f".{extension}"


def archive_name(package_id: str, version: str, extension: str = DEFAULT_EXTENSION) -> str:
    """Return the default archive file name, e.g. ``demo-1.0.0.webplugin``."""
    return f"{package_id}-{version}{_dotted(extension)}"


def sidecar_path(archive: Path, extension: str = DEFAULT_EXTENSION) -> Path:
    """Return the metadata file that accompanies *archive*.

    Only a recognised archive extension is replaced by ``.json``; any other
    name gets ``.json`` appended, so ``demo-1.2.3`` maps to ``demo-1.2.3.json``.
    """
    name = archive.name
    for suffix in dict.fromkeys((_dotted(extension), *ARCHIVE_SUFFIXES)):
        if name.lower().endswith(suffix.lower()) and len(name) > len(suffix):
            return archive.with_name(name[: -len(suffix)] + ".json")
    return archive.with_name(f"{name}.json")


def collect_files(
    source: Path, project_root: Path, entry_point: str, from_build: bool
) -> list[tuple[Path, str]]:
    """Return ``(absolute path, archive name)`` pairs in a stable order."""
    if from_build:
        return [(path, relative_posix(path, source)) for path in walk_files(source)]

    tree_filter = make_filter(project_root)
    members: list[tuple[Path, str]] = []
    seen: set[str] = set()
    for name in (entry_point, MANIFEST_FILENAME, *SOURCE_FILES):
        path = project_root / name
        if path.is_file() and name not in seen:
            members.append((path, name))
            seen.add(name)
    for directory in SOURCE_DIRS:
        for path in walk_files(project_root / directory, tree_filter):
            members.append((path, relative_posix(path, project_root)))
    return members


def _write_archive(target: Path, members: list[tuple[Path, str]]) -> Path:
    """Write *members* to a temporary ZIP next to *target* and return its path."""
    fd, tmp_name = tempfile.mkstemp(
        dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
    )
    os.close(fd)
    tmp_path = Path(tmp_name)
    try:
        with zipfile.ZipFile(
            tmp_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=COMPRESSION_LEVEL
        ) as archive:
            for path, name in members:
                archive.write(path, name)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    return tmp_path


def package(
    project_root: str | Path,
    *,
    output: Optional[str | Path] = None,
    build_dir: Optional[str | Path] = None,
    extension: Optional[str] = None,
) -> PackageResult:
    """Package *project_root* into an archive plus sidecar metadata.

    Args:
        project_root: Directory containing ``manifest.json``.
        output: Archive path; relative paths are resolved against
            *project_root*. Defaults to ``<id>-<version><extension>``.
        build_dir: Build output directory to archive (default: the
            configured build output directory).
        extension: Archive extension (default: the configured one).

    Returns:
        A :class:`~plugcraft.models.PackageResult` summary.

    Raises:
        PackagingValidationError: If the entry file or manifest is missing.
        EmptyArchiveError: If the archive would be empty.
        PackagingError: If the archive cannot be written.
    """
    root = Path(project_root).resolve()
    config = resolve_config(root)
    source = resolve_output_dir(root, build_dir or config.build.output_dir)
    extension = extension or config.package.extension

    from_build = source.is_dir()
    if not from_build:
        warning(f"Build directory {source.name} not found; packaging from source files")
        info("Run `plugcraft build` first for an optimized package.")
        source = root

    entry_point = _entry_point(root)
    missing = find_missing(source, root, entry_point)
    if missing:
        raise PackagingValidationError(missing)
    debug("Plugin files validated")

    manifest_file = source / MANIFEST_FILENAME
    manifest = load_manifest(manifest_file.parent if manifest_file.is_file() else root)
    info(f"Plugin: {manifest.name} v{manifest.version}")

    package_id = manifest.package_id
    version = manifest.version or "1.0.0"
    if output:
        target = Path(output)
    else:
        if not VERSION_PATTERN.match(version):
            raise PackagingError(
                f"Version {version!r} cannot be used in an archive name; "
                "expected MAJOR.MINOR.PATCH (run `plugcraft validate`)"
            )
        target = Path(archive_name(package_id, version, extension))
    if not target.is_absolute():
        target = root / target
    target = target.resolve()
    if not output and target.parent != root:
        raise PackagingError(f"Archive {target} would be written outside {root}")
    info_file = sidecar_path(target, extension)
    if info_file == target:
        raise PackagingError(
            f"Archive {target.name} and its metadata file would share a name; "
            "choose a different extension"
        )
    if from_build and (target == source or source in target.parents):
        raise PackagingError(f"Archive {target} cannot be written inside the build directory")

    members = [
        (path, name)
        for path, name in collect_files(source, root, entry_point, from_build)
        if path.resolve() not in (target, info_file)
    ]
    if not members:
        raise EmptyArchiveError("No files to package")

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        for stale in (target, info_file):
            if stale.exists():
                debug(f"Removing existing {stale.name}")
                stale.unlink()

        tmp_path = _write_archive(target, members)
        if tmp_path.stat().st_size == 0:
            tmp_path.unlink()
            raise EmptyArchiveError(f"Package {target.name} was written empty")
        os.replace(tmp_path, target)

        size = target.stat().st_size
        package_info = PackageInfo(
            name=manifest.name,
            id=package_id,
            version=version,
            package_file=target.name,
            package_size=size,
            created_at=datetime.now(timezone.utc).isoformat(),
            min_host_version=manifest.min_host_version or config.package.min_host_version,
        )
        write_json(info_file, package_info.model_dump(mode="json", by_alias=True))

        if not target.is_file() or target.stat().st_size == 0:
            raise EmptyArchiveError(f"Package {target.name} is missing or empty")
        with zipfile.ZipFile(target) as archive:
            entries = archive.namelist()
    except (OSError, zipfile.BadZipFile) as exc:
        raise PackagingError(f"Writing package failed: {exc}") from exc

    return PackageResult(
        archive=str(target),
        info_file=str(info_file),
        size=size,
        from_build=from_build,
        entries=entries,
        info=package_info,
    )

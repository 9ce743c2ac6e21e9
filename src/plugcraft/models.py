"""Canonical Pydantic models shared across all plugcraft modules.

This is the single source of truth for data shapes in the project. The models
fall into three groups:

**Plugin models** -- read from or written to a plugin project:
    :class:`Manifest`, :class:`PackageInfo`, and :class:`ValidationReport`.

**Result models** -- returned by the pipeline operations and rendered by the
CLI (``--json`` dumps them verbatim):
    :class:`BuildResult`, :class:`BundleResult`, and :class:`PackageResult`.

**Configuration models** -- serialised as JSON in the user's config directory
or in a project-local ``plugcraft.json``:
    :class:`ServeConfig`, :class:`BuildConfig`, :class:`PackageConfig`, and
    :class:`GlobalConfig`.

On-disk plugin files use camelCase keys, so the plugin models declare
aliases and ``populate_by_name=True``; Python code uses snake_case.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

ID_PATTERN = re.compile(r"^[a-z0-9_-]+$")
VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+$")


def slugify(text: str) -> str:
    """Convert *text* to a lowercase, archive-name-safe slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower().strip())
    return slug.strip("-")


# --- Plugin models ---


class Manifest(BaseModel):
    """A plugin descriptor loaded from ``manifest.json``.

    Only the fields plugcraft acts on are declared. Every other key found on
    disk (``settings``, ``hooks``, vendor extensions, ...) is preserved in
    ``model_extra`` so that :meth:`to_dict` reproduces the original document.
    Rule checks (patterns, lengths, enums) live in
    :func:`~plugcraft.manifest.validate_manifest`; this model only enforces
    types so that a slightly imperfect manifest can still be built.

    Example::

        Manifest.model_validate({
            "name": "Demo",
            "id": "demo",
            "version": "1.0.0",
            "entryPoint": "index.html",
        })
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = Field(default="", description="Display name of the plugin")
    id: Optional[str] = Field(
        default=None, description="Slug used in output file names"
    )
    version: str = Field(default="1.0.0", description="Semantic version")
    entry_point: str = Field(
        default="index.html",
        alias="entryPoint",
        description="Relative path to the root HTML file",
    )
    min_host_version: Optional[str] = Field(
        default=None,
        alias="minHostVersion",
        description="Minimum host application version",
    )
    permissions: list[str] = Field(default_factory=list)

    @property
    def package_id(self) -> str:
        """The identifier to use in file names.

        ``id`` when it is already safe, otherwise a slug of ``id`` or
        ``name``, falling back to ``"plugin"``.
        """
        if self.id and ID_PATTERN.match(self.id):
            return self.id
        return slugify(self.id or self.name) or "plugin"

    def to_dict(self) -> dict[str, Any]:
        """Return the manifest as it appeared on disk (aliases, unset fields omitted)."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class PackageInfo(BaseModel):
    """Sidecar metadata written next to a package archive."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    id: str
    version: str
    package_file: str = Field(alias="packageFile")
    package_size: int = Field(alias="packageSize")
    created_at: str = Field(alias="createdAt")
    min_host_version: str = Field(default="1.0.0", alias="minHostVersion")


class ValidationReport(BaseModel):
    """Outcome of :func:`~plugcraft.manifest.validate_manifest`."""

    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


# --- Result models ---


class BuildResult(BaseModel):
    """Summary of a completed ``build`` run."""

    output_dir: str
    entry_point: Optional[str] = Field(
        default=None, description="Entry file written, or None when it was missing"
    )
    stylesheets: int = 0
    scripts: int = 0
    library_files: int = 0
    asset_files: int = 0
    total_size: int = Field(default=0, description="Bytes in the output tree")
    minified: bool = False
    warnings: list[str] = Field(default_factory=list)


class BundleResult(BaseModel):
    """Summary of a completed single-file ``bundle`` run."""

    output_file: str
    size: int
    stylesheets: int = 0
    library_scripts: int = 0
    scripts: int = 0
    minified: bool = False
    unmatched_tags: list[str] = Field(
        default_factory=list,
        description="Reference-like tags the bundler could not confidently remove",
    )


class PackageResult(BaseModel):
    """Summary of a completed ``package`` run."""

    archive: str
    info_file: str
    size: int
    from_build: bool
    entries: list[str] = Field(default_factory=list)
    info: PackageInfo


# --- Configuration models ---


class ServeConfig(BaseModel):
    """Development server defaults."""

    host: str = Field(default="localhost", description="Interface to bind")
    port: int = Field(default=3000, description="TCP port to bind")
    poll_interval: float = Field(
        default=1.0, description="Seconds between browser reload checks"
    )
    watch_interval: float = Field(
        default=0.5, description="Seconds between filesystem scans"
    )
    live_reload: bool = Field(default=True, description="Inject the reload client")


class BuildConfig(BaseModel):
    """Build defaults."""

    output_dir: str = Field(default="dist", description="Build output directory")
    minify: bool = Field(default=False, description="Minify HTML/CSS/JS")


class PackageConfig(BaseModel):
    """Packaging defaults."""

    extension: str = Field(
        default=".webplugin", description="Archive file extension"
    )
    min_host_version: str = Field(
        default="1.0.0",
        description="minHostVersion written when the manifest declares none",
    )


class GlobalConfig(BaseModel):
    """Top-level configuration persisted as ``config.json``.

    Loaded by :func:`~plugcraft.config.load_global_config` and merged with
    the project file and environment by
    :func:`~plugcraft.config.resolve_config`.
    """

    serve: ServeConfig = Field(default_factory=ServeConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)
    package: PackageConfig = Field(default_factory=PackageConfig)

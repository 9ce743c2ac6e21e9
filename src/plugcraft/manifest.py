"""Manifest accessor -- load, validate, save and generate ``manifest.json``.

Every plugcraft command starts here. :func:`load_manifest` is deliberately
lenient (it only rejects files that are not JSON objects or carry wrongly
typed core fields) so that ``build`` and ``serve`` keep working while a
manifest is being edited; :func:`validate_manifest` applies the full rule
table and is what ``plugcraft validate`` reports.
"""

from __future__ import annotations

import json
import posixpath
import re
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from plugcraft.config import write_json
from plugcraft.exceptions import ManifestError, MissingManifestError
from plugcraft.models import ID_PATTERN, VERSION_PATTERN, Manifest, ValidationReport

MANIFEST_FILENAME = "manifest.json"

REQUIRED_FIELDS = ("name", "id", "version", "entryPoint")

CATEGORIES = ("payment", "report", "integration", "utility", "other")

_PERMISSIONS: dict[str, str] = {
    "orders": "Access and manage orders",
    "products": "Access products and inventory data",
    "customers": "Access customer information",
    "payments": "Process payments and refunds",
    "reports": "Generate and view reports",
    "settings": "Modify host settings",
    "staff": "Access staff information",
    "printer": "Use the receipt printer",
    "cashDrawer": "Open and control cash drawer",
    "notifications": "Show notifications and alerts",
    "storage": "Store data locally",
    "network": "Make external network requests",
}

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# field -> (expected type, pattern, min length, max length)
_RULES: dict[str, tuple[type, re.Pattern[str] | None, int | None, int | None]] = {
    "name": (str, None, 1, 100),
    "id": (str, ID_PATTERN, None, None),
    "version": (str, VERSION_PATTERN, None, None),
    "description": (str, None, None, 500),
    "author": (str, None, None, None),
    "email": (str, _EMAIL_PATTERN, None, None),
    "homepage": (str, None, None, None),
    "repository": (str, None, None, None),
    "license": (str, None, None, None),
    "minHostVersion": (str, VERSION_PATTERN, None, None),
    "entryPoint": (str, None, None, None),
    "icon": (str, None, None, None),
    "category": (str, None, None, None),
    "template": (str, None, None, None),
    "permissions": (list, None, None, None),
    "settings": (list, None, None, None),
    "hooks": (dict, None, None, None),
    "shortcuts": (list, None, None, None),
}


def manifest_path(project_root: str | Path) -> Path:
    """Return the path of ``manifest.json`` inside *project_root*."""
    return Path(project_root) / MANIFEST_FILENAME


def is_plugin_project(project_root: str | Path) -> bool:
    """Return ``True`` when *project_root* contains a manifest."""
    return manifest_path(project_root).is_file()


def read_manifest_data(path: Path) -> dict[str, Any]:
    """Parse a manifest file into a plain dict.

    Raises:
        MissingManifestError: If *path* does not exist.
        ManifestError: If the file is not valid JSON or not a JSON object.
    """
    if not path.is_file():
        raise MissingManifestError(str(path))
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ManifestError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestError(f"{path} must contain a JSON object")
    return data


def load_manifest(project_root: str | Path) -> Manifest:
    """Load ``manifest.json`` from *project_root*.

    Raises:
        MissingManifestError: If the project has no manifest.
        ManifestError: If the manifest is malformed.
    """
    return load_manifest_file(manifest_path(project_root))


def load_manifest_file(path: Path) -> Manifest:
    """Load a manifest from an explicit file path (e.g. a build output copy)."""
    data = read_manifest_data(path)
    try:
        return Manifest.model_validate(data)
    except ValidationError as exc:
        raise ManifestError(f"Invalid manifest {path}: {exc}") from exc


def save_manifest(manifest: Manifest | dict[str, Any], project_root: str | Path) -> Path:
    """Atomically write *manifest* to ``<project_root>/manifest.json``."""
    data = manifest.to_dict() if isinstance(manifest, Manifest) else manifest
    path = manifest_path(project_root)
    write_json(path, data)
    return path


def entry_point_is_safe(entry_point: str) -> bool:
    """Return ``True`` when *entry_point* is a relative path that stays inside the root."""
    if not entry_point or entry_point.startswith(("/", "\\")) or ":" in entry_point:
        return False
    normalized = posixpath.normpath(entry_point.replace("\\", "/"))
    return normalized != ".." and not normalized.startswith("../")


def validate_manifest(data: dict[str, Any]) -> ValidationReport:
    """Check a raw manifest dict against the manifest rule table.

    Errors make the manifest invalid; warnings (unknown fields, unknown
    permissions) do not.
    """
    report = ValidationReport()

    for field in REQUIRED_FIELDS:
        if not data.get(field):
            report.errors.append(f"Missing required field: {field}")

    for key, value in data.items():
        rule = _RULES.get(key)
        if rule is None:
            report.warnings.append(f"Unknown field: {key}")
            continue

        expected, pattern, min_len, max_len = rule
        if not isinstance(value, expected):
            report.errors.append(f"{key} must be {_type_name(expected)}")
            continue

        if isinstance(value, str):
            if pattern is not None and not pattern.match(value):
                report.errors.append(f"{key} has invalid format")
            if min_len is not None and len(value) < min_len:
                report.errors.append(f"{key} must be at least {min_len} characters")
            if max_len is not None and len(value) > max_len:
                report.errors.append(f"{key} must be at most {max_len} characters")

    category = data.get("category")
    if isinstance(category, str) and category not in CATEGORIES:
        report.errors.append(f"category must be one of: {', '.join(CATEGORIES)}")

    entry_point = data.get("entryPoint")
    if isinstance(entry_point, str) and entry_point and not entry_point_is_safe(entry_point):
        report.errors.append("entryPoint must be a relative path inside the project")

    permissions = data.get("permissions")
    if isinstance(permissions, list):
        for permission in permissions:
            if permission not in _PERMISSIONS:
                report.warnings.append(f"Unknown permission: {permission}")

    return report


def _type_name(expected: type) -> str:
    return {str: "a string", list: "an array", dict: "an object"}[expected]


def generate_manifest(**overrides: Any) -> dict[str, Any]:
    """Return a default manifest dict, with camelCase *overrides* applied."""
    manifest: dict[str, Any] = {
        "name": "My Plugin",
        "id": "my-plugin",
        "version": "1.0.0",
        "description": "",
        "author": "",
        "homepage": "",
        "license": "MIT",
        "minHostVersion": "1.0.0",
        "entryPoint": "index.html",
        "icon": "assets/icons/plugin-icon.png",
        "category": "other",
        "permissions": [],
        "settings": [],
        "hooks": {},
        "shortcuts": [],
    }
    manifest.update(overrides)
    return manifest


def permission_descriptions() -> dict[str, str]:
    """Return a copy of the known permission names and their descriptions."""
    return dict(_PERMISSIONS)

"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for plugcraft:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.plugcraft/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Global config** -- A single :class:`~plugcraft.models.GlobalConfig`
  JSON file storing user-wide defaults (dev server port, build output
  directory, archive extension).
* **Project config** -- An optional ``plugcraft.json`` next to the plugin's
  ``manifest.json`` with the same shape, overriding the global file.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project config, and global config into the final
  effective configuration.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`), which the manifest accessor and the packager reuse
for ``manifest.json`` and package sidecar files.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from plugcraft.exceptions import ConfigError
from plugcraft.models import GlobalConfig

_APP_NAME = "plugcraft"
_CONFIG_FILENAME = "config.json"
PROJECT_CONFIG_FILENAME = "plugcraft.json"

# Environment variable -> (section, key)
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "PLUGCRAFT_HOST": ("serve", "host"),
    "PLUGCRAFT_PORT": ("serve", "port"),
    "PLUGCRAFT_OUTPUT_DIR": ("build", "output_dir"),
    "PLUGCRAFT_MINIFY": ("build", "minify"),
}


# --- Directories ---

# kind -> (XDG variable, default under $HOME, sub-directory on other platforms)
_XDG_DIRS: dict[str, tuple[str, tuple[str, ...], str]] = {
    "config": ("XDG_CONFIG_HOME", (".config",), ""),
    "data": ("XDG_DATA_HOME", (".local", "share"), "logs"),
}


def _is_xdg_platform() -> bool:
    """Linux and the BSDs follow the XDG base directory layout."""
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(kind: str) -> Path:
    env_var, home_segments, fallback_sub = _XDG_DIRS[kind]
    if _is_xdg_platform():
        base = Path(os.environ.get(env_var) or Path.home().joinpath(*home_segments))
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
        if fallback_sub:
            path = path / fallback_sub
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Return (and create) the directory holding ``config.json``.

    ``$XDG_CONFIG_HOME/plugcraft`` on Linux/BSD (default
    ``~/.config/plugcraft``), ``~/.plugcraft`` elsewhere.
    """
    return _app_dir("config")


def get_data_dir() -> Path:
    """Return (and create) the directory for crash logs.

    ``$XDG_DATA_HOME/plugcraft`` on Linux/BSD (default
    ``~/.local/share/plugcraft``), ``~/.plugcraft/logs`` elsewhere.
    """
    return _app_dir("data")


# --- Atomic file writes ---


def atomic_write(path: Path, data: str) -> None:
    """Replace *path* with *data* so readers never see a partial file.

    The text goes to a temporary file in the same directory, is flushed to
    disk, and is then renamed over *path* with ``os.replace``. The temporary
    file is removed if anything fails, including ``KeyboardInterrupt``.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
        encoding="utf-8",
        newline="",
    ) as tmp:
        tmp_path = Path(tmp.name)
        try:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        except BaseException:
            tmp.close()
            tmp_path.unlink(missing_ok=True)
            raise
    try:
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def write_json(path: Path, data: Any) -> None:
    """Atomically write *data* as 2-space indented JSON with a trailing newline."""
    atomic_write(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")


# --- Global config ---


def _global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~plugcraft.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    write_json(_global_config_path(), config.model_dump(mode="json"))


# --- Project-local config ---


def load_project_config(project_root: Path) -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``<project_root>/plugcraft.json``.

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    path = Path(project_root) / PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


# --- Precedence resolution ---


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *override* into a copy of *base*."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _env_layer() -> dict[str, Any]:
    """Collect ``PLUGCRAFT_*`` overrides as a nested config dict."""
    layer: dict[str, Any] = {}
    for var, (section, key) in _ENV_OVERRIDES.items():
        value = os.environ.get(var)
        if value:
            layer.setdefault(section, {})[key] = value
    return layer


def resolve_config(
    project_root: Optional[Path] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> GlobalConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags (``overrides``, e.g. ``{"serve": {"port": 8080}}``;
           ``None`` values are ignored)
        2. Environment variables (``PLUGCRAFT_HOST``, ``PLUGCRAFT_PORT``,
           ``PLUGCRAFT_OUTPUT_DIR``, ``PLUGCRAFT_MINIFY``)
        3. Project config (``<project_root>/plugcraft.json``)
        4. User config (``~/.config/plugcraft/config.json``)
        5. Defaults

    Raises:
        ConfigError: If any layer is malformed or the merged result fails
            validation (e.g. a non-numeric ``PLUGCRAFT_PORT``).
    """
    data = load_global_config().model_dump(mode="json")

    if project_root is not None:
        project = load_project_config(project_root)
        if project:
            data = _merge(data, project)

    data = _merge(data, _env_layer())

    if overrides:
        cli_layer = {
            section: {k: v for k, v in values.items() if v is not None}
            for section, values in overrides.items()
        }
        data = _merge(data, cli_layer)

    try:
        return GlobalConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc

"""``plugcraft config``: inspect and edit user-wide defaults.

The global file lives in the plugcraft config directory and holds default
dev-server host and port, build output directory, minification and archive
extension (:class:`~plugcraft.models.GlobalConfig`). ``show`` prints the
merged view for the current directory, so a ``plugcraft.json`` or a
``PLUGCRAFT_*`` variable that overrides a global value is reflected there.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer

from plugcraft.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the effective configuration for the current directory.

    Prints the config directory path (and the project config file when one
    exists) followed by the merged configuration: global file, project
    file and environment variables.

    Example::

        plugcraft config show
        plugcraft --json config show
    """
    from plugcraft.config import PROJECT_CONFIG_FILENAME, get_config_dir, resolve_config
    from plugcraft.exceptions import ConfigError

    info(f"Config directory: {get_config_dir()}")
    project_file = Path.cwd() / PROJECT_CONFIG_FILENAME
    if project_file.is_file():
        info(f"Project config: {project_file}")

    try:
        config = resolve_config(Path.cwd())
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    format_response(config.model_dump(mode="json"))


_TRUTHY = frozenset({"true", "1", "yes", "on"})


def _assign(data: dict[str, Any], key: str, raw: str) -> Any:
    """Store *raw* at dotted *key* inside *data*, typed like the old value.

    Returns the stored value.

    Raises:
        InvalidUsageError: If *key* does not name a scalar setting or *raw*
            does not parse as the setting's number type.
    """
    from plugcraft.exceptions import InvalidUsageError

    *sections, field = key.split(".")
    section = data
    for name in sections:
        section = section.get(name)
        if not isinstance(section, dict):
            raise InvalidUsageError(f"Invalid config key: {key}")
    if field not in section or isinstance(section[field], dict):
        raise InvalidUsageError(f"Unknown config key: {key}")

    current = section[field]
    if isinstance(current, bool):
        section[field] = raw.lower() in _TRUTHY
    elif isinstance(current, (int, float)):
        try:
            section[field] = type(current)(raw)
        except ValueError:
            raise InvalidUsageError(
                f"Expected {type(current).__name__} for {key}, got: {raw}"
            ) from None
    else:
        section[field] = raw
    return section[field]


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Dotted setting name, e.g. 'serve.port'."),
    value: str = typer.Argument(help="New value."),
) -> None:
    """Change one global setting.

    The value takes the type of the setting it replaces (``true``/``yes``/
    ``on``/``1`` for booleans) and the whole file is re-validated before it
    is saved. Bad keys and values exit with code 2.

    Example::

        plugcraft config set serve.port 8080
        plugcraft config set build.minify true
        plugcraft config set package.extension .zip
    """
    from plugcraft.config import load_global_config, save_global_config
    from plugcraft.exceptions import PlugcraftError
    from plugcraft.exit_codes import EXIT_INVALID_USAGE
    from plugcraft.models import GlobalConfig

    try:
        data = load_global_config().model_dump(mode="json")
        stored = _assign(data, key, value)
        updated = GlobalConfig.model_validate(data)
    except PlugcraftError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    except ValueError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_global_config(updated)
    success(f"Set {key} = {stored}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Overwrite the global file with defaults, after a prompt unless ``--force``."""
    from plugcraft.config import save_global_config
    from plugcraft.models import GlobalConfig

    if not (ctx.obj or {}).get("force", False):
        if not typer.confirm("Reset all config to defaults?"):
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")

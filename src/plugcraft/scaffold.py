"""Project scaffolding for ``plugcraft create``.

Renders a new plugin project from the Jinja2 templates shipped in
``plugcraft/templates/``. Three templates exist:

* ``basic`` -- entry page, stylesheet and script.
* ``payment`` -- adds ``payment-handler.js`` and a payment form.
* ``report`` -- adds ``report-generator.js`` and a report view.

Every project gets ``lib/host-sdk.js`` (the bridge stub the host replaces
with its native channel), empty ``assets/images`` and ``assets/icons``
directories, a ``manifest.json`` and a ``README.md``.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from plugcraft.exceptions import InvalidUsageError
from plugcraft.manifest import generate_manifest, save_manifest
from plugcraft.models import slugify
from plugcraft.pipeline.tree import ASSETS_DIR, LIB_DIR

TEMPLATE_DIR = Path(__file__).parent / "templates"
"""Path to the Jinja2 template directory (``plugcraft/templates/``)."""

TEMPLATES: dict[str, str] = {
    "basic": "A simple plugin with basic structure",
    "payment": "Plugin template for payment integration",
    "report": "Plugin template for custom reports",
}

_CATEGORIES = {"basic": "other", "payment": "payment", "report": "report"}

# output path -> template name, shared by every template
_COMMON_FILES = {
    "index.html": "index.html.j2",
    "styles.css": "styles.css.j2",
    "main.js": "main.js.j2",
    f"{LIB_DIR}/host-sdk.js": "host-sdk.js.j2",
    "README.md": "README.md.j2",
}
_EXTRA_FILES = {
    "payment": {"payment-handler.js": "payment-handler.js.j2"},
    "report": {"report-generator.js": "report-generator.js.j2"},
}


def _create_jinja_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(enabled_extensions=("html.j2",), default=False),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def project_files(template: str) -> dict[str, str]:
    """Return ``{relative output path: template name}`` for *template*."""
    return {**_COMMON_FILES, **_EXTRA_FILES.get(template, {})}


def create_project(
    name: str,
    template: str = "basic",
    directory: str | Path = ".",
    *,
    overwrite: bool = False,
) -> Path:
    """Create a new plugin project named *name* inside *directory*.

    The project directory is the slug of *name* (``"My Plugin"`` becomes
    ``my-plugin``), which is also the manifest ``id``.

    Args:
        name: Display name of the plugin.
        template: One of :data:`TEMPLATES`.
        directory: Parent directory for the new project.
        overwrite: Replace an existing project directory instead of failing.

    Returns:
        Path to the created project directory.

    Raises:
        InvalidUsageError: If the name is empty, the template unknown, or
            the target exists and *overwrite* is false.
    """
    plugin_id = slugify(name)
    if not name.strip() or not plugin_id:
        raise InvalidUsageError("Plugin name must contain at least one letter or digit")
    if template not in TEMPLATES:
        raise InvalidUsageError(
            f"Unknown template {template!r}; choose one of: {', '.join(TEMPLATES)}"
        )

    target = Path(directory).resolve() / plugin_id
    if target.exists():
        if not overwrite:
            raise InvalidUsageError(
                f"Directory {target} already exists; use --force to overwrite it"
            )
        if target.is_dir():
            shutil.rmtree(target)
        else:
            target.unlink()

    for sub in (f"{ASSETS_DIR}/images", f"{ASSETS_DIR}/icons", LIB_DIR):
        (target / sub).mkdir(parents=True, exist_ok=True)

    description = f"{name} plugin"
    manifest = generate_manifest(
        name=name,
        id=plugin_id,
        description=description,
        category=_CATEGORIES[template],
        template=template,
    )
    save_manifest(manifest, target)

    env = _create_jinja_env()
    context = {
        "name": name,
        "plugin_id": plugin_id,
        "template": template,
        "description": description,
    }
    for rel_path, template_name in project_files(template).items():
        rendered = env.get_template(template_name).render(**context)
        (target / rel_path).write_text(rendered, encoding="utf-8")

    return target

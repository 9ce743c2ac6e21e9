"""plugcraft -- build, serve and package self-contained web-asset plugins.

A plugin is a plain HTML/CSS/JS tree described by a ``manifest.json`` and
loaded by an embedding host (typically a WebView). plugcraft covers the whole
authoring loop around such a tree:

Typical workflow::

    plugcraft create "Loyalty Points" --template basic
    plugcraft serve                      # live-reloading dev server
    plugcraft build --minify             # dist/ with transformed assets
    plugcraft build --bundle --minify    # dist/<id>.html, everything inlined
    plugcraft package                    # <id>-<version>.webplugin + sidecar

Modules:
    app: Typer application factory and CLI entry point.
    models: Pydantic models shared across the entire package.
    manifest: Load, validate, save and generate plugin manifests.
    config: XDG-aware configuration with precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    pipeline: Minifiers, tree traversal, build and bundle.
    packager: Distributable archive assembly.
    server: Live-reloading development server.
    scaffold: New-project generation.
"""

__version__ = "1.0.0"

"""Single-file bundler -- inline every stylesheet and script into the entry HTML.

The bundle is meant to be loaded directly by a host WebView without any
other files. External ``<link rel="stylesheet">`` and ``<script src>`` tags
are removed and replaced with exactly one ``<style>`` block (before
``</head>``) and one ``<script>`` block (before ``</body>``). Library
scripts from ``lib/`` always come first so application code can rely on
them being defined.

Tag removal is conservative: a tag must be self-contained and its ``rel`` /
``src`` attribute quoted the usual way. Anything that still looks like an
external reference after removal is reported in
:attr:`~plugcraft.models.BundleResult.unmatched_tags` and printed as a
warning, because the bundled document would otherwise load it twice (or
fail to load it at all).

Inline ``<style>`` and ``<script>`` blocks already present in the entry HTML
are left where they are, next to the generated ones. The bundle then holds
more than one block of that kind, and a warning says how many were kept.
"""

from __future__ import annotations

import re
from pathlib import Path

from plugcraft.exceptions import BuildError, ManifestError, MissingEntryPointError
from plugcraft.manifest import entry_point_is_safe, load_manifest
from plugcraft.models import BundleResult
from plugcraft.output import debug, info, warning
from plugcraft.pipeline.minify import get_minifier
from plugcraft.pipeline.tree import (
    LIB_DIR,
    TreeFilter,
    files_with_suffix,
    is_under,
    make_filter,
    relative_posix,
    resolve_output_dir,
)

_STYLESHEET_LINK = re.compile(
    r"""<link\b[^>]*\brel\s*=\s*(["']?)stylesheet\1[^>]*>""", re.IGNORECASE
)
_EXTERNAL_SCRIPT = re.compile(
    r"""<script\b[^>]*\bsrc\s*=\s*(["'])[^"']*\1[^>]*>\s*</script\s*>""", re.IGNORECASE
)

_ANY_LINK = re.compile(r"<link\b[^>]*>?", re.IGNORECASE)
_ANY_SCRIPT_OPEN = re.compile(r"<script\b[^>]*>?", re.IGNORECASE)
_SRC_ATTRIBUTE = re.compile(r"\bsrc\s*=", re.IGNORECASE)
_STYLE_OPEN = re.compile(r"<style\b[^>]*>", re.IGNORECASE)

_HEAD_CLOSE = re.compile(r"</head\s*>", re.IGNORECASE)
_BODY_OPEN = re.compile(r"<body\b", re.IGNORECASE)
_BODY_CLOSE = re.compile(r"</body\s*>", re.IGNORECASE)

_STYLE_END = re.compile(r"</(style)", re.IGNORECASE)
_SCRIPT_END = re.compile(r"</(script)", re.IGNORECASE)


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise BuildError(f"Reading source files failed: {path} is not valid UTF-8") from exc


def _concat(paths: list[Path], root: Path) -> str:
    """Join file contents, each prefixed by a comment naming its relative path."""
    return "".join(f"/* {relative_posix(p, root)} */\n{_read(p)}\n\n" for p in paths)


def collect_stylesheets(root: Path, tree_filter: TreeFilter) -> list[Path]:
    """Every ``.css`` file in traversal order."""
    return files_with_suffix(root, (".css",), tree_filter)


def collect_scripts(root: Path, tree_filter: TreeFilter) -> tuple[list[Path], list[Path]]:
    """Return ``(library_scripts, application_scripts)`` in traversal order."""
    library = files_with_suffix(root / LIB_DIR, (".js",), tree_filter)
    application = [
        p
        for p in files_with_suffix(root, (".js",), tree_filter)
        if not is_under(relative_posix(p, root), LIB_DIR)
    ]
    return library, application


def strip_external_references(html: str) -> tuple[str, list[str]]:
    """Remove external stylesheet and script tags from *html*.

    Returns:
        ``(html_without_tags, unmatched)`` where *unmatched* lists the
        reference-like tags the conservative patterns did not remove.
    """
    html = _STYLESHEET_LINK.sub("", html)
    html = _EXTERNAL_SCRIPT.sub("", html)

    unmatched: list[str] = []
    for match in _ANY_LINK.finditer(html):
        if "stylesheet" in match.group(0).lower():
            unmatched.append(_snippet(match.group(0)))
    for match in _ANY_SCRIPT_OPEN.finditer(html):
        if _SRC_ATTRIBUTE.search(match.group(0)):
            unmatched.append(_snippet(match.group(0)))
    return html, unmatched


def _snippet(tag: str, limit: int = 80) -> str:
    tag = " ".join(tag.split())
    return tag if len(tag) <= limit else tag[: limit - 3] + "..."


def count_inline_blocks(html: str) -> tuple[int, int]:
    """Return ``(style_blocks, script_blocks)`` already inline in *html*."""
    styles = len(_STYLE_OPEN.findall(html))
    scripts = sum(
        1 for match in _ANY_SCRIPT_OPEN.finditer(html) if not _SRC_ATTRIBUTE.search(match.group(0))
    )
    return styles, scripts


def inline_assets(html: str, css: str, js: str) -> str:
    """Insert one ``<style>`` and one ``<script>`` block into *html*.

    The style block goes before the first ``</head>`` (or before ``<body``,
    or at the very start when the document has neither); the script block
    goes before the last ``</body>`` (or at the very end). Closing-tag
    sequences inside *css* and *js* are escaped so the inlined text cannot
    end its own block early.
    """
    css = _STYLE_END.sub(r"<\\/\1", css)
    js = _SCRIPT_END.sub(r"<\\/\1", js)
    style_block = f"<style>\n{css}\n</style>\n"
    script_block = f"<script>\n{js}\n</script>\n"

    anchor = _HEAD_CLOSE.search(html) or _BODY_OPEN.search(html)
    position = anchor.start() if anchor else 0
    html = html[:position] + style_block + html[position:]

    closings = list(_BODY_CLOSE.finditer(html))
    position = closings[-1].start() if closings else len(html)
    return html[:position] + script_block + html[position:]


def bundle(
    project_root: str | Path,
    output_dir: str | Path | None = None,
    *,
    minify: bool = False,
) -> BundleResult:
    """Write ``<output_dir>/<manifest id>.html`` with all CSS and JS inlined.

    Args:
        project_root: Directory containing ``manifest.json``.
        output_dir: Destination directory (default ``dist``), created if
            needed but never cleared.
        minify: Minify the concatenated CSS and JS, then the final HTML.

    Raises:
        MissingManifestError: If the project has no manifest.
        MissingEntryPointError: If the entry HTML file does not exist.
        BuildError: If a source file cannot be read or the output written.
    """
    root = Path(project_root).resolve()
    out = resolve_output_dir(root, output_dir)
    tree_filter = make_filter(root, out)

    manifest = load_manifest(root)
    info(f"Plugin: {manifest.name} v{manifest.version} ({manifest.package_id})")
    if not entry_point_is_safe(manifest.entry_point):
        raise ManifestError(
            f"entryPoint {manifest.entry_point!r} must be a relative path inside the project"
        )
    entry = root / manifest.entry_point
    if not entry.is_file():
        raise MissingEntryPointError(manifest.entry_point)

    html = _read(entry)
    stylesheets = collect_stylesheets(root, tree_filter)
    library, application = collect_scripts(root, tree_filter)
    debug(
        f"Read {len(stylesheets)} stylesheet(s), {len(library)} library script(s), "
        f"{len(application)} script(s)"
    )

    css = _concat(stylesheets, root)
    js = _concat(library, root) + _concat(application, root)
    if minify:
        css = get_minifier("css").transform(css)
        js = get_minifier("js").transform(js)

    html, unmatched = strip_external_references(html)
    for tag in unmatched:
        warning(f"Could not safely remove reference, left in bundle: {tag}")
    styles, scripts = count_inline_blocks(html)
    if styles or scripts:
        warning(
            f"{manifest.entry_point} already contains {styles} inline <style> and "
            f"{scripts} inline <script> block(s); they are kept alongside the bundled ones"
        )

    bundled = inline_assets(html, css, js)
    if minify:
        bundled = get_minifier("html").transform(bundled)

    target = out / f"{manifest.package_id}.html"
    try:
        out.mkdir(parents=True, exist_ok=True)
        with open(target, "w", encoding="utf-8", newline="") as f:
            f.write(bundled)
        size = target.stat().st_size
    except OSError as exc:
        raise BuildError(f"Writing bundle failed: {exc}") from exc

    return BundleResult(
        output_file=str(target),
        size=size,
        stylesheets=len(stylesheets),
        library_scripts=len(library),
        scripts=len(application),
        minified=minify,
        unmatched_tags=unmatched,
    )

"""Project-tree traversal shared by build, bundle, package and the watcher.

A plugin project is walked depth-first with directory entries sorted by
name, so every consumer sees the same deterministic "traversal order".
Excluded directories (the build output, ``node_modules``, ``.git``) are
pruned at every level, never just at the root.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from plugcraft.exceptions import InvalidUsageError

LIB_DIR = "lib"
ASSETS_DIR = "assets"
DEFAULT_OUTPUT_DIR = "dist"
ALWAYS_EXCLUDED = frozenset({"node_modules", ".git"})


@dataclass(frozen=True)
class TreeFilter:
    """Directory names and absolute paths to prune while walking a project.

    ``names`` match at any depth; ``paths`` prune one exact directory (the
    resolved build output, which may have been given as a nested path).
    """

    names: frozenset[str] = ALWAYS_EXCLUDED | {DEFAULT_OUTPUT_DIR}
    paths: frozenset[Path] = field(default_factory=frozenset)

    def excludes(self, directory: Path) -> bool:
        return directory.name in self.names or directory in self.paths

    def excludes_relative(self, rel_path: str) -> bool:
        """Return ``True`` if any directory component of *rel_path* is excluded by name."""
        parts = PurePosixPath(rel_path).parts[:-1]
        return any(part in self.names for part in parts)


def make_filter(project_root: Path, output_dir: str | Path | None = None) -> TreeFilter:
    """Build the exclusion filter for *project_root* and its build output directory."""
    names = set(ALWAYS_EXCLUDED) | {DEFAULT_OUTPUT_DIR}
    paths: set[Path] = set()
    if output_dir is not None:
        out = Path(output_dir)
        if not out.is_absolute():
            out = project_root / out
        out = out.resolve()
        paths.add(out)
        if out.parent == project_root.resolve():
            names.add(out.name)
    return TreeFilter(names=frozenset(names), paths=frozenset(paths))


def walk_files(root: Path, tree_filter: TreeFilter | None = None) -> Iterator[Path]:
    """Yield every regular file under *root* in traversal order.

    Directory entries are sorted by name; sub-directories are expanded in
    place. Symlinked directories are not followed.
    """
    tree_filter = tree_filter or TreeFilter()
    try:
        entries = sorted(os.scandir(root), key=lambda e: e.name)
    except FileNotFoundError:
        return
    for entry in entries:
        path = Path(entry.path)
        if entry.is_dir(follow_symlinks=False):
            if not tree_filter.excludes(path.resolve()):
                yield from walk_files(path, tree_filter)
        elif entry.is_file():
            yield path


def files_with_suffix(
    root: Path, suffixes: Iterable[str], tree_filter: TreeFilter | None = None
) -> list[Path]:
    """Return files under *root* whose lowercase suffix is in *suffixes*."""
    wanted = {s.lower() for s in suffixes}
    return [p for p in walk_files(root, tree_filter) if p.suffix.lower() in wanted]


def relative_posix(path: Path, root: Path) -> str:
    """Return *path* relative to *root* with forward slashes."""
    return path.relative_to(root).as_posix()


def is_under(rel_path: str, directory: str) -> bool:
    """Return ``True`` if the POSIX relative path lies inside top-level *directory*."""
    return PurePosixPath(rel_path).parts[:1] == (directory,)


def directory_size(root: Path) -> int:
    """Total size in bytes of every file under *root* (no exclusions)."""
    total = 0
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in filenames:
            total += os.path.getsize(os.path.join(dirpath, name))
    return total


def resolve_output_dir(project_root: Path, output_dir: str | Path | None) -> Path:
    """Resolve *output_dir* against *project_root* and refuse dangerous targets.

    Raises:
        InvalidUsageError: If the output directory is the project root or
            one of its ancestors (clearing it would delete the sources).
    """
    out = Path(output_dir or DEFAULT_OUTPUT_DIR)
    if not out.is_absolute():
        out = project_root / out
    out = out.resolve()
    root = project_root.resolve()
    if out == root or out in root.parents:
        raise InvalidUsageError(
            f"Output directory {out} would contain the project itself; choose a sub-directory."
        )
    return out

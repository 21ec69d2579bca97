from __future__ import annotations

import re
import shutil
from collections.abc import Sequence
from pathlib import Path

DEFAULT_EXCLUDES: tuple[str, ...] = (".venv", ".git", "**/__pycache__")

_SEPARATORS = re.compile(r"[\\/]")


def _path_key(path: str) -> list[str]:
    return _SEPARATORS.split(path.rstrip("/"))


def _is_ignored(path: Path, root: Path, ignored: set[Path]) -> bool:
    # Excluding a directory excludes everything below it.
    cur = path
    while cur != root:
        if cur in ignored:
            return True
        cur = cur.parent
    return False


def sorted_directory_contents(
    directory: Path | str,
    *,
    include: Sequence[str] = ("**/*",),
    exclude: Sequence[str] = (),
    default_excludes: Sequence[str] = DEFAULT_EXCLUDES,
) -> list[str]:
    """
    List entries under ``directory`` as posix relative paths, sorted by path component.

    Directories carry a trailing ``/``. Useful for snapshotting a sandbox tree.
    """
    root = Path(directory)
    ignored: set[Path] = set()
    for pattern in [*default_excludes, *exclude]:
        ignored.update(root.glob(pattern))

    results: set[str] = set()
    for pattern in include:
        for path in root.glob(pattern):
            if path == root or _is_ignored(path, root, ignored):
                continue
            rel = path.relative_to(root).as_posix()
            results.add(rel + "/" if path.is_dir() else rel)
    return sorted(results, key=_path_key)


def empty_dir(directory: Path | str) -> None:
    """Remove everything inside ``directory``, creating it when missing."""
    root = Path(directory)
    if not root.exists():
        root.mkdir(parents=True, exist_ok=True)
        return
    for child in root.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Sequence
from pathlib import Path

logger = logging.getLogger(__name__)


def _iter_entries(source: Path, include: Sequence[str], exclude: Sequence[str] | None) -> list[Path]:
    excluded: set[Path] = set()
    for pattern in exclude or []:
        excluded.update(source.glob(pattern))
    seen: set[Path] = set()
    out: list[Path] = []
    for pattern in include:
        for path in sorted(source.glob(pattern), key=lambda p: str(p)):
            if path in seen or path == source:
                continue
            seen.add(path)
            parents = [source / parent for parent in list(path.relative_to(source).parents)[:-1]]
            if path in excluded or any(parent in excluded for parent in parents):
                continue
            if any(parent.is_symlink() for parent in parents):
                continue
            out.append(path)
    return out


def _link_exists_with(target: Path, expected: str, *, real: bool) -> bool:
    if not target.is_symlink():
        return False
    existing = os.path.realpath(target) if real else os.readlink(target)
    return existing == expected


def copy_files(
    source: Path | str | None,
    include: Sequence[str],
    destination: Path | str,
    *,
    exclude: Sequence[str] | None = None,
    dry_run: bool = False,
) -> None:
    """
    Copy entries matching ``include`` from ``source`` to ``destination``.

    The directory structure relative to ``source`` is retained. Symlinks are
    recreated rather than followed: links pointing inside ``source`` keep their
    original (possibly relative) target, others point at the resolved target.
    """
    src = Path(source) if source is not None else Path(".")
    src = src.resolve()
    dest = Path(destination)
    created_dirs: set[Path] = set()
    symlinks: list[Path] = []

    for entry in _iter_entries(src, include, exclude):
        target = dest / entry.relative_to(src)
        if entry.is_symlink():
            # Recreated after regular files; the link may point into the copied tree.
            symlinks.append(entry)
        elif entry.is_file():
            if target.parent not in created_dirs:
                if dry_run:
                    logger.debug("mkdir %s", target.parent)
                else:
                    target.parent.mkdir(parents=True, exist_ok=True)
                created_dirs.add(target.parent)
            if dry_run:
                logger.debug("copy %s -> %s", entry, target)
            else:
                shutil.copy2(entry, target)
        elif entry.is_dir():
            if dry_run:
                logger.debug("mkdir %s", target)
            else:
                target.mkdir(parents=True, exist_ok=True)
            created_dirs.add(target)

    real_source = os.path.realpath(src)
    for entry in symlinks:
        target = dest / entry.relative_to(src)
        link = os.readlink(entry)
        real_link_target = os.path.realpath(entry)
        inside_source = real_link_target == real_source or real_link_target.startswith(real_source + os.sep)
        relative_and_sibling = not os.path.isabs(link) and src.parent == dest.resolve().parent

        if inside_source or relative_and_sibling:
            link_value, check_real = link, False
        else:
            link_value, check_real = real_link_target, True

        if dry_run:
            logger.debug("symlink %s -> %s", target, link_value)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            target.symlink_to(link_value)
        except FileExistsError:
            if not _link_exists_with(target, link_value, real=check_real):
                raise

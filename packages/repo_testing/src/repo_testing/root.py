from __future__ import annotations

import os
import re
from collections.abc import Sequence
from functools import cache
from pathlib import Path

_REPO_ROOT_ENV = "DEVKIT_REPO_ROOT"
ROOT_MARKERS: tuple[str, ...] = (
    ".git",
    "uv.lock",
    "pdm.lock",
    "poetry.lock",
    "pnpm-workspace.yaml",
)

# Commands may run from a package directory, from inside a virtualenv, or from the root.
_ROOT_GUESS_RE = re.compile(r"(.*(?=/packages/))|(.*(?=/\.venv/))|(.*)", re.DOTALL)


def determine_monorepo_root(candidate: str) -> str:
    posix = candidate.replace("\\", "/")
    match = _ROOT_GUESS_RE.match(posix)
    if match is None:
        return posix
    packages_root, venv_root, entire_path = match.groups()
    return packages_root or venv_root or entire_path


@cache
def guess_monorepo_root() -> Path:
    return Path(determine_monorepo_root(os.environ.get(_REPO_ROOT_ENV) or os.getcwd()))


def _scan_candidates(lookup: str) -> list[str]:
    match = _ROOT_GUESS_RE.match(lookup.replace("\\", "/"))
    if match is None:
        return []
    packages_root, venv_root, _ = match.groups()
    return [c for c in (packages_root, venv_root) if c]


def _has_root_markers(candidates: Sequence[str]) -> Path | None:
    for directory in candidates:
        for marker in ROOT_MARKERS:
            if (Path(directory) / marker).exists():
                return Path(directory)
    return None


def _unique_parent(path: Path | None) -> Path | None:
    if path is None:
        return None
    parent = path.parent
    return None if parent == path else parent


def repository_root_path_via_directory_scan(lookup_directory: Path | str) -> Path:
    """
    Find the repository root by looking for marker files (``.git``, lock files, ...).

    Scanned in priority order: the lookup directory, the directories implied
    by ``/packages/`` or ``/.venv/`` in its path, its parent and its
    grandparent. Falls back to the lookup directory itself.
    """
    lookup = Path(lookup_directory)
    parent = _unique_parent(lookup)
    super_parent = _unique_parent(parent)

    jobs: list[list[str]] = [
        [str(lookup)],
        _scan_candidates(str(lookup)),
        [str(parent)] if parent is not None else [],
        [str(super_parent)] if super_parent is not None else [],
    ]
    for job in jobs:
        if not job:
            continue
        found = _has_root_markers(job)
        if found is not None:
            return found
    return lookup


@cache
def repository_root_path() -> Path:
    override = os.environ.get(_REPO_ROOT_ENV)
    if override and override.strip():
        return Path(override.strip())
    return repository_root_path_via_directory_scan(Path.cwd())


def find_package_root_dir(start: Path | str | None = None) -> Path | None:
    """Return the nearest directory at or above ``start`` containing ``pyproject.toml``."""
    cur = Path(start or Path.cwd()).resolve()
    for candidate in [cur, *cur.parents]:
        if (candidate / "pyproject.toml").is_file():
            return candidate
    return None

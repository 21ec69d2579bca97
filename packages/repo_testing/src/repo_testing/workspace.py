from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import yaml

from repo_testing.root import repository_root_path

logger = logging.getLogger(__name__)


class RepositoryConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class RepositoryConfiguration:
    root: Path
    packages_globs: list[str] = field(default_factory=list)
    package_locations: list[Path] = field(default_factory=list)
    type: Literal["single-package", "multiple-packages"] = "single-package"


def _string_list(value: object, *, source: Path, key: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise RepositoryConfigError(f"Invalid {key} (expected a list of strings): {source}")
    return list(value)


def _uv_workspace_members(root: Path) -> list[str] | None:
    path = root / "pyproject.toml"
    if not path.is_file():
        return None
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as e:  # noqa: BLE001
        raise RepositoryConfigError(f"Failed to parse pyproject.toml: {path}: {e}") from e
    workspace = data.get("tool", {}).get("uv", {}).get("workspace")
    if not isinstance(workspace, dict):
        return None
    return _string_list(workspace.get("members"), source=path, key="[tool.uv.workspace].members")


def _pnpm_workspace_packages(root: Path) -> list[str] | None:
    path = root / "pnpm-workspace.yaml"
    if not path.is_file():
        return None
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise RepositoryConfigError(f"Failed to parse pnpm-workspace.yaml: {path}: {e}") from e
    if not isinstance(data, dict):
        return []
    return _string_list(data.get("packages"), source=path, key="packages")


def read_packages_globs(monorepo_root: Path | str) -> list[str]:
    """
    Determine the workspace package globs of a repository.

    ``[tool.uv.workspace].members`` in the root ``pyproject.toml`` wins; a
    ``pnpm-workspace.yaml`` ``packages`` list is used otherwise. Unreadable
    configuration is logged and treated as "no packages".
    """
    root = Path(monorepo_root)
    try:
        for reader in (_uv_workspace_members, _pnpm_workspace_packages):
            globs = reader(root)
            if globs is not None:
                return globs
    except RepositoryConfigError as e:
        logger.error("%s", e)
    return []


def load_repository_configuration(root: Path | str | None = None) -> RepositoryConfiguration:
    repo_root = Path(root) if root is not None else repository_root_path()
    packages_globs = read_packages_globs(repo_root)
    if not packages_globs:
        return RepositoryConfiguration(root=repo_root)

    locations: set[Path] = set()
    for pattern in packages_globs:
        for candidate in repo_root.glob(f"{pattern}/pyproject.toml"):
            locations.add(candidate.parent)
    return RepositoryConfiguration(
        root=repo_root,
        packages_globs=packages_globs,
        package_locations=sorted(locations, key=lambda p: str(p)),
        type="multiple-packages",
    )

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path

import tomlkit
from tomlkit import TOMLDocument


class PyprojectError(RuntimeError):
    pass


def read_pyproject(directory: Path | str) -> TOMLDocument:
    path = Path(directory) / "pyproject.toml"
    try:
        return tomlkit.parse(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise PyprojectError(f"Missing pyproject.toml: {path}") from e
    except Exception as e:  # noqa: BLE001
        raise PyprojectError(f"Failed to parse pyproject.toml: {path}: {e}") from e


def write_pyproject(directory: Path | str, doc: TOMLDocument | dict) -> Path:
    path = Path(directory) / "pyproject.toml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(tomlkit.dumps(doc), encoding="utf-8")
    return path


def transform_pyproject(
    directory: Path | str,
    transform: Callable[[TOMLDocument], TOMLDocument | dict],
) -> Path:
    """Read, transform and write back ``pyproject.toml`` keeping its formatting."""
    return write_pyproject(directory, transform(read_pyproject(directory)))


def project_name(doc: TOMLDocument | dict, *, source: Path | str = "pyproject.toml") -> str:
    project = doc.get("project")
    if not isinstance(project, Mapping):
        raise PyprojectError(f"Missing/invalid [project] table: {source}")
    name = project.get("name")
    if not isinstance(name, str) or not name.strip():
        raise PyprojectError(f"Missing/invalid [project].name: {source}")
    return str(name)

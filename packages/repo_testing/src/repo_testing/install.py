from __future__ import annotations

import sys
from pathlib import Path
from typing import Literal, TypeGuard

from spawn_tools import SpawnResult, spawn_output_conditional

PackageManager = Literal["pip", "uv", "pdm"]

SUPPORTED_PACKAGE_MANAGERS: tuple[PackageManager, ...] = ("pip", "uv", "pdm")


class InstallError(RuntimeError):
    pass


def is_supported_package_manager(value: object) -> TypeGuard[PackageManager]:
    return value in SUPPORTED_PACKAGE_MANAGERS


def _venv_python(directory: Path) -> Path:
    if sys.platform.startswith("win"):
        return directory / ".venv" / "Scripts" / "python.exe"
    return directory / ".venv" / "bin" / "python"


def install_argvs(package_manager: PackageManager, directory: Path) -> list[list[str]]:
    """Commands that create ``.venv`` in ``directory`` and install its project into it."""
    if package_manager == "pip":
        python = str(_venv_python(directory))
        return [
            [sys.executable, "-m", "venv", ".venv"],
            [python, "-m", "pip", "install", "--disable-pip-version-check", "."],
        ]
    if package_manager == "uv":
        return [
            ["uv", "venv", ".venv"],
            ["uv", "pip", "install", "--python", str(_venv_python(directory)), "."],
        ]
    if package_manager == "pdm":
        return [
            ["pdm", "venv", "create", "--force", "--with-pip", sys.executable],
            ["pdm", "install", "--no-self", "--no-lock"],
        ]
    raise InstallError(
        f"Unsupported package manager: {package_manager!r} "
        f"(expected one of {', '.join(SUPPORTED_PACKAGE_MANAGERS)})."
    )


def install_package(package_manager: PackageManager, directory: Path | str) -> list[SpawnResult]:
    """Create a virtualenv in ``directory`` and install the project there."""
    if not is_supported_package_manager(package_manager):
        raise InstallError(
            f"Unsupported package manager: {package_manager!r} "
            f"(expected one of {', '.join(SUPPORTED_PACKAGE_MANAGERS)})."
        )
    target = Path(directory).resolve()
    return [
        spawn_output_conditional(argv, cwd=target, exit_codes=(0,))
        for argv in install_argvs(package_manager, target)
    ]

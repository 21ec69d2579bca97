from __future__ import annotations

import logging
import shutil
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from spawn_tools import SpawnResult, spawn_result, venv_bin_path
from text_replace import FilterRule, LiteralFilter, replace_text_in_files

from repo_testing.copy import copy_files
from repo_testing.integration_config import INTEGRATION_DIR
from repo_testing.pyproject import transform_pyproject
from repo_testing.template import PackageInstallTemplate

logger = logging.getLogger(__name__)


class SandboxError(RuntimeError):
    pass


@dataclass(frozen=True)
class SandboxCopy:
    include: list[str]
    source: Path | None = None
    exclude: list[str] = field(default_factory=list)
    destination: str = "."


@dataclass(frozen=True)
class SandboxReplace:
    include: list[str]
    filters: list[FilterRule]
    exclude: list[str] = field(default_factory=list)
    max_match_length: int | None = None


class PackageTestSandbox:
    """
    A per-test directory seeded from the install template.

    ``create()`` copies the template (including its ``.venv``), points the
    copied virtualenv scripts at the sandbox, copies extra files, applies text
    replacements and optionally transforms the sandbox ``pyproject.toml``.
    """

    def __init__(
        self,
        tag: str,
        *,
        template: PackageInstallTemplate,
        copy: Sequence[SandboxCopy] = (),
        replace: Sequence[SandboxReplace] = (),
        pyproject: Callable[[dict], dict] | None = None,
        base_directory: Path | str | None = None,
    ) -> None:
        for entry in copy:
            if Path(entry.destination).is_absolute():
                raise SandboxError("destination copy paths cannot be absolute")
        base = Path(base_directory) if base_directory is not None else Path.cwd()
        self.root_directory = base / INTEGRATION_DIR / f"sandbox-{tag}"
        self.template = template
        self._copy = list(copy)
        self._replace = list(replace)
        self._pyproject = pyproject

    @property
    def package_under_test(self) -> str:
        return self.template.package_under_test

    def _relocate_venv(self) -> None:
        scripts = self.root_directory / ".venv"
        if not scripts.is_dir():
            return
        old = str(self.template.root_directory.resolve())
        new = str(self.root_directory.resolve())
        if old == new:
            return
        replace_text_in_files(
            scripts,
            ["bin/*", "Scripts/*", "pyvenv.cfg"],
            [LiteralFilter(substring=old, replacement=new)],
        )

    def create(self) -> None:
        shutil.rmtree(self.root_directory, ignore_errors=True)
        self.template.copy_to(self.root_directory)
        self._relocate_venv()

        for entry in self._copy:
            copy_files(
                entry.source,
                entry.include,
                self.root_directory / entry.destination,
                exclude=entry.exclude,
            )
        for entry in self._replace:
            replace_text_in_files(
                self.root_directory,
                entry.include,
                entry.filters,
                exclude=entry.exclude,
                max_match_length=entry.max_match_length,
            )
        if self._pyproject is not None:
            transform_pyproject(self.root_directory, self._pyproject)
        logger.debug("Sandbox ready at %s", self.root_directory)

    def python(self) -> Path:
        candidate = self.root_directory / venv_bin_path("python")
        return candidate if candidate.exists() else Path(sys.executable)

    def run_module(self, module: str, *args: str) -> SpawnResult:
        return spawn_result(
            [str(self.python()), "-m", module, *args],
            cwd=self.root_directory,
            exit_codes="any",
        )

    def run_bin(self, bin_name: str, *args: str) -> SpawnResult:
        return spawn_result(
            [str(self.root_directory / venv_bin_path(bin_name)), *args],
            cwd=self.root_directory,
            exit_codes="any",
        )

    def cleanup(self) -> None:
        shutil.rmtree(self.root_directory, ignore_errors=True)

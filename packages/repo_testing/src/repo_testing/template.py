from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable
from pathlib import Path

import tomlkit
from packaging.requirements import Requirement
from packaging.utils import canonicalize_name

from repo_testing.copy import copy_files
from repo_testing.directory import sorted_directory_contents
from repo_testing.install import PackageManager, install_package
from repo_testing.integration_config import INTEGRATION_DIR, random_text
from repo_testing.pyproject import project_name, read_pyproject, write_pyproject

logger = logging.getLogger(__name__)

_PACKAGE_UNDER_TEST_ENV = "DEVKIT_PACKAGE_UNDER_TEST"

ProjectTransform = Callable[[dict], dict]


def _identity(doc: dict) -> dict:
    return doc


def _requirement_for(name: str, source: Path) -> str:
    req = Requirement(f"{name} @ {source.resolve().as_uri()}")
    return str(req)


class PackageInstallTemplate:
    """
    A synthetic project that depends on the package under test.

    ``create()`` writes ``pyproject.toml`` into ``.integration/template`` and
    installs it into its own ``.venv`` so sandboxes can later be copied from
    it instead of reinstalling for every test.
    """

    def __init__(
        self,
        *,
        package_under_test: str | None = None,
        package_under_test_directory: Path | str | None = None,
        pyproject: ProjectTransform | None = None,
        package_manager: PackageManager = "pip",
        base_directory: Path | str | None = None,
    ) -> None:
        base = Path(base_directory) if base_directory is not None else Path.cwd()
        self.source_directory = Path(package_under_test_directory or base).resolve()
        self.root_directory = base / INTEGRATION_DIR / "template"

        name = package_under_test or os.environ.get(_PACKAGE_UNDER_TEST_ENV)
        if not name:
            name = project_name(read_pyproject(self.source_directory), source=self.source_directory)
        self.package_under_test = canonicalize_name(name)
        self._transform = pyproject or _identity
        self._package_manager = package_manager

    def project_document(self) -> dict:
        doc = tomlkit.document()
        doc["build-system"] = {
            "requires": ["setuptools>=68"],
            "build-backend": "setuptools.build_meta",
        }
        doc["project"] = {
            "name": f"package-{random_text(8)}",
            "version": "1.0.0",
            "description": "",
            "dependencies": [_requirement_for(self.package_under_test, self.source_directory)],
        }
        doc["tool"] = {"setuptools": {"py-modules": []}}
        return self._transform(doc)

    def create(self) -> None:
        logger.debug("Template root directory is %s", self.root_directory)
        if self.root_directory.exists():
            shutil.rmtree(self.root_directory)
        self.root_directory.mkdir(parents=True, exist_ok=True)

        write_pyproject(self.root_directory, self.project_document())
        install_package(self._package_manager, self.root_directory)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "%s after install:\n%s",
                self.root_directory,
                "\n".join(sorted_directory_contents(self.root_directory)),
            )

    def copy_to(self, destination: Path | str) -> None:
        copy_files(self.root_directory, ["**/*"], destination)

    def cleanup(self) -> None:
        shutil.rmtree(self.root_directory, ignore_errors=True)

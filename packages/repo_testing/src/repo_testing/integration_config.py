from __future__ import annotations

import json
import logging
import secrets
import tempfile
from dataclasses import dataclass
from functools import cache
from pathlib import Path

from repo_testing.root import find_package_root_dir

logger = logging.getLogger(__name__)

INTEGRATION_DIR = ".integration"
_CONFIG_FILE = "config.json"


class TestConfigError(RuntimeError):
    __test__ = False


@dataclass(frozen=True)
class TestConfig:
    """
    Locations shared by the integration tests of one package.

    ``test_root_directory`` holds the install template and one sandbox per test::

        <test_root_directory>/
            template/
            sandbox-<tag>/
    """

    __test__ = False

    package_root_directory: Path
    test_root_directory: Path


def random_text(length: int) -> str:
    return secrets.token_hex((length + 1) // 2)[:length]


def load_test_config_from(start: Path | str | None = None) -> TestConfig:
    package_root = find_package_root_dir(start)
    if package_root is None:
        raise TestConfigError(
            f'Following along parent directories of "{start or Path.cwd()}" no pyproject.toml in sight'
        )

    path = package_root / INTEGRATION_DIR / _CONFIG_FILE
    if path.is_file():
        raw = path.read_text(encoding="utf-8")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("Cannot parse JSON file at %s with contents:\n  %r", path, raw)
            raise TestConfigError(f"Invalid JSON in {path}: {e}") from e
        test_root = data.get("testRootDirectory") if isinstance(data, dict) else None
        if not isinstance(test_root, str) or not test_root:
            logger.error("Cannot parse JSON file at %s with contents:\n  %r", path, raw)
            raise TestConfigError('Invalid config, no "testRootDirectory" found!')
        config = TestConfig(package_root_directory=package_root, test_root_directory=Path(test_root))
    else:
        config = TestConfig(
            package_root_directory=package_root,
            test_root_directory=Path(tempfile.gettempdir())
            / "repo-devkit"
            / "integration-tests"
            / f"root-{random_text(8)}",
        )

    config.test_root_directory.mkdir(parents=True, exist_ok=True)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "packageRootDirectory": str(config.package_root_directory),
        "testRootDirectory": str(config.test_root_directory),
    }
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    logger.debug('Integration test root directory is "%s"', config.test_root_directory)
    return config


@cache
def load_test_config() -> TestConfig:
    return load_test_config_from(Path.cwd())

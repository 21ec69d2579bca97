from __future__ import annotations

import logging
from pathlib import Path

import pytest

from repo_testing import (
    PyprojectError,
    find_package_root_dir,
    guess_monorepo_root,
    load_repository_configuration,
    read_packages_globs,
    read_pyproject,
    repository_root_path_via_directory_scan,
    transform_pyproject,
)
from repo_testing.pyproject import project_name
from repo_testing.root import determine_monorepo_root


def _write(path: Path, text: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.mark.parametrize(
    ("candidate", "expected"),
    [
        ("/work/repo/packages/foo/src", "/work/repo"),
        ("/work/repo/.venv/bin", "/work/repo"),
        ("/work/repo", "/work/repo"),
        ("C:\\work\\repo\\packages\\foo", "C:/work/repo"),
        ("/work/odd\nname/packages/foo", "/work/odd\nname"),
        ("/work/odd\nname", "/work/odd\nname"),
    ],
)
def test_determine_monorepo_root(candidate: str, expected: str) -> None:
    assert determine_monorepo_root(candidate) == expected


def test_guess_monorepo_root_uses_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("DEVKIT_REPO_ROOT", str(tmp_path / "packages" / "thing"))
    guess_monorepo_root.cache_clear()
    try:
        assert guess_monorepo_root() == tmp_path
    finally:
        guess_monorepo_root.cache_clear()


def test_directory_scan_prefers_lookup_directory(tmp_path: Path) -> None:
    (tmp_path / "repo" / "pkg" / ".git").mkdir(parents=True)
    (tmp_path / "repo" / ".git").mkdir(parents=True)

    assert repository_root_path_via_directory_scan(tmp_path / "repo" / "pkg") == tmp_path / "repo" / "pkg"


def test_directory_scan_uses_packages_segment(tmp_path: Path) -> None:
    _write(tmp_path / "repo" / "uv.lock")
    lookup = tmp_path / "repo" / "packages" / "a" / "src" / "deep"
    lookup.mkdir(parents=True)

    assert repository_root_path_via_directory_scan(lookup) == tmp_path / "repo"


def test_directory_scan_checks_parent_then_grandparent(tmp_path: Path) -> None:
    _write(tmp_path / "repo" / "pnpm-workspace.yaml", "packages: []\n")
    (tmp_path / "repo" / "a" / "b").mkdir(parents=True)

    assert repository_root_path_via_directory_scan(tmp_path / "repo" / "a") == tmp_path / "repo"
    assert repository_root_path_via_directory_scan(tmp_path / "repo" / "a" / "b") == tmp_path / "repo"


def test_directory_scan_falls_back_to_lookup(tmp_path: Path) -> None:
    lookup = tmp_path / "x" / "y" / "z"
    lookup.mkdir(parents=True)

    assert repository_root_path_via_directory_scan(lookup) == lookup


def test_find_package_root_dir(tmp_path: Path) -> None:
    _write(tmp_path / "pkg" / "pyproject.toml", "[project]\nname = 'pkg'\n")
    start = tmp_path / "pkg" / "src" / "pkg"
    start.mkdir(parents=True)

    assert find_package_root_dir(start) == (tmp_path / "pkg").resolve()


def test_uv_workspace_members(tmp_path: Path) -> None:
    _write(
        tmp_path / "pyproject.toml",
        '[tool.uv.workspace]\nmembers = ["packages/*"]\n',
    )
    _write(tmp_path / "packages" / "b" / "pyproject.toml", "")
    _write(tmp_path / "packages" / "a" / "pyproject.toml", "")
    (tmp_path / "packages" / "not-a-package").mkdir()

    config = load_repository_configuration(tmp_path)

    assert config.type == "multiple-packages"
    assert config.packages_globs == ["packages/*"]
    assert config.package_locations == [tmp_path / "packages" / "a", tmp_path / "packages" / "b"]


def test_pnpm_workspace_yaml(tmp_path: Path) -> None:
    _write(tmp_path / "pnpm-workspace.yaml", "packages:\n  - 'libs/*'\n  - tools\n")

    assert read_packages_globs(tmp_path) == ["libs/*", "tools"]


def test_single_package_repository(tmp_path: Path) -> None:
    _write(tmp_path / "pyproject.toml", "[project]\nname = 'solo'\n")

    config = load_repository_configuration(tmp_path)

    assert config.type == "single-package"
    assert config.package_locations == []


def test_unreadable_workspace_config_is_logged(tmp_path: Path, caplog) -> None:
    _write(tmp_path / "pnpm-workspace.yaml", "packages: [unclosed\n")

    with caplog.at_level(logging.ERROR, logger="repo_testing.workspace"):
        assert read_packages_globs(tmp_path) == []

    assert "pnpm-workspace.yaml" in caplog.text


def test_transform_pyproject_keeps_formatting(tmp_path: Path) -> None:
    _write(
        tmp_path / "pyproject.toml",
        '# managed by hand\n[project]\nname = "demo"  # keep me\nversion = "0.1.0"\n',
    )

    def _bump(doc):
        doc["project"]["version"] = "0.2.0"
        return doc

    transform_pyproject(tmp_path, _bump)

    text = (tmp_path / "pyproject.toml").read_text(encoding="utf-8")
    assert "# managed by hand" in text
    assert "# keep me" in text
    assert read_pyproject(tmp_path)["project"]["version"] == "0.2.0"


def test_read_pyproject_errors(tmp_path: Path) -> None:
    with pytest.raises(PyprojectError, match="Missing pyproject.toml"):
        read_pyproject(tmp_path)

    _write(tmp_path / "pyproject.toml", "[project\n")
    with pytest.raises(PyprojectError, match="Failed to parse"):
        read_pyproject(tmp_path)


def test_project_name_requires_name() -> None:
    assert project_name({"project": {"name": "demo"}}) == "demo"
    with pytest.raises(PyprojectError):
        project_name({"project": {}})
    with pytest.raises(PyprojectError):
        project_name({})

from repo_testing.copy import copy_files
from repo_testing.directory import empty_dir, sorted_directory_contents
from repo_testing.install import (
    SUPPORTED_PACKAGE_MANAGERS,
    InstallError,
    install_package,
    is_supported_package_manager,
)
from repo_testing.integration_config import TestConfig, load_test_config, load_test_config_from
from repo_testing.pyproject import PyprojectError, read_pyproject, transform_pyproject, write_pyproject
from repo_testing.root import (
    find_package_root_dir,
    guess_monorepo_root,
    repository_root_path,
    repository_root_path_via_directory_scan,
)
from repo_testing.sandbox import PackageTestSandbox, SandboxCopy, SandboxError, SandboxReplace
from repo_testing.template import PackageInstallTemplate
from repo_testing.workspace import (
    RepositoryConfigError,
    RepositoryConfiguration,
    load_repository_configuration,
    read_packages_globs,
)

__all__ = [
    "SUPPORTED_PACKAGE_MANAGERS",
    "InstallError",
    "PackageInstallTemplate",
    "PackageTestSandbox",
    "PyprojectError",
    "RepositoryConfigError",
    "RepositoryConfiguration",
    "SandboxCopy",
    "SandboxError",
    "SandboxReplace",
    "TestConfig",
    "copy_files",
    "empty_dir",
    "find_package_root_dir",
    "guess_monorepo_root",
    "install_package",
    "is_supported_package_manager",
    "load_repository_configuration",
    "load_test_config",
    "load_test_config_from",
    "read_packages_globs",
    "read_pyproject",
    "repository_root_path",
    "repository_root_path_via_directory_scan",
    "sorted_directory_contents",
    "transform_pyproject",
    "write_pyproject",
]

from __future__ import annotations

import os
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from spawn_tools.ansi import strip_ansi
from spawn_tools.controller import SpawnController
from spawn_tools.spawn import ExitCodes, SpawnResult, merged_env, spawn_result


@dataclass(frozen=True)
class SpawnOptions:
    cwd: Path
    env: Mapping[str, str] = field(default_factory=dict)


def venv_bin_path(bin_name: str, *, is_windows: bool | None = None) -> Path:
    windows = os.name == "nt" if is_windows is None else is_windows
    return Path(".venv") / ("Scripts" if windows else "bin") / bin_name


class SpawnApi:
    """Spawn helpers bound to a lazily resolved working directory and environment."""

    def __init__(self, options: Callable[[], SpawnOptions]) -> None:
        self._options = options

    def _resolve(self) -> tuple[Path, dict[str, str] | None]:
        opts = self._options()
        return opts.cwd, merged_env(opts.env)

    def spawn_result(
        self,
        executable: str | Path,
        args: Sequence[str] = (),
        *,
        exit_codes: ExitCodes = "any",
    ) -> SpawnResult:
        cwd, env = self._resolve()
        result = spawn_result([str(executable), *args], cwd=cwd, env=env, exit_codes=exit_codes)
        return SpawnResult(
            argv=result.argv,
            pid=result.pid,
            output=strip_ansi(result.output),
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.exit_code,
            signal=result.signal,
            error=result.error,
        )

    def spawn_controller(self, executable: str | Path, args: Sequence[str] = ()) -> SpawnController:
        cwd, env = self._resolve()
        return SpawnController([str(executable), *args], cwd=cwd, env=env)

    def _bin(self, bin_name: str) -> str:
        cwd, _ = self._resolve()
        return str(Path(cwd) / venv_bin_path(bin_name))

    def spawn_bin(self, bin_name: str, args: Sequence[str] = (), *, exit_codes: ExitCodes = "any") -> SpawnResult:
        return self.spawn_result(self._bin(bin_name), args, exit_codes=exit_codes)

    def spawn_bin_controller(self, bin_name: str, args: Sequence[str] = ()) -> SpawnController:
        return self.spawn_controller(self._bin(bin_name), args)


def create_spawn_api(options: Callable[[], SpawnOptions]) -> SpawnApi:
    return SpawnApi(options)

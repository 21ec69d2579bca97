from __future__ import annotations

import codecs
import logging
import os
import shlex
import signal as signal_module
import subprocess
import threading
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Literal

from spawn_tools.errors import SpawnError

logger = logging.getLogger(__name__)

ExitCodes = Sequence[int] | Literal["any"]
OutputStreams = Sequence[Literal["stdout", "stderr"]]
LogFn = Callable[[str], None]

_READ_SIZE = 64 * 1024


@dataclass(frozen=True)
class SpawnResult:
    argv: list[str]
    pid: int | None
    output: str
    stdout: str
    stderr: str
    exit_code: int | None
    signal: str | None
    error: SpawnError | None = None


def format_command(argv: Sequence[str]) -> str:
    return shlex.join([str(a) for a in argv])


def _signal_name(returncode: int) -> str:
    try:
        return signal_module.Signals(-returncode).name
    except ValueError:
        return f"signal {-returncode}"


def exit_status_error(argv: Sequence[str], returncode: int | None, exit_codes: ExitCodes) -> SpawnError | None:
    cmd = format_command(argv)
    if returncode is None:
        return SpawnError(f'Command "{cmd}" did not finish')
    if returncode < 0:
        return SpawnError(f'Failed to execute command "{cmd}" - {_signal_name(returncode)}')
    if exit_codes != "any" and returncode not in exit_codes:
        return SpawnError(f'Command "{cmd}" has failed with code {returncode}')
    return None


def popen(
    argv: Sequence[str],
    *,
    cwd: Path | str | None = None,
    env: Mapping[str, str] | None = None,
    stdin: int | None = None,
) -> subprocess.Popen[bytes]:
    try:
        return subprocess.Popen(  # noqa: S603
            [str(a) for a in argv],
            cwd=str(cwd) if cwd is not None else None,
            env=dict(env) if env is not None else None,
            stdin=stdin,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError as e:
        raise SpawnError(
            f'Could not launch command "{format_command(argv)}"'
            + (f" in {cwd}" if cwd is not None else "")
            + f": {e}"
        ) from e


class OutputCollector:
    """
    Drains a process' stdout/stderr on background threads.

    Chunks are recorded per stream and in arrival order across streams, and
    forwarded to ``on_chunk`` as decoded text when given.
    """

    def __init__(
        self,
        proc: subprocess.Popen[bytes],
        *,
        output: OutputStreams = ("stdout", "stderr"),
        on_chunk: Callable[[str], None] | None = None,
        on_error: Callable[[BaseException], None] | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._on_chunk = on_chunk
        self._on_error = on_error
        self.combined: list[str] = []
        self.stdout: list[str] = []
        self.stderr: list[str] = []
        self._threads: list[threading.Thread] = []

        for name, stream, target in (
            ("stdout", proc.stdout, self.stdout),
            ("stderr", proc.stderr, self.stderr),
        ):
            if stream is None:
                continue
            recorded = name in output
            thread = threading.Thread(
                target=self._pump,
                args=(stream, target, recorded),
                name=f"spawn-{name}-{proc.pid}",
                daemon=True,
            )
            self._threads.append(thread)
            thread.start()

    def _pump(self, stream: IO[bytes], target: list[str], recorded: bool) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            for data in iter(lambda: stream.read1(_READ_SIZE), b""):
                text = decoder.decode(data)
                if text and recorded:
                    self._record(text, target)
            tail = decoder.decode(b"", final=True)
            if tail and recorded:
                self._record(tail, target)
        except (OSError, ValueError) as exc:
            if self._on_error is not None:
                self._on_error(exc)
            else:
                logger.warning("Failed reading process output: %s", exc)
        finally:
            try:
                stream.close()
            except OSError:
                pass

    def _record(self, text: str, target: list[str]) -> None:
        with self._lock:
            target.append(text)
            self.combined.append(text)
            # Dispatch under the lock so listeners observe the recorded order.
            if self._on_chunk is not None:
                self._on_chunk(text)

    def join(self, timeout: float | None = None) -> None:
        for thread in self._threads:
            thread.join(timeout)

    def result(
        self,
        argv: Sequence[str],
        proc: subprocess.Popen[bytes],
        error: SpawnError | None,
    ) -> SpawnResult:
        with self._lock:
            combined = "".join(self.combined)
            stdout = "".join(self.stdout)
            stderr = "".join(self.stderr)
        returncode = proc.returncode
        return SpawnResult(
            argv=[str(a) for a in argv],
            pid=proc.pid,
            output=combined,
            stdout=stdout,
            stderr=stderr,
            exit_code=returncode if returncode is not None and returncode >= 0 else None,
            signal=_signal_name(returncode) if returncode is not None and returncode < 0 else None,
            error=error,
        )


def _log_command(log: LogFn | None, argv: Sequence[str], cwd: Path | str | None) -> None:
    if log is None:
        return
    text = f"> {format_command(argv)}"
    if cwd is not None:
        text += f" in {cwd}"
    log(text)


def spawn_result(
    argv: Sequence[str],
    *,
    cwd: Path | str | None = None,
    env: Mapping[str, str] | None = None,
    exit_codes: ExitCodes = (0,),
    output: OutputStreams = ("stdout", "stderr"),
    log: LogFn | None = logger.debug,
) -> SpawnResult:
    """Run ``argv`` to completion; failures are recorded on the result rather than raised."""
    _log_command(log, argv, cwd)
    try:
        proc = popen(argv, cwd=cwd, env=env, stdin=subprocess.DEVNULL)
    except SpawnError as e:
        return SpawnResult(
            argv=[str(a) for a in argv],
            pid=None,
            output="",
            stdout="",
            stderr="",
            exit_code=None,
            signal=None,
            error=e,
        )
    collector = OutputCollector(proc, output=output)
    proc.wait()
    collector.join()
    return collector.result(argv, proc, exit_status_error(argv, proc.returncode, exit_codes))


def spawn_to_completion(
    argv: Sequence[str],
    *,
    cwd: Path | str | None = None,
    env: Mapping[str, str] | None = None,
    exit_codes: ExitCodes = (0,),
    log: LogFn | None = logger.debug,
) -> None:
    result = spawn_result(argv, cwd=cwd, env=env, exit_codes=exit_codes, output=(), log=log)
    if result.error is not None:
        raise result.error


def spawn_output(
    argv: Sequence[str],
    *,
    cwd: Path | str | None = None,
    env: Mapping[str, str] | None = None,
    exit_codes: ExitCodes = (0,),
    output: OutputStreams = ("stdout", "stderr"),
    log: LogFn | None = logger.debug,
) -> str:
    result = spawn_result(argv, cwd=cwd, env=env, exit_codes=exit_codes, output=output, log=log)
    return result.output


def _default_should_output(result: SpawnResult) -> bool:
    return (
        result.error is not None
        or result.exit_code != 0
        or logger.isEnabledFor(logging.DEBUG)
    )


def spawn_output_conditional(
    argv: Sequence[str],
    *,
    cwd: Path | str | None = None,
    env: Mapping[str, str] | None = None,
    exit_codes: ExitCodes = (0,),
    should_output: Callable[[SpawnResult], bool] | None = None,
    output_log: LogFn | None = None,
    log: LogFn | None = logger.debug,
) -> SpawnResult:
    """
    Run ``argv`` and print its combined output only when it is interesting.

    By default output is logged at error level when the command failed, exited
    non-zero, or debug logging is enabled. The recorded error, if any, is
    raised afterwards.
    """
    result = spawn_result(argv, cwd=cwd, env=env, exit_codes=exit_codes, log=log)
    decide = should_output or _default_should_output
    if decide(result) and result.output:
        (output_log or logger.error)(result.output)
    if result.error is not None:
        raise result.error
    return result


def merged_env(extra: Mapping[str, str] | None) -> dict[str, str] | None:
    if not extra:
        return None
    return {**os.environ, **extra}

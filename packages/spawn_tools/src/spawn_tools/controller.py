from __future__ import annotations

import logging
import re
import signal as signal_module
import subprocess
import threading
from collections.abc import Mapping, Sequence
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path

from spawn_tools.errors import SpawnError
from spawn_tools.output import OutputStream
from spawn_tools.spawn import (
    ExitCodes,
    OutputCollector,
    SpawnResult,
    exit_status_error,
    format_command,
    popen,
)
from spawn_tools.watch import NO_TIMEOUT, Timeout, settle, watch_output, wait_for_output

logger = logging.getLogger(__name__)


class SpawnController:
    """
    Interactive handle on a running child process for integration tests.

    Output from stdout and stderr is merged into one ``OutputStream`` that both
    snapshot readers and output watches consume.
    """

    def __init__(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | str | None = None,
        env: Mapping[str, str] | None = None,
        exit_codes: ExitCodes = "any",
    ) -> None:
        self.argv = [str(a) for a in argv]
        self.cwd = cwd
        self._exit_codes = exit_codes
        self.output = OutputStream()

        logger.debug("> %s%s", format_command(self.argv), f" in {cwd}" if cwd is not None else "")
        self._proc = popen(self.argv, cwd=cwd, env=env, stdin=subprocess.PIPE)
        self._collector = OutputCollector(
            self._proc,
            on_chunk=self.output.write,
            on_error=self.output.fail,
        )
        self._waiter = threading.Thread(
            target=self._wait_and_end,
            name=f"spawn-wait-{self._proc.pid}",
            daemon=True,
        )
        self._waiter.start()

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def finished(self) -> bool:
        return self._proc.poll() is not None

    def _wait_and_end(self) -> None:
        self._proc.wait()
        self._collector.join()
        self.output.end()

    def output_snapshot(self) -> str:
        return self.output.snapshot()

    def next_snapshot(self) -> str:
        return self.output.next_snapshot()

    def read_output(self, timeout: Timeout = 0.5) -> str:
        """Return output produced since the last snapshot, waiting for some if there is none yet."""
        # Listen before checking so that output arriving in between still wakes us.
        # Raw data events fire whether or not the stream is paused.
        outcome: Future[None] = Future()
        unsubscribers = [
            self.output.on_data(lambda _chunk: settle(outcome)),
            self.output.on_end(lambda: settle(outcome)),
            self.output.on_error(lambda exc: settle(outcome, error=exc)),
        ]
        seconds = None if timeout in (None, NO_TIMEOUT) else float(timeout)
        try:
            if self.output.has_buffered_output():
                return self.next_snapshot()
            if self.output.ended:
                raise SpawnError("Process has already finished")
            outcome.result(timeout=seconds)
        except FutureTimeoutError:
            raise SpawnError(
                f"Expected any output within {seconds:.2f}s was not generated"
            ) from None
        finally:
            for unsubscribe in unsubscribers:
                unsubscribe()
        return self.next_snapshot()

    def watch_output(self, expected: str | re.Pattern[str], timeout: Timeout = None) -> Future[None]:
        return watch_output(self.output, expected, timeout)

    def wait_for_output(self, expected: str | re.Pattern[str], timeout: Timeout = None) -> None:
        wait_for_output(self.output, expected, timeout)

    def write_input(self, text: str, *, end: bool = False) -> None:
        stdin = self._proc.stdin
        if stdin is None:
            raise SpawnError("There is no stdin")
        stdin.write(text.encode("utf-8"))
        stdin.flush()
        if end:
            stdin.close()

    def wait_for_result(self, timeout: float | None = None) -> SpawnResult:
        self._waiter.join(timeout)
        if self._waiter.is_alive():
            raise SpawnError(
                f'Command "{format_command(self.argv)}" did not finish within {timeout:.2f}s'
            )
        if self._proc.stdin is not None and not self._proc.stdin.closed:
            try:
                self._proc.stdin.close()
            except OSError:
                pass
        error = exit_status_error(self.argv, self._proc.returncode, self._exit_codes)
        return self._collector.result(self.argv, self._proc, error)

    def kill(self, sig: int = signal_module.SIGTERM) -> SpawnResult:
        if not self.finished:
            self._proc.send_signal(sig)
        return self.wait_for_result()

    def __enter__(self) -> SpawnController:
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        if not self.finished:
            self._proc.kill()
        self.wait_for_result()


def spawn_controller(
    argv: Sequence[str],
    *,
    cwd: Path | str | None = None,
    env: Mapping[str, str] | None = None,
    exit_codes: ExitCodes = "any",
) -> SpawnController:
    return SpawnController(argv, cwd=cwd, env=env, exit_codes=exit_codes)

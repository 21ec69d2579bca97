from __future__ import annotations

import logging
import os
import re
import threading
from concurrent.futures import Future, InvalidStateError
from typing import Literal

from text_replace import ChunkAccumulator, MatchEvent, MatchFound, PatternFilter

from spawn_tools.errors import WatchTimeoutError, describe_expected
from spawn_tools.output import OutputStream, Unsubscribe

logger = logging.getLogger(__name__)

NO_TIMEOUT: Literal["no-timeout"] = "no-timeout"
Timeout = float | Literal["no-timeout"] | None

_WATCH_TIMEOUT_ENV = "DEVKIT_WATCH_TIMEOUT_SECONDS"
_DEFAULT_TIMEOUT_SECONDS = 0.5
_PATTERN_MAX_MATCH_LENGTH = 200


def default_watch_timeout() -> float | None:
    raw = os.environ.get(_WATCH_TIMEOUT_ENV)
    if raw is None or not raw.strip():
        return _DEFAULT_TIMEOUT_SECONDS
    try:
        timeout = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r", _WATCH_TIMEOUT_ENV, raw)
        return _DEFAULT_TIMEOUT_SECONDS
    if timeout <= 0:
        return None
    return timeout


def _resolve_timeout(timeout: Timeout) -> float | None:
    if timeout is None:
        return default_watch_timeout()
    if timeout == NO_TIMEOUT:
        return None
    return float(timeout)


def settle(future: Future, *, result: object = None, error: BaseException | None = None) -> bool:
    """Complete ``future`` unless it already is; return whether this call won."""
    try:
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)
    except InvalidStateError:
        return False
    return True


class OutputWatch:
    """
    One "wait until the process prints X" call against a shared output stream.

    ``Idle -> Watching -> Matched | TimedOut``; instances are single-use. The
    first of match, timeout or end-of-stream settles ``future``. The winner
    cancels the timer, unsubscribes and releases its hold on the stream, so
    the stream is paused again only once every overlapping watch is done.
    """

    def __init__(
        self,
        source: OutputStream,
        expected: str | re.Pattern[str],
        *,
        timeout: Timeout = None,
    ) -> None:
        if isinstance(expected, str):
            pattern = re.compile(re.escape(expected))
            max_match_length = len(expected)
        else:
            pattern = expected
            max_match_length = _PATTERN_MAX_MATCH_LENGTH

        self._source = source
        self._expected = expected
        self._timeout_seconds = _resolve_timeout(timeout)
        self._accumulator = ChunkAccumulator(
            [PatternFilter(pattern)],
            max_match_length=max_match_length,
            on_event=self._on_event,
            stop_after_first_match=True,
        )
        self.future: Future[None] = Future()
        self.state: Literal["idle", "watching", "matched", "timed_out"] = "idle"

        self._timer: threading.Timer | None = None
        self._unsubscribers: list[Unsubscribe] = []
        self._holding = False

    def start(self) -> Future[None]:
        # The stream lock keeps writers and the timer out until the watch is armed.
        with self._source.lock:
            if self.state != "idle":
                raise RuntimeError("An output watch can only be started once.")
            self.state = "watching"

            if self._timeout_seconds is not None:
                self._timer = threading.Timer(self._timeout_seconds, self._on_timeout)
                self._timer.daemon = True
                self._timer.start()

            self._unsubscribers.append(self._source.subscribe(self._on_chunk))
            self._unsubscribers.append(self._source.on_end(self._on_end))
            if not self.future.done():
                self._holding = True
                self._source.hold()
        return self.future

    def _on_chunk(self, text: str) -> None:
        if self.future.done():
            return
        self._accumulator.feed(text)

    def _on_event(self, event: MatchEvent) -> None:
        if isinstance(event, MatchFound):
            self._conclude("matched")

    def _on_end(self) -> None:
        if self.future.done():
            return
        self._accumulator.flush()
        if not self._accumulator.matched:
            self._conclude(
                "timed_out",
                WatchTimeoutError(self._expected, self._source.snapshot(), None),
            )

    def _on_timeout(self) -> None:
        self._conclude(
            "timed_out",
            WatchTimeoutError(self._expected, self._source.snapshot(), self._timeout_seconds),
        )

    def _conclude(self, state: Literal["matched", "timed_out"], error: BaseException | None = None) -> None:
        with self._source.lock:
            if self.state != "watching":
                return
            # Visible before any waiter wakes up.
            self.state = state
            settle(self.future, error=error)
            logger.debug("Watch for %r concluded: %s", describe_expected(self._expected), state)
            if self._timer is not None:
                self._timer.cancel()
            for unsubscribe in self._unsubscribers:
                unsubscribe()
            self._unsubscribers.clear()
            if self._holding:
                self._holding = False
                self._source.release()


def watch_output(
    source: OutputStream,
    expected: str | re.Pattern[str],
    timeout: Timeout = None,
) -> Future[None]:
    """Start watching ``source`` for ``expected`` and return the pending outcome."""
    return OutputWatch(source, expected, timeout=timeout).start()


def wait_for_output(
    source: OutputStream,
    expected: str | re.Pattern[str],
    timeout: Timeout = None,
) -> None:
    watch_output(source, expected, timeout).result()

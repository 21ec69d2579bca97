from __future__ import annotations

import re
import time

import pytest

from spawn_tools import NO_TIMEOUT, OutputStream, OutputWatch, WatchTimeoutError, watch_output
from spawn_tools.watch import default_watch_timeout


def test_watch_resolves_when_text_appears() -> None:
    stream = OutputStream()
    outcome = watch_output(stream, "ready", timeout=2.0)

    stream.write("loading\n")
    assert not outcome.done()
    stream.write("\u001b[32mready\u001b[0m\n")

    assert outcome.result(timeout=1) is None
    assert stream._listeners == []


def test_watch_finds_text_split_across_chunks() -> None:
    stream = OutputStream()
    outcome = watch_output(stream, "listening on 8080", timeout=2.0)

    for piece in ["server ", "listen", "ing on ", "80", "80\n"]:
        stream.write(piece)

    assert outcome.result(timeout=1) is None


def test_watch_times_out_naming_expected_text() -> None:
    stream = OutputStream()
    stream.write("loading\n")
    outcome = watch_output(stream, "ready", timeout=0.05)

    with pytest.raises(WatchTimeoutError) as info:
        outcome.result(timeout=2)

    message = str(info.value)
    assert 'Expected output "ready" within 0.05s was not generated' in message
    assert "loading" in message
    assert info.value.timeout_seconds == 0.05


def test_watch_fails_when_stream_ends_without_match() -> None:
    stream = OutputStream()
    outcome = watch_output(stream, "ready", timeout=NO_TIMEOUT)

    stream.write("crashed\n")
    stream.end()

    with pytest.raises(WatchTimeoutError, match='Expected output "ready" was not generated') as info:
        outcome.result(timeout=1)
    assert info.value.timeout_seconds is None


def test_pattern_watch_matches_short_output_at_end_of_stream() -> None:
    stream = OutputStream()
    outcome = watch_output(stream, re.compile(r"exit code \d+"), timeout=NO_TIMEOUT)

    stream.write("exit code 7\n")
    assert not outcome.done()
    stream.end()

    assert outcome.result(timeout=1) is None


def test_pattern_watch_failure_describes_pattern() -> None:
    stream = OutputStream()
    outcome = watch_output(stream, re.compile(r"ok\d"), timeout=NO_TIMEOUT)
    stream.end()

    with pytest.raises(WatchTimeoutError, match=r'Expected output "/ok\\d/" was not generated'):
        outcome.result(timeout=1)


def test_watch_settles_exactly_once() -> None:
    stream = OutputStream()
    watch = OutputWatch(stream, "late", timeout=0.05)
    outcome = watch.start()

    with pytest.raises(WatchTimeoutError):
        outcome.result(timeout=2)
    stream.write("late\n")
    stream.end()

    assert watch.state == "timed_out"
    assert isinstance(outcome.exception(), WatchTimeoutError)


@pytest.mark.parametrize("attempt", range(20))
def test_watch_state_is_final_once_outcome_is_visible(attempt: int) -> None:
    stream = OutputStream()
    watch = OutputWatch(stream, "late", timeout=0.001)
    outcome = watch.start()

    assert isinstance(outcome.exception(timeout=2), WatchTimeoutError)
    assert watch.state == "timed_out"


def test_match_cancels_timeout() -> None:
    stream = OutputStream()
    watch = OutputWatch(stream, "go", timeout=0.05)
    outcome = watch.start()
    stream.write("go!")

    time.sleep(0.15)

    assert watch.state == "matched"
    assert outcome.exception() is None


def test_watch_sees_queued_output_and_restores_pause() -> None:
    stream = OutputStream()
    stream.pause()
    stream.write("ready\n")
    stream.write("more\n")

    outcome = watch_output(stream, "ready", timeout=1.0)

    assert outcome.result(timeout=1) is None
    assert stream.is_paused
    assert stream._pending == ["more\n"]


def test_overlapping_watches_on_paused_stream_both_resolve() -> None:
    stream = OutputStream()
    stream.pause()

    first = watch_output(stream, "a", 0.3)
    second = watch_output(stream, "b", 0.3)
    stream.write("a")

    assert first.result(timeout=1) is None
    assert not stream.is_paused
    stream.write("b")

    assert second.result(timeout=1) is None
    assert stream.is_paused
    assert stream._pending == []


def test_stream_stays_paused_after_overlapping_watches_time_out() -> None:
    stream = OutputStream()
    stream.pause()

    outcomes = [watch_output(stream, "never", 0.05), watch_output(stream, "never", 0.1)]

    for outcome in outcomes:
        with pytest.raises(WatchTimeoutError):
            outcome.result(timeout=2)
    assert stream.is_paused


def test_watch_leaves_flowing_stream_flowing() -> None:
    stream = OutputStream()
    outcome = watch_output(stream, "x", timeout=1.0)
    stream.write("x")

    assert outcome.result(timeout=1) is None
    assert not stream.is_paused


def test_watch_after_end_of_paused_stream_keeps_it_paused() -> None:
    stream = OutputStream()
    stream.pause()
    stream.end()

    outcome = watch_output(stream, "never", timeout=NO_TIMEOUT)

    with pytest.raises(WatchTimeoutError):
        outcome.result(timeout=1)
    assert stream.is_paused


def test_watch_cannot_be_started_twice() -> None:
    watch = OutputWatch(OutputStream(), "x", timeout=NO_TIMEOUT)
    watch.start()

    with pytest.raises(RuntimeError):
        watch.start()


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, 0.5),
        ("0.05", 0.05),
        ("0", None),
        ("soon", 0.5),
    ],
)
def test_default_watch_timeout_from_env(monkeypatch: pytest.MonkeyPatch, raw, expected) -> None:
    if raw is None:
        monkeypatch.delenv("DEVKIT_WATCH_TIMEOUT_SECONDS", raising=False)
    else:
        monkeypatch.setenv("DEVKIT_WATCH_TIMEOUT_SECONDS", raw)

    assert default_watch_timeout() == expected

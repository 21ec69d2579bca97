from __future__ import annotations

import re


class SpawnError(RuntimeError):
    pass


def describe_expected(expected: str | re.Pattern[str]) -> str:
    if isinstance(expected, re.Pattern):
        return f"/{expected.pattern}/"
    return expected


class WatchTimeoutError(SpawnError):
    """The expected output did not appear in time (or before the process ended)."""

    def __init__(
        self,
        expected: str | re.Pattern[str],
        output: str,
        timeout_seconds: float | None,
    ) -> None:
        self.expected = expected
        self.output = output
        self.timeout_seconds = timeout_seconds
        if timeout_seconds is None:
            message = f'Expected output "{describe_expected(expected)}" was not generated, got:\n{output}'
        else:
            message = (
                f'Expected output "{describe_expected(expected)}" within {timeout_seconds:.2f}s '
                f"was not generated, got:\n{output}"
            )
        super().__init__(message)

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import partial

from text_replace.errors import ConfigurationError


def _echo_match(match: re.Match[str]) -> str:
    return match.group(0)


@dataclass(frozen=True)
class LiteralFilter:
    substring: str
    replacement: str


@dataclass(frozen=True)
class PatternFilter:
    pattern: str | re.Pattern[str]
    replacement: Callable[[re.Match[str]], str] = _echo_match


FilterRule = LiteralFilter | PatternFilter


@dataclass(frozen=True)
class MatchResult:
    offset: int
    length: int
    before: str
    after: str
    _replacement: Callable[[], str]

    def replacement(self) -> str:
        return self._replacement()


Matcher = Callable[[str], "MatchResult | None"]


def _match_literal(substring: str, replacement: str, buffer: str) -> MatchResult | None:
    index = buffer.find(substring)
    if index < 0:
        return None
    end = index + len(substring)
    return MatchResult(
        offset=index,
        length=len(substring),
        before=buffer[:index],
        after=buffer[end:],
        _replacement=lambda: replacement,
    )


def _match_pattern(
    pattern: re.Pattern[str],
    replacement: Callable[[re.Match[str]], str],
    buffer: str,
) -> MatchResult | None:
    # Always a fresh search over the whole buffer; no cursor survives between calls.
    found = pattern.search(buffer)
    if found is None or not found.group(0):
        return None
    start, end = found.span()
    return MatchResult(
        offset=start,
        length=end - start,
        before=buffer[:start],
        after=buffer[end:],
        _replacement=partial(replacement, found),
    )


def compile_filters(rules: Sequence[FilterRule]) -> tuple[Matcher, ...]:
    if not rules:
        raise ConfigurationError("At least one filter is required")

    matchers: list[Matcher] = []
    for rule in rules:
        if isinstance(rule, LiteralFilter):
            if not rule.substring:
                raise ConfigurationError("substring cannot be empty")
            matchers.append(partial(_match_literal, rule.substring, rule.replacement))
        elif isinstance(rule, PatternFilter):
            pattern = rule.pattern
            if isinstance(pattern, str):
                try:
                    pattern = re.compile(pattern)
                except re.error as e:
                    raise ConfigurationError(f"Invalid pattern {rule.pattern!r}: {e}") from e
            matchers.append(partial(_match_pattern, pattern, rule.replacement))
        else:
            raise ConfigurationError(f"Unsupported filter rule: {rule!r}")
    return tuple(matchers)


def find_match(matchers: Sequence[Matcher], buffer: str) -> MatchResult | None:
    """Return the match of the first rule (in list order) that matches anywhere.

    Rule order wins over position: a later rule matching earlier in the text
    is only consulted when every preceding rule found nothing.
    """
    for matcher in matchers:
        result = matcher(buffer)
        if result is not None:
            return result
    return None


def resolve_max_match_length(rules: Sequence[FilterRule], max_match_length: int | None) -> int:
    if max_match_length is not None:
        if isinstance(max_match_length, bool) or not isinstance(max_match_length, int):
            raise ConfigurationError(
                f"maxMatchLength must be a positive integer, got {max_match_length!r}"
            )
        if max_match_length <= 0:
            raise ConfigurationError(
                f"maxMatchLength must be a positive integer, got {max_match_length!r}"
            )
        return max_match_length

    total = 0
    for rule in rules:
        if isinstance(rule, PatternFilter):
            raise ConfigurationError(
                "maxMatchLength must be specified when using pattern replacement"
            )
        total += len(rule.substring)
    return total

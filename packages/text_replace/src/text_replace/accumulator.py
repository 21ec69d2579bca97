from __future__ import annotations

import codecs
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass

from text_replace.filters import (
    FilterRule,
    MatchResult,
    compile_filters,
    find_match,
    resolve_max_match_length,
)


@dataclass(frozen=True)
class MatchFound:
    position: int
    length: int


@dataclass(frozen=True)
class StreamFlushed:
    total_read: int


MatchEvent = MatchFound | StreamFlushed
EventCallback = Callable[[MatchEvent], None]


class ChunkAccumulator:
    """
    Streaming search-and-replace over text delivered in arbitrary chunks.

    Every match that is fully visible in the buffer is drained before more
    input is requested. Between chunks at most ``2 * max_match_length``
    characters are retained, and at least ``max_match_length`` characters are
    required before matching is attempted, so a match spanning chunk
    boundaries is never missed.

    Parameters
    ----------
    filters
        Ordered, non-empty rules. Earlier rules take priority over later ones
        regardless of where in the text each would match.
    max_match_length
        Upper bound on a single match. Required when any pattern rule is
        present; defaults to the sum of literal substring lengths otherwise.
    on_event
        Receives a ``MatchFound`` per match and one final ``StreamFlushed``.
    stop_after_first_match
        When set, matching stops after the first match and the rest of the
        stream passes through unchanged.
    encoding, errors
        Used to decode ``bytes`` chunks incrementally.
    """

    def __init__(
        self,
        filters: Sequence[FilterRule],
        *,
        max_match_length: int | None = None,
        on_event: EventCallback | None = None,
        stop_after_first_match: bool = False,
        encoding: str = "utf-8",
        errors: str = "strict",
    ) -> None:
        self._matchers = compile_filters(filters)
        self._max_match_length = resolve_max_match_length(filters, max_match_length)
        self._on_event = on_event
        self._stop_after_first_match = stop_after_first_match
        self._decoder = codecs.getincrementaldecoder(encoding)(errors=errors)

        self._buffer = ""
        self._total_consumed = 0
        self._total_read = 0
        self._matched = False
        self._stopped = False
        self._flushed = False

    @property
    def max_match_length(self) -> int:
        return self._max_match_length

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    @property
    def matched(self) -> bool:
        return self._matched

    @property
    def flushed(self) -> bool:
        return self._flushed

    def _emit(self, event: MatchEvent) -> None:
        if self._on_event is not None:
            self._on_event(event)

    def _decode(self, chunk: str | bytes, *, final: bool = False) -> str:
        if isinstance(chunk, bytes):
            return self._decoder.decode(chunk, final=final)
        return chunk

    def _drain(self) -> str:
        out: list[str] = []
        result: MatchResult | None = find_match(self._matchers, self._buffer)
        while result is not None:
            self._matched = True
            self._emit(MatchFound(position=self._total_consumed + result.offset, length=result.length))
            out.append(result.before)
            out.append(result.replacement())
            # Advance by the full pre-match buffer, not just the consumed prefix.
            self._total_consumed += len(self._buffer)
            self._buffer = result.after
            if self._stop_after_first_match:
                self._stopped = True
                break
            result = find_match(self._matchers, self._buffer)
        return "".join(out)

    def _pass_through(self) -> str:
        text = self._buffer
        self._total_consumed += len(text)
        self._buffer = ""
        return text

    def feed(self, chunk: str | bytes) -> str:
        """Accept the next chunk and return the text that is now final."""
        if self._flushed:
            raise RuntimeError("Cannot feed a chunk after the stream was flushed.")

        text = self._decode(chunk)
        self._total_read += len(text)
        self._buffer += text

        if self._stopped:
            return self._pass_through()

        if len(self._buffer) < self._max_match_length:
            return ""

        out = self._drain()
        if self._stopped:
            return out + self._pass_through()

        if len(self._buffer) > self._max_match_length * 2:
            cut_point = len(self._buffer) - self._max_match_length
            out += self._buffer[:cut_point]
            self._buffer = self._buffer[cut_point:]
            self._total_consumed += cut_point
        return out

    def flush(self) -> str:
        """Drain whatever is left regardless of its length and end the stream."""
        if self._flushed:
            raise RuntimeError("Stream was already flushed.")

        tail = self._decode(b"", final=True)
        self._total_read += len(tail)
        self._buffer += tail

        out = ""
        if not self._stopped:
            out = self._drain()
        out += self._pass_through()

        self._flushed = True
        self._emit(StreamFlushed(total_read=self._total_read))
        return out


def iter_replace(
    chunks: Iterable[str | bytes],
    filters: Sequence[FilterRule],
    *,
    max_match_length: int | None = None,
    on_event: EventCallback | None = None,
) -> Iterator[str]:
    # Built eagerly so configuration errors surface before iteration starts.
    accumulator = ChunkAccumulator(filters, max_match_length=max_match_length, on_event=on_event)
    return _iter_accumulated(accumulator, chunks)


def _iter_accumulated(accumulator: ChunkAccumulator, chunks: Iterable[str | bytes]) -> Iterator[str]:
    for chunk in chunks:
        out = accumulator.feed(chunk)
        if out:
            yield out
    out = accumulator.flush()
    if out:
        yield out


def replace_text(
    chunks: str | Iterable[str | bytes],
    filters: Sequence[FilterRule],
    *,
    max_match_length: int | None = None,
    on_event: EventCallback | None = None,
) -> str:
    if isinstance(chunks, str):
        chunks = [chunks]
    return "".join(
        iter_replace(chunks, filters, max_match_length=max_match_length, on_event=on_event)
    )

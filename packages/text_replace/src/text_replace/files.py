from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypeVar

from text_replace.accumulator import ChunkAccumulator, MatchEvent, MatchFound
from text_replace.filters import FilterRule

logger = logging.getLogger(__name__)

_DEFAULT_CHUNK_SIZE = 64 * 1024
# Undecodable bytes survive a rewrite unchanged.
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"

T = TypeVar("T")


@dataclass(frozen=True)
class FileMatches:
    path: Path
    matches: list[MatchFound] = field(default_factory=list)


def _is_dot_path(rel: Path) -> bool:
    return any(part.startswith(".") for part in rel.parts)


def _is_excluded(path: Path, root: Path, excluded: set[Path]) -> bool:
    # An excluded directory excludes everything below it.
    cur = path
    while cur != root and cur != cur.parent:
        if cur in excluded:
            return True
        cur = cur.parent
    return False


def iter_files(
    target: Path | str | None,
    include: Sequence[str],
    exclude: Sequence[str] | None = None,
    *,
    dot: bool = False,
    follow_symlinks: bool = False,
) -> Iterator[Path]:
    """Yield files under ``target`` matching any ``include`` glob and no ``exclude`` glob."""
    root = Path(target) if target is not None else Path(".")

    excluded: set[Path] = set()
    for pattern in exclude or []:
        excluded.update(root.glob(pattern))

    seen: set[Path] = set()
    for pattern in include:
        for path in sorted(root.glob(pattern), key=lambda p: str(p)):
            if path in seen or _is_excluded(path, root, excluded):
                continue
            seen.add(path)
            if not dot and _is_dot_path(path.relative_to(root)):
                continue
            if path.is_symlink() and not follow_symlinks:
                continue
            if not path.is_file():
                continue
            yield path


def _encode(text: str) -> bytes:
    return text.encode(_ENCODING, _ERRORS)


def _feed_in_place(
    path: Path,
    accumulator: ChunkAccumulator,
    *,
    chunk_size: int,
) -> None:
    # Reads and writes share the file; output is only safe while it never
    # outgrows the input consumed so far.
    with path.open("rb") as reader, path.open("r+b") as writer:
        size = os.fstat(reader.fileno()).st_size
        overtaken = False
        try:
            while True:
                # Never read past the original end; anything beyond was written by us.
                remaining = size - reader.tell()
                chunk = reader.read(min(chunk_size, remaining)) if remaining > 0 else b""
                if not chunk:
                    break
                out = accumulator.feed(chunk)
                if out:
                    writer.write(_encode(out))
                    if not overtaken and writer.tell() > reader.tell() and reader.tell() < size:
                        overtaken = True
                        logger.warning(
                            "Replacement output overtook unread input in %s; "
                            "in-place rewriting requires replacements no longer than their matches.",
                            path,
                        )
            out = accumulator.flush()
            if out:
                writer.write(_encode(out))
        except BaseException:
            # Nothing written means the file is untouched. Otherwise cut it at
            # the rewritten prefix instead of leaving stale bytes behind it.
            written = writer.tell()
            if written:
                writer.truncate()
                logger.error("Rewriting %s failed; the file was truncated to %d byte(s).", path, written)
            raise
        writer.truncate()


def replace_text_in_file(
    path: Path | str,
    filters: Sequence[FilterRule],
    *,
    max_match_length: int | None = None,
    chunk_size: int = _DEFAULT_CHUNK_SIZE,
) -> None:
    """
    Rewrite ``path`` in place, streaming it through one accumulator.

    Known limitation: the file is read and written through two cursors on the
    same file, so only replacements that are no longer than the text they
    replace are safe. Longer replacements may clobber bytes that were not read
    yet; this is logged but not prevented.

    Bytes that are not valid UTF-8 are carried through unchanged, so binary
    files only change where a filter matched.
    """
    accumulator = ChunkAccumulator(
        filters,
        max_match_length=max_match_length,
        encoding=_ENCODING,
        errors=_ERRORS,
    )
    _feed_in_place(Path(path), accumulator, chunk_size=chunk_size)


def search_text_in_file(
    path: Path | str,
    filters: Sequence[FilterRule],
    *,
    max_match_length: int | None = None,
    chunk_size: int = _DEFAULT_CHUNK_SIZE,
) -> FileMatches:
    result = FileMatches(path=Path(path))

    def _on_event(event: MatchEvent) -> None:
        if isinstance(event, MatchFound):
            result.matches.append(event)

    accumulator = ChunkAccumulator(
        filters,
        max_match_length=max_match_length,
        on_event=_on_event,
        encoding=_ENCODING,
        errors=_ERRORS,
    )
    with result.path.open("rb") as reader:
        for chunk in iter(lambda: reader.read(chunk_size), b""):
            accumulator.feed(chunk)
    accumulator.flush()
    return result


def _all_fulfilled(futures: Sequence[Future[T]]) -> list[T]:
    """Wait for every future, then raise the first failure in submission order."""
    wait(futures)
    for future in futures:
        exc = future.exception()
        if exc is not None:
            raise exc
    return [future.result() for future in futures]


def _run_per_file(
    task: Callable[[Path], T],
    files: Iterator[Path],
    *,
    max_workers: int | None,
) -> list[T]:
    futures: list[Future[T]] = []
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="text-replace") as pool:
        try:
            for path in files:
                logger.debug("Queued %s", path)
                futures.append(pool.submit(task, path))
        finally:
            results = _all_fulfilled(futures)
    return results


def replace_text_in_files(
    target: Path | str | None,
    include: Sequence[str],
    filters: Sequence[FilterRule],
    *,
    exclude: Sequence[str] | None = None,
    max_match_length: int | None = None,
    dot: bool = False,
    follow_symlinks: bool = False,
    max_workers: int | None = None,
) -> list[Path]:
    """
    Rewrite every matching file in place, one accumulator per file.

    All files are processed concurrently. The call returns once enumeration
    has finished and every file has been attempted; if any file failed, the
    first failure (in enumeration order) is raised after the rest settled.
    """
    # Validate eagerly; a bad filter set must not touch any file.
    ChunkAccumulator(filters, max_match_length=max_match_length)

    def _task(path: Path) -> Path:
        replace_text_in_file(path, filters, max_match_length=max_match_length)
        return path

    files = iter_files(target, include, exclude, dot=dot, follow_symlinks=follow_symlinks)
    changed = _run_per_file(_task, files, max_workers=max_workers)
    logger.debug("Rewrote %d file(s) under %s", len(changed), target or os.curdir)
    return changed


def search_text_in_files(
    target: Path | str | None,
    include: Sequence[str],
    filters: Sequence[FilterRule],
    *,
    exclude: Sequence[str] | None = None,
    max_match_length: int | None = None,
    dot: bool = False,
    follow_symlinks: bool = False,
    max_workers: int | None = None,
) -> list[FileMatches]:
    ChunkAccumulator(filters, max_match_length=max_match_length)

    def _task(path: Path) -> FileMatches:
        return search_text_in_file(path, filters, max_match_length=max_match_length)

    files = iter_files(target, include, exclude, dot=dot, follow_symlinks=follow_symlinks)
    results = _run_per_file(_task, files, max_workers=max_workers)
    return [r for r in results if r.matches]

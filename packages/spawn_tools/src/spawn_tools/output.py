from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from contextlib import AbstractContextManager

from spawn_tools.ansi import strip_ansi

logger = logging.getLogger(__name__)

ChunkListener = Callable[[str], None]
EndListener = Callable[[], None]
ErrorListener = Callable[[BaseException], None]
Unsubscribe = Callable[[], None]


class OutputStream:
    """
    Shared, merged stdout/stderr text of one child process.

    Raw text is kept in a combined buffer for snapshots. Subscribers receive
    ANSI-stripped chunks while the stream is flowing; while paused, chunks are
    queued and delivered on ``resume()``. Data listeners see every raw chunk as
    it is written, paused or not. All dispatch happens under one lock, so a
    subscriber never sees two chunks concurrently.

    ``hold()`` and ``release()`` keep the stream flowing while at least one
    holder is active; the paused state from before the first hold comes back
    when the last holder releases.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._combined: list[str] = []
        self._pending: list[str] = []
        self._listeners: list[ChunkListener] = []
        self._end_listeners: list[EndListener] = []
        self._error_listeners: list[ErrorListener] = []
        self._data_listeners: list[ChunkListener] = []
        self._paused = False
        self._ended = False
        self._holds = 0
        self._paused_before_hold = False

    @property
    def lock(self) -> AbstractContextManager[bool]:
        """Held while output is dispatched; take it to act atomically with respect to writers."""
        return self._lock

    @property
    def is_paused(self) -> bool:
        with self._lock:
            return self._paused

    @property
    def ended(self) -> bool:
        with self._lock:
            return self._ended

    def has_buffered_output(self) -> bool:
        with self._lock:
            return bool(self._combined)

    def subscribe(self, listener: ChunkListener) -> Unsubscribe:
        with self._lock:
            self._listeners.append(listener)
        return lambda: self._remove(self._listeners, listener)

    def on_data(self, listener: ChunkListener) -> Unsubscribe:
        with self._lock:
            self._data_listeners.append(listener)
        return lambda: self._remove(self._data_listeners, listener)

    def on_end(self, listener: EndListener) -> Unsubscribe:
        with self._lock:
            if self._ended and not self._paused:
                listener()
                return lambda: None
            self._end_listeners.append(listener)
        return lambda: self._remove(self._end_listeners, listener)

    def on_error(self, listener: ErrorListener) -> Unsubscribe:
        with self._lock:
            self._error_listeners.append(listener)
        return lambda: self._remove(self._error_listeners, listener)

    def _remove(self, listeners: list, listener: object) -> None:
        with self._lock:
            try:
                listeners.remove(listener)
            except ValueError:
                return

    def _dispatch(self, text: str) -> None:
        for listener in list(self._listeners):
            if listener not in self._listeners:
                continue
            try:
                listener(text)
            except Exception:  # noqa: BLE001
                logger.exception("Output listener failed; continuing with remaining listeners")

    def write(self, chunk: str) -> None:
        if not chunk:
            return
        with self._lock:
            self._combined.append(chunk)
            for listener in list(self._data_listeners):
                try:
                    listener(chunk)
                except Exception:  # noqa: BLE001
                    logger.exception("Output data listener failed")
            text = strip_ansi(chunk)
            if self._paused:
                self._pending.append(text)
                return
            self._dispatch(text)

    def pause(self) -> None:
        with self._lock:
            self._paused = True

    def resume(self) -> None:
        with self._lock:
            self._paused = False
            # A listener may pause the stream again mid-delivery; the rest stays queued.
            while self._pending and not self._paused:
                self._dispatch(self._pending.pop(0))
            if self._ended and not self._paused and not self._pending:
                self._notify_end()

    def hold(self) -> None:
        with self._lock:
            if self._holds == 0:
                self._paused_before_hold = self._paused
            self._holds += 1
            if self._paused:
                self.resume()

    def release(self) -> None:
        with self._lock:
            if self._holds == 0:
                raise RuntimeError("release() called without a matching hold()")
            self._holds -= 1
            if self._holds:
                return
            if self._paused_before_hold:
                self.pause()
            elif self._paused:
                self.resume()

    def fail(self, exc: BaseException) -> None:
        logger.warning("Process output stream reported an error: %s", exc)
        with self._lock:
            for listener in list(self._error_listeners):
                try:
                    listener(exc)
                except Exception:  # noqa: BLE001
                    logger.exception("Output error listener failed")

    def _notify_end(self) -> None:
        listeners, self._end_listeners = self._end_listeners, []
        for listener in listeners:
            try:
                listener()
            except Exception:  # noqa: BLE001
                logger.exception("Output end listener failed")

    def end(self) -> None:
        with self._lock:
            if self._ended:
                return
            self._ended = True
            if not self._paused:
                self._notify_end()

    def snapshot(self) -> str:
        with self._lock:
            return strip_ansi("".join(self._combined))

    def next_snapshot(self) -> str:
        with self._lock:
            text = strip_ansi("".join(self._combined))
            self._combined.clear()
            return text

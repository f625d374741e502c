"""Closable, bounded, thread-safe channel connecting pipeline stages.

A :class:`Stream` has many producers and one logical consumer.  ``put``
blocks while the buffer is full and ``get`` blocks while it is empty, which
is what propagates backpressure from a slow sink to the first stage.
Closing the stream is the only end-of-data signal: consumers drain what is
left and then stop.

A consumer that gives up (a sink hitting a fatal error) calls ``cancel``.
Blocked producers then get :class:`StreamCancelled` instead of waiting
forever on a buffer nobody reads.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Generic, Iterator, TypeVar

from drugcrawl.errors import StreamCancelled, StreamClosed

T = TypeVar("T")


class Stream(Generic[T]):
    def __init__(self, maxsize: int = 1) -> None:
        if maxsize < 1:
            raise ValueError(f"Stream buffer must hold at least one item, got {maxsize}")
        self._maxsize = maxsize
        self._items: Deque[T] = deque()
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)
        self._closed = False
        self._cancelled = False

    @classmethod
    def of(cls, *items: T) -> "Stream[T]":
        """A pre-filled stream that is already closed (the pipeline seed)."""
        stream: Stream[T] = cls(maxsize=max(len(items), 1))
        for item in items:
            stream.put(item)
        stream.close()
        return stream

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def put(self, item: T) -> None:
        """Append *item*, blocking while the buffer is full.

        Raises:
            StreamCancelled: The consumer abandoned the stream.
            StreamClosed: The stream was already closed by its producers.
        """
        with self._not_full:
            while len(self._items) >= self._maxsize and not self._closed:
                self._not_full.wait()
            if self._cancelled:
                raise StreamCancelled("stream was cancelled by its consumer")
            if self._closed:
                raise StreamClosed("put on a closed stream")
            self._items.append(item)
            self._not_empty.notify()

    def get(self) -> T:
        """Remove and return the next item, blocking while the buffer is empty.

        Raises:
            StreamClosed: The stream is closed and fully drained.
        """
        with self._not_empty:
            while not self._items and not self._closed:
                self._not_empty.wait()
            if not self._items:
                raise StreamClosed("stream is closed")
            item = self._items.popleft()
            self._not_full.notify()
            return item

    def close(self) -> None:
        """Signal end of data.  Closing twice is a bug and raises.

        Closing a cancelled stream is a no-op: the consumer is already gone.
        """
        with self._lock:
            if self._cancelled:
                return
            if self._closed:
                raise StreamClosed("stream already closed")
            self._closed = True
            self._not_empty.notify_all()
            self._not_full.notify_all()

    def cancel(self) -> None:
        """Abandon the stream from the consumer side, dropping buffered items."""
        with self._lock:
            self._cancelled = True
            self._closed = True
            self._items.clear()
            self._not_empty.notify_all()
            self._not_full.notify_all()

    def __iter__(self) -> Iterator[T]:
        while True:
            try:
                yield self.get()
            except StreamClosed:
                return

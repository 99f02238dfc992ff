from __future__ import annotations

import queue
import threading
from collections import deque
from typing import Generic, Iterator, TypeVar

T = TypeVar("T")


class StreamClosed(Exception):
    pass


class Stream(Generic[T]):
    """Unbuffered single-producer, single-consumer channel.

    ``publish`` returns only once the consumer has taken the item, so a slow
    consumer holds the producer back instead of losing values.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._items: deque[T] = deque()
        self._closed = False

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def publish(self, item: T, cancel: threading.Event) -> bool:
        """Hand ``item`` to the consumer; ``False`` if cancelled first."""
        with self._cond:
            if self._closed or cancel.is_set():
                return False
            self._items.append(item)
            self._cond.notify_all()

            while self._items:
                if self._closed or cancel.is_set():
                    self._items.clear()
                    return False
                self._cond.wait()
            return True

    def get(self, timeout: float | None = None) -> T:
        with self._cond:
            if not self._cond.wait_for(lambda: self._items or self._closed, timeout):
                raise queue.Empty
            if not self._items:
                raise StreamClosed
            item = self._items.popleft()
            self._cond.notify_all()
            return item

    def wake(self) -> None:
        with self._cond:
            self._cond.notify_all()

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._items.clear()
            self._cond.notify_all()

    def __iter__(self) -> Iterator[T]:
        while True:
            try:
                yield self.get()
            except StreamClosed:
                return

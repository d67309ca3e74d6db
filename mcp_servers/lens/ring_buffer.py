"""Fixed-capacity FIFO used for bounded console-log retention."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable, Iterable, Iterator
from typing import Generic, TypeVar

T = TypeVar("T")


class ConsoleRingBuffer(Generic[T]):
    """Ring buffer keeping the most recent ``capacity`` items, oldest first.

    Writers append under a lock and readers always get a copy, so the
    console-event callback can push while the Bridge or the catalog read.
    """

    def __init__(self, capacity: int) -> None:
        if int(capacity) <= 0:
            raise ValueError("ConsoleRingBuffer capacity must be positive")
        self._capacity = int(capacity)
        self._items: deque[T] = deque(maxlen=self._capacity)
        self._lock = threading.Lock()

    def push(self, item: T) -> None:
        """Append ``item``; when full the oldest item is evicted first."""
        with self._lock:
            self._items.append(item)

    def push_many(self, items: Iterable[T]) -> None:
        with self._lock:
            self._items.extend(items)

    def to_list(self) -> list[T]:
        """Copy of the contents, oldest to newest."""
        with self._lock:
            return list(self._items)

    def last(self, n: int) -> list[T]:
        if n <= 0:
            return []
        items = self.to_list()
        return items[-n:]

    def peek(self) -> T | None:
        with self._lock:
            return self._items[-1] if self._items else None

    def filter(self, predicate: Callable[[T], bool]) -> list[T]:
        return [item for item in self.to_list() if predicate(item)]

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    @property
    def is_full(self) -> bool:
        return len(self) == self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.to_list())


__all__ = ["ConsoleRingBuffer"]

"""
Fixed-capacity ring buffer.

Sample history must stay bounded for the lifetime of a session, so instead of
growing a list we keep a preallocated slot array plus a head index and evict the
oldest entry on overflow.
"""

from __future__ import annotations

from typing import Generic, Iterator, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    def __init__(self, capacity: int):
        if int(capacity) <= 0:
            raise ValueError("capacity must be > 0")
        self._capacity = int(capacity)
        self._slots: list[T | None] = [None] * self._capacity
        # Index of the oldest element.
        self._head = 0
        self._size = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return self._size

    def is_full(self) -> bool:
        return self._size == self._capacity

    def append(self, item: T) -> T | None:
        """Append `item`; return the evicted oldest element when the buffer was full."""
        if self._size < self._capacity:
            self._slots[(self._head + self._size) % self._capacity] = item
            self._size += 1
            return None
        evicted = self._slots[self._head]
        self._slots[self._head] = item
        self._head = (self._head + 1) % self._capacity
        return evicted

    def __getitem__(self, index: int) -> T:
        if index < 0:
            index += self._size
        if not 0 <= index < self._size:
            raise IndexError("ring buffer index out of range")
        return self._slots[(self._head + index) % self._capacity]  # type: ignore[return-value]

    def last(self) -> T | None:
        return self[-1] if self._size else None

    def __iter__(self) -> Iterator[T]:
        for i in range(self._size):
            yield self[i]

    def to_list(self) -> list[T]:
        return list(self)

    def clear(self) -> None:
        self._slots = [None] * self._capacity
        self._head = 0
        self._size = 0

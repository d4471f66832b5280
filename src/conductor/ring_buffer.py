"""Fixed-capacity circular log with a monotonically increasing logical index.

The externally visible ``len()`` keeps growing as values are written while
anything older than ``capacity`` entries is forgotten: reading an evicted
index returns ``None``, writing one raises :class:`BufferIndexError`.

Usage:
    buf = RingBuffer(32)
    buf.append(sample)          # same as buf.set(len(buf), sample)
    latest = buf.latest()       # buf.get(len(buf) - 1)
"""

from __future__ import annotations

from typing import Generic, Iterator, Optional, TypeVar

T = TypeVar("T")


class BufferIndexError(IndexError):
    """Raised when writing to a negative or already-evicted logical index."""


class RingBuffer(Generic[T]):
    """Circular storage addressed by logical (never wrapping) indices."""

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"RingBuffer capacity must be positive, got {capacity}")
        self._slots: list[Optional[T]] = [None] * capacity
        self._length = 0

    def __len__(self) -> int:
        return self._length

    def __repr__(self) -> str:
        return f"RingBuffer(capacity={self.capacity}, length={self._length})"

    @property
    def capacity(self) -> int:
        return len(self._slots)

    @property
    def oldest_index(self) -> int:
        """Smallest logical index that is still retained."""
        return max(0, self._length - self.capacity)

    @property
    def retained(self) -> int:
        """Number of values currently readable."""
        return self._length - self.oldest_index

    def _is_evicted(self, index: int) -> bool:
        return index < 0 or index < self._length - self.capacity

    def get(self, index: int) -> Optional[T]:
        """Return the value at ``index``, or None if not yet written or evicted."""
        if self._is_evicted(index) or index >= self._length:
            return None
        return self._slots[index % self.capacity]

    def set(self, index: int, value: T):
        """Write ``value`` at logical ``index``.

        Writing at ``len(self)`` appends. Writing past it pads the skipped
        slots with None; writing a retained index overwrites in place.
        """
        if self._is_evicted(index):
            raise BufferIndexError(
                f"index {index} is evicted (length={self._length}, capacity={self.capacity})"
            )
        while index > self._length:
            self._slots[self._length % self.capacity] = None
            self._length += 1
        self._slots[index % self.capacity] = value
        if index == self._length:
            self._length += 1

    def append(self, value: T):
        self.set(self._length, value)

    def latest(self, offset: int = 0) -> Optional[T]:
        """Value ``offset`` entries back from the newest (0 = newest)."""
        return self.get(self._length - 1 - offset)

    def clear(self):
        """Forget all logical history. Physical slots are left as they are."""
        self._length = 0

    def __iter__(self) -> Iterator[T]:
        """Yield retained values from oldest to newest."""
        for i in range(self.oldest_index, self._length):
            yield self._slots[i % self.capacity]  # type: ignore[misc]

    def values(self, last: Optional[int] = None) -> list[T]:
        """Retained values oldest→newest, optionally only the trailing ``last``."""
        start = self.oldest_index
        if last is not None:
            start = max(start, self._length - last)
        return [self._slots[i % self.capacity] for i in range(start, self._length)]  # type: ignore[misc]

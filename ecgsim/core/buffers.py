from typing import Iterator, Optional, Tuple

import numpy as np


class SampleBuffer:
    """
    Fixed-capacity sample history addressed by absolute sample index.

    Backed by a preallocated numpy ring: appends overwrite the oldest slot
    once full, so eviction and lookup are both O(1).

    Invariant: start_index + len(self) == end_index, where end_index is the
    total number of samples ever appended since the last clear().
    """
    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = int(capacity)
        self._data = np.zeros(self.capacity)
        self._head = 0      # slot holding the oldest live sample
        self._size = 0
        self._start_index = 0

    def __len__(self) -> int:
        return self._size

    @property
    def start_index(self) -> int:
        """Absolute index of the oldest live sample."""
        return self._start_index

    @property
    def end_index(self) -> int:
        """Absolute index one past the newest sample."""
        return self._start_index + self._size

    @property
    def is_full(self) -> bool:
        return self._size == self.capacity

    def append(self, value: float) -> int:
        """Store a sample and return its absolute index."""
        if self._size < self.capacity:
            self._data[(self._head + self._size) % self.capacity] = value
            self._size += 1
        else:
            self._data[self._head] = value
            self._head = (self._head + 1) % self.capacity
            self._start_index += 1
        return self.end_index - 1

    def contains(self, index: int) -> bool:
        return self._start_index <= index < self.end_index

    def get(self, index: int) -> Optional[float]:
        """Sample at an absolute index, or None when not buffered."""
        if not self.contains(index):
            return None
        return float(self._data[(self._head + index - self._start_index) % self.capacity])

    def tail(self, count: int) -> np.ndarray:
        """Copy of the newest `count` samples in chronological order."""
        count = max(0, min(count, self._size))
        if count == 0:
            return np.empty(0)
        first = (self._head + self._size - count) % self.capacity
        if first + count <= self.capacity:
            return self._data[first:first + count].copy()
        split = self.capacity - first
        return np.concatenate((self._data[first:], self._data[:count - split]))

    def since(self, index: int) -> Tuple[int, np.ndarray]:
        """(start, samples) for every live sample at or after `index`."""
        start = max(index, self._start_index)
        return start, self.tail(self.end_index - start)

    def __iter__(self) -> Iterator[Tuple[int, float]]:
        for offset, value in enumerate(self.tail(self._size)):
            yield self._start_index + offset, float(value)

    def clear(self) -> None:
        self._head = 0
        self._size = 0
        self._start_index = 0

"""
Fixed-capacity sample store.

The buffer is a preallocated numpy array with a write cursor.  Once full
it keeps overwriting the oldest slot, so it always holds the most recent
``capacity`` samples and never allocates after construction.
"""

from __future__ import annotations

from typing import Iterator

import numpy as np


class RingBuffer:
    """
    Circular buffer of the last ``capacity`` samples.

    Parameters
    ----------
    capacity:
        Number of slots.  Every slot always holds a value; slots that were
        never written contain ``fill_value``.
    fill_value:
        Initial value of every slot.
    dtype:
        numpy dtype of the stored samples (default ``float``).
    """

    def __init__(self, capacity: int, fill_value: float = 0.0, dtype=float) -> None:
        if capacity < 1:
            raise ValueError(f"RingBuffer capacity must be >= 1, got {capacity}")
        self._data = np.full(int(capacity), fill_value, dtype=dtype)
        self.next: int = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def capacity(self) -> int:
        return self._data.shape[0]

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    def add(self, sample) -> None:
        """Overwrite the oldest slot with *sample* and advance the cursor."""
        self._data[self.next] = sample
        self.next = (self.next + 1) % self.capacity

    def snapshot(self) -> np.ndarray:
        """Return a chronological copy (oldest first) of all slots."""
        return np.concatenate((self._data[self.next:], self._data[:self.next]))

    def __iter__(self) -> Iterator:
        idx = self.next
        for _ in range(self.capacity):
            yield self._data[idx].item()
            idx = (idx + 1) % self.capacity

    def __len__(self) -> int:
        return self.capacity

    def __repr__(self) -> str:
        return f"RingBuffer(capacity={self.capacity}, next={self.next}, dtype={self.dtype})"

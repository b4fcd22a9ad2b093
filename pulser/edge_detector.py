"""
Batch derivative zero-crossing ("edge-crossing") beat detector.

Works on a whole detrended window at once.  A PPG beat ends in a steep
high-to-low edge: the derivative stays non-negative on the way up, turns
negative after the systolic peak, and turns back non-negative at the
trough.  Every such high → low transition is a candidate
:class:`Heartbeat`.

Algorithm
---------
1. Take first differences of the window (N-1 values).
2. Track the latest point of each rising run as the candidate high; when
   the derivative turns from negative back to non-negative, pair the
   candidate with the current point (the trough).
3. Drop heartbeats whose drop is smaller than ``amplitude_fraction`` of the
   window's peak-to-trough range.
4. Push the index distances between consecutive accepted heartbeats into
   a bounded max-heap.
5. Throw away the larger half of the distances and convert the largest
   remaining one to BPM: ``60 · fs / distance``.
6. Report the BPM only if enough beats were accepted and it lies inside
   the physiological band.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .config import BatchConfig, BpmBand

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Heartbeat:
    """A high-to-low transition; indices are relative to the analysed window."""

    high_idx: int
    high_value: float
    low_idx: int
    low_value: float

    @property
    def amplitude(self) -> float:
        return self.high_value - self.low_value


class DistanceHeap:
    """
    Fixed-capacity max-heap of inter-beat distances.

    Pushing into a full heap drops the value and returns ``False``.
    """

    def __init__(self, capacity: int = 16) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._heap: List[int] = []

    def push(self, distance: int) -> bool:
        if len(self._heap) >= self.capacity:
            return False
        heapq.heappush(self._heap, -int(distance))
        return True

    def pop(self) -> Optional[int]:
        """Remove and return the largest distance."""
        if not self._heap:
            return None
        return -heapq.heappop(self._heap)

    def peek(self) -> Optional[int]:
        return -self._heap[0] if self._heap else None

    def __len__(self) -> int:
        return len(self._heap)

    def __iter__(self) -> Iterator[int]:
        return (-d for d in self._heap)


def iter_heartbeats(window: Sequence[float]) -> Iterator[Heartbeat]:
    """
    Yield every high → low transition in *window*, unfiltered.

    The first difference only primes the "previous derivative", so a
    window that starts on a falling edge yields nothing until a full
    rising run has been seen.

    A candidate high is consumed by the trough it pairs with.  A second
    trough after a small wiggle on the same falling edge has no rising
    run of its own and yields nothing, rather than pairing with the old
    high again.
    """
    data = np.asarray(window, dtype=np.float64).ravel()
    if data.shape[0] < 2:
        return
    deriv = np.diff(data)

    last_deriv = deriv[0]
    high: Optional[int] = None
    for i in range(1, deriv.shape[0]):
        d = deriv[i]
        prev, last_deriv = last_deriv, d
        if d < 0:
            continue
        if prev >= 0:
            high = i
        elif high is not None:
            yield Heartbeat(
                high_idx=high,
                high_value=float(data[high]),
                low_idx=i,
                low_value=float(data[i]),
            )
            high = None


def bpm_from_distances(heap: DistanceHeap, sample_rate: float) -> Optional[float]:
    """
    Robust BPM from inter-beat distances (in samples).

    The larger half of the distances is discarded; the largest of the rest
    is taken as the typical interval.  Consumes *heap*.
    """
    if len(heap) == 0:
        return None
    for _ in range(len(heap) // 2):
        heap.pop()
    distance = heap.peek()
    if not distance or distance <= 0:
        return None
    return 60.0 * sample_rate / distance


class EdgeCrossingDetector:
    """
    Windowed heartbeat detector.

    Parameters
    ----------
    sample_rate:
        Sampling frequency of the window in Hz.
    config:
        Acceptance thresholds (see :class:`~pulser.config.BatchConfig`).
    band:
        Physiological band; a BPM outside it is not reported.
    """

    def __init__(
        self,
        sample_rate: float,
        config: BatchConfig | None = None,
        band: BpmBand | None = None,
    ) -> None:
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")
        self.sample_rate = sample_rate
        self.config = config if config is not None else BatchConfig()
        self.band = band if band is not None else BpmBand()

    def detect(self, window: Sequence[float]) -> List[Heartbeat]:
        """Return the heartbeats in *window* that clear the amplitude threshold."""
        data = np.asarray(window, dtype=np.float64).ravel()
        if data.shape[0] < 3:
            return []
        span = float(data.max() - data.min())
        if span <= 0:
            return []
        min_amplitude = self.config.amplitude_fraction * span
        return [hb for hb in iter_heartbeats(data) if hb.amplitude >= min_amplitude]

    def estimate_bpm(self, heartbeats: Sequence[Heartbeat]) -> Optional[float]:
        """BPM from accepted *heartbeats*, or ``None`` when not confident."""
        if len(heartbeats) < self.config.min_beats:
            return None

        heap = DistanceHeap(self.config.heap_capacity)
        for prev, cur in zip(heartbeats, heartbeats[1:]):
            if not heap.push(cur.low_idx - prev.low_idx):
                logger.debug("Distance heap full (%d), dropping remaining distances", heap.capacity)
                break

        bpm = bpm_from_distances(heap, self.sample_rate)
        if not self.band.contains(bpm):
            logger.debug("Window BPM %s outside band [%g, %g]", bpm, self.band.low, self.band.high)
            return None
        return bpm

    def process(self, window: Sequence[float]) -> Tuple[List[Heartbeat], Optional[float]]:
        heartbeats = self.detect(window)
        return heartbeats, self.estimate_bpm(heartbeats)

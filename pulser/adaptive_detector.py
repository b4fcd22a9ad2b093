"""
Adaptive-threshold streaming beat detector.

Per-sample hysteresis state machine in the style of the classic
PulseSensor algorithm:

* the running peak ``P`` and trough ``T`` of the current pulse are tracked
  on either side of an adaptive threshold,
* a beat starts when the signal rises above the threshold, at least a
  refractory period and 3/5 of the previous IBI after the last beat
  (the 3/5 wait skips the dicrotic notch),
* the beat ends when the signal falls back under the threshold, at which
  point the threshold re-centres on ``(P + T) / 2``,
* BPM is 60000 / mean of the last ten IBIs,
* 2.5 s without a beat puts everything back to the seeded state.

The detector never looks at a clock.  Time advances by a fixed sample
interval per call unless the caller passes explicit timestamps.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

from .config import AdaptiveConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BeatEvent:
    """Start of a detected beat.  ``bpm`` is ``None`` for the first beat after a reset."""

    timestamp_ms: float
    ibi_ms: float
    bpm: Optional[float] = None


class AdaptiveThresholdDetector:
    """
    Streaming beat detector with an adaptive threshold.

    Parameters
    ----------
    config:
        Seeds and timing constants.  Defaults match a 12-bit ADC sampled
        at 500 Hz.
    """

    def __init__(self, config: AdaptiveConfig | None = None) -> None:
        self.config = config if config is not None else AdaptiveConfig()
        self._rate: Deque[float] = deque(maxlen=self.config.history)
        self.reset()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Return every variable to its seed and restart the clock at 0."""
        cfg = self.config
        self._signal: float = 0.0
        self._bpm: float = 0.0
        self._ibi: float = cfg.ibi_seed_ms
        self._pulse = False
        self._qs = False
        self._clock: float = 0.0
        self._last_beat_time: float = 0.0
        self._peak: float = cfg.level
        self._trough: float = cfg.level
        self._thresh: float = cfg.threshold
        self._amp: float = cfg.amplitude
        self._first_beat = True
        self._second_beat = False
        self._rate.clear()

    def update(self, sample: float, timestamp_ms: float | None = None) -> Optional[BeatEvent]:
        """
        Process one sample.

        Parameters
        ----------
        sample:
            Latest signal value.
        timestamp_ms:
            Absolute time of the sample in milliseconds.  When omitted the
            internal clock advances by ``config.sample_interval_ms``.

        Returns
        -------
        BeatEvent or None
            An event when this sample starts a new beat.
        """
        cfg = self.config
        s = float(sample)
        self._signal = s
        if timestamp_ms is None:
            self._clock += cfg.sample_interval_ms
        else:
            self._clock = float(timestamp_ms)
        n = self._clock - self._last_beat_time
        past_notch = n > self._ibi * cfg.ibi_fraction

        # find the peak and trough of the pulse wave
        if s < self._thresh and past_notch:
            self._trough = min(self._trough, s)
        if s > self._thresh and s > self._peak:
            self._peak = s

        event: Optional[BeatEvent] = None
        if n > cfg.refractory_ms and s > self._thresh and not self._pulse and past_notch:
            self._pulse = True
            self._ibi = n
            self._last_beat_time = self._clock

            if self._second_beat:
                self._second_beat = False
                self._rate.extend([n] * cfg.history)

            if self._first_beat:
                self._first_beat = False
                self._second_beat = True
                logger.debug("First beat at %.0f ms, seeding IBI", self._clock)
                return BeatEvent(timestamp_ms=self._clock, ibi_ms=n)

            self._rate.append(n)
            self._bpm = 60000.0 / (sum(self._rate) / len(self._rate))
            self._qs = True
            event = BeatEvent(timestamp_ms=self._clock, ibi_ms=n, bpm=self._bpm)
            logger.debug("Beat at %.0f ms: ibi=%.0f ms bpm=%.1f", self._clock, n, self._bpm)

        if s < self._thresh and self._pulse:
            self._pulse = False
            self._amp = self._peak - self._trough
            self._thresh = (self._peak + self._trough) / 2.0
            self._peak = self._thresh
            self._trough = self._thresh

        if n > cfg.timeout_ms:
            logger.debug("No beat for %.0f ms, re-seeding detector", n)
            self._thresh = cfg.threshold
            self._peak = cfg.level
            self._trough = cfg.level
            self._last_beat_time = self._clock
            self._first_beat = True
            self._second_beat = False
            self._qs = False
            self._bpm = 0.0
            self._ibi = cfg.ibi_seed_ms
            self._pulse = False
            self._amp = cfg.amplitude

        return event

    def saw_start_of_beat(self) -> bool:
        """Read and clear the "beat with a BPM was detected" flag."""
        seen = self._qs
        self._qs = False
        return seen

    @property
    def bpm(self) -> Optional[float]:
        """Latest BPM, or ``None`` before the second beat / after a timeout."""
        return self._bpm if self._bpm > 0 else None

    @property
    def ibi_ms(self) -> float:
        return self._ibi

    @property
    def amplitude(self) -> float:
        """Peak-to-trough amplitude of the last completed pulse."""
        return self._amp

    @property
    def threshold(self) -> float:
        return self._thresh

    @property
    def is_inside_beat(self) -> bool:
        return self._pulse

    @property
    def last_beat_time(self) -> float:
        return self._last_beat_time

    @property
    def latest_sample(self) -> float:
        return self._signal

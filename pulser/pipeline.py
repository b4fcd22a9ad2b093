"""
Pulse extraction pipelines.

Two mutually exclusive paths turn raw PPG samples into beats and BPM:

* :class:`StreamingPipeline` - sample by sample through a high-pass, a
  low-pass and a differentiator into the adaptive-threshold detector.
  Beats are reported on the sample that starts them.
* :class:`BatchPipeline` - a whole window is detrended by a linear fit,
  optionally smoothed, and scanned by the edge-crossing detector.

:class:`PulseEngine` owns the sample ring buffer and whichever pipeline
``EngineConfig.strategy`` selects.  Everything here is synchronous and
does no I/O; locking around the buffer is the caller's business.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

import numpy as np

from .adaptive_detector import AdaptiveThresholdDetector, BeatEvent
from .config import EngineConfig, Strategy
from .edge_detector import EdgeCrossingDetector, Heartbeat
from .estimator import BpmEstimator
from .filters import Differentiator, HighPassFilter, LowPassFilter
from .linreg import WindowedRegression
from .ring_buffer import RingBuffer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamResult:
    """Output of one streaming step."""

    value: float
    derivative: Optional[float] = None
    beat: Optional[BeatEvent] = None
    bpm: Optional[float] = None

    @property
    def beat_started(self) -> bool:
        return self.beat is not None


@dataclass(eq=False)
class BatchResult:
    """Output of one batch pass over a window."""

    detrended: np.ndarray
    heartbeats: List[Heartbeat] = field(default_factory=list)
    bpm: Optional[float] = None
    intercept: float = 0.0
    slope: float = 1.0
    signal_present: bool = True


class StreamingPipeline:
    """
    High-pass → low-pass → differentiator → adaptive-threshold detector.

    The detector sees the derivative of the conditioned signal, so it
    fires on the steepest part of the systolic upstroke.  Its seeds come
    from ``config.adaptive_config()`` (zero-centred unless overridden).

    Differentiating boosts high-frequency noise, so the low-pass corner
    sets the usable signal-to-noise ratio.  With the default 4 Hz corner,
    broadband noise above roughly a tenth of the pulse amplitude adds
    extra threshold crossings, and the reported BPM comes out too high
    while still inside the band.  Lower ``lowpass_cutoff`` (keep it above
    the fastest expected heart rate) or use the windowed batch strategy
    for noisy sensors.
    """

    def __init__(self, config: EngineConfig) -> None:
        fs = config.sample_rate
        self.config = config
        self.highpass = HighPassFilter(config.filters.highpass_cutoff, fs)
        self.lowpass = LowPassFilter(config.filters.lowpass_cutoff, fs)
        self.differentiator = Differentiator(fs)
        self.detector = AdaptiveThresholdDetector(config.adaptive_config())
        self.estimator = BpmEstimator(config.band)

    def process(self, sample: float, timestamp_ms: float | None = None) -> StreamResult:
        value = self.lowpass.run(self.highpass.run(sample))
        derivative = self.differentiator.diff(value)
        if derivative is None:
            return StreamResult(value=value)

        beat = self.detector.update(derivative, timestamp_ms)
        bpm = self.estimator.update(beat.bpm) if beat is not None else None
        return StreamResult(value=value, derivative=derivative, beat=beat, bpm=bpm)

    def reset(self, clear_bpm: bool = True) -> None:
        self.highpass.reset()
        self.lowpass.reset()
        self.differentiator.reset()
        self.detector.reset()
        if clear_bpm:
            self.estimator.clear()


class BatchPipeline:
    """
    Linear detrend → (optional) low-pass smoothing → edge-crossing detector.

    When ``config.batch.presence_floor`` is set, windows whose fitted
    baseline (regression intercept) is not above the floor in magnitude
    are treated as "no finger": heartbeats are still returned for display
    but no BPM is reported.
    """

    def __init__(self, config: EngineConfig) -> None:
        self.config = config
        self.regression = WindowedRegression(config.window_length)
        self.detector = EdgeCrossingDetector(config.sample_rate, config.batch, config.band)
        self.estimator = BpmEstimator(config.band)
        self._smoother: Optional[LowPassFilter] = None
        if config.batch.smoothing_cutoff is not None:
            self._smoother = LowPassFilter(config.batch.smoothing_cutoff, config.sample_rate)

    def process(self, window) -> BatchResult:
        detrended = self.regression.detrend(window)
        if self._smoother is not None:
            self._smoother.reset()
            detrended = self._smoother.run_many(detrended)

        heartbeats = self.detector.detect(detrended)
        floor = self.config.batch.presence_floor
        present = floor is None or abs(self.regression.intercept) > floor
        if present:
            bpm = self.estimator.update(self.detector.estimate_bpm(heartbeats))
        else:
            logger.debug(
                "Intercept %.1f below presence floor %.1f, skipping BPM",
                self.regression.intercept, floor,
            )
            bpm = None

        return BatchResult(
            detrended=detrended,
            heartbeats=heartbeats,
            bpm=bpm,
            intercept=self.regression.intercept,
            slope=self.regression.slope,
            signal_present=present,
        )

    def reset(self, clear_bpm: bool = True) -> None:
        if self._smoother is not None:
            self._smoother.reset()
        if clear_bpm:
            self.estimator.clear()


class PulseEngine:
    """
    Ring buffer plus the pipeline selected by ``config.strategy``.

    Parameters
    ----------
    config:
        Engine configuration.  To change anything, build a new engine.

    Usage::

        engine = PulseEngine(EngineConfig(sample_rate=25.0, window_length=100))
        for sample in source:
            engine.add_sample(sample)
        result = engine.analyze_window()
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config if config is not None else EngineConfig()
        self.buffer = RingBuffer(self.config.window_length, fill_value=0.0)
        self._filled = 0
        self._samples_seen = 0
        self.pipeline: Union[StreamingPipeline, BatchPipeline]
        if self.config.strategy is Strategy.ADAPTIVE_THRESHOLD:
            self.pipeline = StreamingPipeline(self.config)
        else:
            self.pipeline = BatchPipeline(self.config)
        logger.info(
            "Pulse engine ready – strategy=%s fs=%.1f Hz window=%d band=[%g, %g]",
            self.config.strategy.value,
            self.config.sample_rate,
            self.config.window_length,
            self.config.band.low,
            self.config.band.high,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def strategy(self) -> Strategy:
        return self.config.strategy

    def add_sample(self, sample: float, timestamp_ms: float | None = None) -> Optional[StreamResult]:
        """
        Store *sample* and, for the streaming strategy, process it.

        Returns the :class:`StreamResult` in streaming mode and ``None`` in
        batch mode.
        """
        self.buffer.add(sample)
        self._filled = min(self._filled + 1, self.buffer.capacity)
        self._samples_seen += 1
        if isinstance(self.pipeline, StreamingPipeline):
            return self.pipeline.process(sample, timestamp_ms)
        return None

    def analyze_window(self) -> BatchResult:
        """Run the batch pipeline over the buffered samples (oldest first)."""
        if not isinstance(self.pipeline, BatchPipeline):
            raise RuntimeError("analyze_window() requires the windowed-batch strategy")
        window = self.buffer.snapshot()
        if self._filled < window.shape[0]:
            window = window[window.shape[0] - self._filled:]
        return self.pipeline.process(window)

    def process_window(self, window) -> BatchResult:
        """Run the batch pipeline over a caller-supplied window."""
        if not isinstance(self.pipeline, BatchPipeline):
            raise RuntimeError("process_window() requires the windowed-batch strategy")
        return self.pipeline.process(window)

    def reset(self, clear_bpm: bool = True) -> None:
        """
        Signal context lost: return filters and detectors to their seeds.

        Buffered samples are marked stale so the next window only covers
        samples added after the reset.
        """
        logger.debug("Engine reset (clear_bpm=%s)", clear_bpm)
        self.pipeline.reset(clear_bpm)
        self._filled = 0

    @property
    def bpm(self) -> Optional[float]:
        """Last confident BPM, or ``None``."""
        return self.pipeline.estimator.bpm

    @property
    def samples_seen(self) -> int:
        return self._samples_seen

    @property
    def buffer_fill_ratio(self) -> float:
        """How much of the ring buffer holds samples since the last reset (0 – 1)."""
        return self._filled / self.buffer.capacity

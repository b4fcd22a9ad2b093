"""
Engine configuration.

Every tunable of the pulse extraction engine lives in one of the
dataclasses below.  They are plain values: build one, hand it to a
pipeline constructor, and build a new one if something has to change.
Nothing in the engine mutates a config after construction.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional


class Strategy(enum.Enum):
    """Which beat-detection path the engine runs."""

    ADAPTIVE_THRESHOLD = "stream"
    WINDOWED_BATCH = "batch"


@dataclass(frozen=True)
class BpmBand:
    """Inclusive physiological band a BPM value must fall in to be reported."""

    low: float = 40.0
    high: float = 200.0

    def __post_init__(self) -> None:
        if not 0.0 < self.low < self.high:
            raise ValueError(
                f"BPM band must satisfy 0 < low < high, got ({self.low}, {self.high})"
            )

    def contains(self, bpm: Optional[float]) -> bool:
        return bpm is not None and self.low <= bpm <= self.high


@dataclass(frozen=True)
class FilterConfig:
    """
    Cut-off frequencies of the streaming conditioning chain.

    Parameters
    ----------
    highpass_cutoff:
        High-pass corner in Hz.  Removes the DC level and slow baseline
        wander of the optical signal.
    lowpass_cutoff:
        Low-pass corner in Hz.  Smooths high-frequency sensor noise.
    """

    highpass_cutoff: float = 0.5
    lowpass_cutoff: float = 4.0

    def __post_init__(self) -> None:
        if self.highpass_cutoff <= 0 or self.lowpass_cutoff <= 0:
            raise ValueError("Filter cut-off frequencies must be positive")
        if self.highpass_cutoff >= self.lowpass_cutoff:
            raise ValueError("highpass_cutoff must be below lowpass_cutoff")


@dataclass(frozen=True)
class AdaptiveConfig:
    """
    Seeds and timing constants of the adaptive-threshold detector.

    All levels are in the units of the samples fed to the detector.
    Times are in milliseconds.
    """

    sample_interval_ms: float = 2.0
    threshold: float = 2454.0
    level: float = 2047.0
    amplitude: float = 409.0
    ibi_seed_ms: float = 750.0
    refractory_ms: float = 250.0
    ibi_fraction: float = 0.6
    timeout_ms: float = 2500.0
    history: int = 10

    def __post_init__(self) -> None:
        if self.sample_interval_ms <= 0:
            raise ValueError("sample_interval_ms must be positive")
        if self.ibi_seed_ms <= 0 or self.timeout_ms <= 0:
            raise ValueError("ibi_seed_ms and timeout_ms must be positive")
        if not 0.0 <= self.ibi_fraction <= 1.0:
            raise ValueError("ibi_fraction must lie in [0, 1]")
        if self.history < 1:
            raise ValueError("history must hold at least one interval")

    @classmethod
    def for_adc(cls, full_scale: int = 4095, sample_rate: float = 500.0, **kwargs) -> "AdaptiveConfig":
        """
        Derive the level seeds from an ADC full-scale reading.

        The threshold starts at 6/10 of full scale, peak and trough at the
        middle of the range and the pulse amplitude at 1/10 of it.
        """
        if full_scale <= 0:
            raise ValueError("full_scale must be positive")
        if sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        kwargs.setdefault("sample_interval_ms", 1000.0 / sample_rate)
        kwargs.setdefault("threshold", float(full_scale // 10 * 6))
        kwargs.setdefault("level", float(full_scale // 2))
        kwargs.setdefault("amplitude", float(full_scale // 10))
        return cls(**kwargs)

    @classmethod
    def zero_centred(cls, sample_rate: float, **kwargs) -> "AdaptiveConfig":
        """Seeds for a signal that oscillates around zero (filtered or differentiated)."""
        if sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        kwargs.setdefault("sample_interval_ms", 1000.0 / sample_rate)
        kwargs.setdefault("threshold", 0.0)
        kwargs.setdefault("level", 0.0)
        kwargs.setdefault("amplitude", 0.0)
        return cls(**kwargs)


@dataclass(frozen=True)
class BatchConfig:
    """
    Parameters of the windowed edge-crossing detector.

    Parameters
    ----------
    amplitude_fraction:
        A heartbeat is kept only if its high-to-low drop is at least this
        fraction of the window's peak-to-trough range.
    min_beats:
        Minimum number of accepted heartbeats before a BPM is reported.
    heap_capacity:
        Maximum number of inter-beat distances kept per window.
    presence_floor:
        When set, a window whose regression intercept magnitude does not
        exceed this value is treated as "no signal" and yields no BPM.
    smoothing_cutoff:
        Optional low-pass corner (Hz) applied to the detrended window
        before edge detection.
    """

    amplitude_fraction: float = 0.25
    min_beats: int = 3
    heap_capacity: int = 16
    presence_floor: Optional[float] = None
    smoothing_cutoff: Optional[float] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.amplitude_fraction <= 1.0:
            raise ValueError("amplitude_fraction must lie in [0, 1]")
        if self.min_beats < 2:
            raise ValueError("min_beats must be at least 2 to measure a distance")
        if self.heap_capacity < 1:
            raise ValueError("heap_capacity must be positive")
        if self.smoothing_cutoff is not None and self.smoothing_cutoff <= 0:
            raise ValueError("smoothing_cutoff must be positive")


@dataclass(frozen=True)
class EngineConfig:
    """
    Top-level configuration of a :class:`~pulser.pipeline.PulseEngine`.

    Parameters
    ----------
    sample_rate:
        Sampling frequency of the raw stream in Hz.  Filter coefficients
        and all sample/time conversions are derived from it.
    window_length:
        Capacity of the sample ring buffer, and the batch analysis window.
    strategy:
        Which beat-detection path is active.
    band:
        Physiological BPM band used by the estimator and the batch detector.
    adaptive:
        Adaptive detector seeds.  ``None`` means zero-centred seeds for the
        given sample rate, which is what the streaming chain needs since it
        feeds the detector a derivative.
    """

    sample_rate: float = 25.0
    window_length: int = 100
    strategy: Strategy = Strategy.WINDOWED_BATCH
    band: BpmBand = field(default_factory=BpmBand)
    filters: FilterConfig = field(default_factory=FilterConfig)
    adaptive: Optional[AdaptiveConfig] = None
    batch: BatchConfig = field(default_factory=BatchConfig)

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        if self.window_length < 2:
            raise ValueError("window_length must be at least 2 samples")
        if self.filters.lowpass_cutoff >= self.sample_rate / 2.0:
            raise ValueError(
                f"lowpass_cutoff ({self.filters.lowpass_cutoff} Hz) must be below "
                f"the Nyquist frequency ({self.sample_rate / 2.0} Hz)"
            )

    def adaptive_config(self) -> AdaptiveConfig:
        if self.adaptive is not None:
            return self.adaptive
        return AdaptiveConfig.zero_centred(self.sample_rate)

"""
Synthetic PPG source.

Generates a deterministic PPG-like waveform: a fundamental at the heart
rate plus a weaker second harmonic (which skews the pulse the way the
dicrotic wave does), sitting on a DC level with optional linear drift and
seeded Gaussian noise.  Handy for the demo CLI and for tests, where the
true BPM has to be known.
"""

from __future__ import annotations

import logging
from typing import Iterator

import numpy as np

logger = logging.getLogger(__name__)

# Default relative size of the 2nd harmonic.  Kept below 0.25 so each cycle has
# exactly one maximum and one minimum.
HARMONIC_RATIO = 0.2
_HARMONIC_PHASE = np.pi / 4


def synthetic_ppg(
    bpm: float,
    sample_rate: float,
    n_samples: int,
    dc: float = 2048.0,
    amplitude: float = 200.0,
    drift_per_s: float = 0.0,
    noise_std: float = 0.0,
    phase: float = 0.0,
    harmonic: float = HARMONIC_RATIO,
    start: int = 0,
    seed: int | None = 0,
) -> np.ndarray:
    """
    Return *n_samples* of a synthetic PPG sampled at *sample_rate*.

    Parameters
    ----------
    bpm:
        True heart rate of the waveform.
    sample_rate:
        Sampling frequency in Hz.
    n_samples:
        Number of samples to generate.
    dc:
        Baseline level (raw sensor counts).
    amplitude:
        Amplitude of the fundamental.
    drift_per_s:
        Linear baseline drift in counts per second.
    noise_std:
        Standard deviation of additive Gaussian noise (0 = clean).
    phase:
        Starting phase of the fundamental in radians.
    harmonic:
        Amplitude of the 2nd harmonic relative to the fundamental
        (0 gives a pure sine).
    start:
        Index of the first sample, for generating a long signal in pieces.
    seed:
        Seed for the noise generator.
    """
    if bpm <= 0 or sample_rate <= 0:
        raise ValueError("bpm and sample_rate must be positive")
    t = (start + np.arange(int(n_samples))) / sample_rate
    theta = 2 * np.pi * (bpm / 60.0) * t + phase
    pulse = np.sin(theta) + harmonic * np.sin(2 * theta + _HARMONIC_PHASE)
    signal = dc + drift_per_s * t + amplitude * pulse
    if noise_std > 0:
        rng = np.random.default_rng(seed)
        signal = signal + rng.normal(0.0, noise_std, signal.shape)
    return signal


class SyntheticPPGSource:
    """
    Endless synthetic sample stream.

    Keyword arguments are passed on to :func:`synthetic_ppg`.  Samples are
    generated one second at a time.
    """

    def __init__(self, bpm: float = 72.0, sample_rate: float = 25.0, seed: int = 0, **kwargs) -> None:
        self.bpm = bpm
        self.sample_rate = sample_rate
        self.seed = seed
        self._kwargs = kwargs

    def samples(self, limit: int | None = None) -> Iterator[float]:
        """Yield samples forever, or only the first *limit* of them."""
        logger.info("Synthetic PPG source – %.1f BPM at %.1f Hz", self.bpm, self.sample_rate)
        chunk = max(1, int(round(self.sample_rate)))
        offset = 0
        while limit is None or offset < limit:
            n = chunk if limit is None else min(chunk, limit - offset)
            data = synthetic_ppg(
                self.bpm, self.sample_rate, n,
                start=offset, seed=self.seed + offset, **self._kwargs,
            )
            for value in data:
                yield float(value)
            offset += n

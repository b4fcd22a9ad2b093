"""
Streaming signal-conditioning filters.

Single-pole IIR high-pass and low-pass sections plus a first-difference
differentiator.  Each object keeps only the recurrence state it needs,
processes one sample per :meth:`run` call, and can be :meth:`reset` when
the upstream signal is declared invalid (e.g. the finger left the sensor).

Coefficients follow the classic one-pole design: a decay time-constant of
``samples`` samples gives ``k = exp(-1 / samples)``; a cut-off frequency
``fc`` at sampling rate ``fs`` corresponds to ``samples = fs / (2π fc)``.

The IIR filters also provide :meth:`run_many`, which runs a whole array
through :func:`scipy.signal.lfilter` with the streaming state carried in
and out, so it is interchangeable with calling :meth:`run` per sample.
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np
from scipy.signal import lfilter


def _cutoff_to_samples(cutoff: float, sampling_frequency: float) -> float:
    if cutoff <= 0 or sampling_frequency <= 0:
        raise ValueError(
            f"cutoff and sampling_frequency must be positive "
            f"(got cutoff={cutoff}, fs={sampling_frequency})"
        )
    return sampling_frequency / (cutoff * 2.0 * math.pi)


def _decay(samples: float) -> float:
    if samples <= 0:
        raise ValueError(f"decay time-constant must be positive, got {samples}")
    return math.exp(-1.0 / samples)


class HighPassFilter:
    """
    One-pole high-pass filter.

    ``y[n] = a0·x[n] + a1·x[n-1] + b1·y[n-1]``

    The very first output after construction or :meth:`reset` is ``0.0``
    whatever the input, so a large DC level does not step into later
    stages.

    Parameters
    ----------
    cutoff:
        Corner frequency in Hz.
    sampling_frequency:
        Sample rate in Hz.
    """

    def __init__(self, cutoff: float, sampling_frequency: float) -> None:
        self._init_coefficients(_cutoff_to_samples(cutoff, sampling_frequency))

    @classmethod
    def from_samples(cls, samples: float) -> "HighPassFilter":
        """Build the filter from a decay time-constant expressed in samples."""
        obj = cls.__new__(cls)
        obj._init_coefficients(samples)
        return obj

    def _init_coefficients(self, samples: float) -> None:
        k_x = _decay(samples)
        self._a0 = (1.0 + k_x) / 2.0
        self._a1 = -self._a0
        self._b1 = k_x
        self._last_filtered: Optional[float] = None
        self._last_raw: Optional[float] = None

    @property
    def coefficients(self) -> tuple[float, float, float]:
        """``(a0, a1, b1)``"""
        return self._a0, self._a1, self._b1

    def run(self, value: float) -> float:
        """Filter one sample."""
        if self._last_filtered is None or self._last_raw is None:
            filtered = 0.0
        else:
            filtered = self._a0 * value + self._a1 * self._last_raw + self._b1 * self._last_filtered
        self._last_filtered = filtered
        self._last_raw = float(value)
        return filtered

    def run_many(self, values) -> np.ndarray:
        """Filter an array of samples, continuing from the current state."""
        x = np.asarray(values, dtype=np.float64).ravel()
        if x.size == 0:
            return np.empty(0, dtype=np.float64)

        out = np.empty_like(x)
        start = 0
        if self._last_filtered is None or self._last_raw is None:
            out[0] = 0.0
            self._last_filtered = 0.0
            self._last_raw = float(x[0])
            start = 1
        if start < x.size:
            zi = [self._a1 * self._last_raw + self._b1 * self._last_filtered]
            out[start:], _ = lfilter([self._a0, self._a1], [1.0, -self._b1], x[start:], zi=zi)
            self._last_filtered = float(out[-1])
            self._last_raw = float(x[-1])
        return out

    def reset(self) -> None:
        """Forget the stored history; the next output is 0.0 again."""
        self._last_filtered = None
        self._last_raw = None


class LowPassFilter:
    """
    One-pole low-pass filter.

    ``y[n] = a0·x[n] + b1·y[n-1]``

    Unlike the high-pass section, the first output after construction or
    :meth:`reset` is the first input itself.
    """

    def __init__(self, cutoff: float, sampling_frequency: float) -> None:
        self._init_coefficients(_cutoff_to_samples(cutoff, sampling_frequency))

    @classmethod
    def from_samples(cls, samples: float) -> "LowPassFilter":
        """Build the filter from a decay time-constant expressed in samples."""
        obj = cls.__new__(cls)
        obj._init_coefficients(samples)
        return obj

    def _init_coefficients(self, samples: float) -> None:
        k_x = _decay(samples)
        self._a0 = 1.0 - k_x
        self._b1 = k_x
        self._last: Optional[float] = None

    @property
    def coefficients(self) -> tuple[float, float]:
        """``(a0, b1)``"""
        return self._a0, self._b1

    def run(self, value: float) -> float:
        if self._last is None:
            filtered = float(value)
        else:
            filtered = self._a0 * value + self._b1 * self._last
        self._last = filtered
        return filtered

    def run_many(self, values) -> np.ndarray:
        x = np.asarray(values, dtype=np.float64).ravel()
        if x.size == 0:
            return np.empty(0, dtype=np.float64)

        out = np.empty_like(x)
        start = 0
        if self._last is None:
            out[0] = x[0]
            self._last = float(x[0])
            start = 1
        if start < x.size:
            out[start:], _ = lfilter([self._a0], [1.0, -self._b1], x[start:], zi=[self._b1 * self._last])
            self._last = float(out[-1])
        return out

    def reset(self) -> None:
        self._last = None


class Differentiator:
    """
    First-difference derivative scaled to units per second.

    :meth:`diff` returns ``None`` until it has seen two samples.
    """

    def __init__(self, sampling_rate: float) -> None:
        if sampling_rate <= 0:
            raise ValueError(f"sampling_rate must be positive, got {sampling_rate}")
        self.sampling_rate = sampling_rate
        self._prev: Optional[float] = None

    def diff(self, value: float) -> Optional[float]:
        prev = self._prev
        self._prev = float(value)
        if prev is None:
            return None
        return (value - prev) * self.sampling_rate

    def reset(self) -> None:
        self._prev = None

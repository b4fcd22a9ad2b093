"""
Windowed least-squares detrender.

Fits ``y(x) = intercept + slope·x`` over index positions ``0 .. N-1`` of a
window.  The x-only sums (Σx, Σx², (Σx)²) depend on nothing but N, so they
are cached and only recomputed when a window of a different length
arrives.

Accumulation happens in ``dtype`` (float32 by default).  That is plenty
for windows of a few hundred samples at BPM resolution; pass
``dtype=np.float64`` for much longer windows.
"""

from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)


class WindowedRegression:
    """
    Closed-form linear regression over a fixed-length window.

    Parameters
    ----------
    n:
        Expected window length.  Windows of other lengths are accepted;
        the cached sums are recomputed when the length changes.
    dtype:
        Floating-point type used for the accumulations.
    """

    def __init__(self, n: int, dtype=np.float32) -> None:
        self.dtype = np.dtype(dtype)
        self.intercept: float = 0.0
        self.slope: float = 1.0
        self.n = int(n)
        self._update_constants()

    def _update_constants(self) -> None:
        n = self.n
        x = np.arange(n, dtype=self.dtype)
        self._x = x
        self._sum_x = self.dtype.type((n - 1) * n / 2.0) if n > 0 else self.dtype.type(0)
        self._sum_xsq = x.dot(x) if n > 0 else self.dtype.type(0)
        self._sum_x_sq = self._sum_x * self._sum_x

    def update_from(self, window) -> None:
        """Fit the line to *window* and store ``intercept`` / ``slope``."""
        data = np.asarray(window, dtype=self.dtype).ravel()
        n = data.shape[0]
        if n == 0:
            self.intercept = 0.0
            self.slope = 1.0
            return
        if n != self.n:
            logger.debug("Regression window length changed %d -> %d", self.n, n)
            self.n = n
            self._update_constants()

        sum_y = data.sum(dtype=self.dtype)
        sum_xy = self._x.dot(data)

        nf = self.dtype.type(n)
        denom = nf * self._sum_xsq - self._sum_x_sq
        if denom == 0:
            # Only a single point: the best line through it is flat.
            self.intercept = float(data[0])
            self.slope = 0.0
            return

        self.intercept = float((sum_y * self._sum_xsq - self._sum_x * sum_xy) / denom)
        self.slope = float((nf * sum_xy - self._sum_x * sum_y) / denom)

    def y(self, x):
        """Evaluate the fitted line at *x* (scalar or array, may lie outside the window)."""
        return self.intercept + self.slope * x

    def detrend(self, window) -> np.ndarray:
        """Fit *window* and return it with the fitted baseline subtracted."""
        data = np.asarray(window, dtype=np.float64).ravel()
        self.update_from(data)
        return data - self.y(np.arange(data.shape[0], dtype=np.float64))

"""
Unit tests for WindowedRegression.
Run with:  pytest tests/test_linreg.py
"""

from __future__ import annotations

import numpy as np
import pytest

from pulser.linreg import WindowedRegression


class TestWindowedRegression:

    def test_recovers_line(self):
        x = np.arange(100)
        reg = WindowedRegression(100)
        reg.update_from(10.0 + 0.5 * x)
        assert reg.intercept == pytest.approx(10.0, rel=1e-3)
        assert reg.slope == pytest.approx(0.5, rel=1e-3)

    def test_recovers_line_on_large_baseline(self):
        x = np.arange(150)
        reg = WindowedRegression(150)
        reg.update_from(2048.0 - 1.5 * x)
        assert reg.intercept == pytest.approx(2048.0, rel=1e-3)
        assert reg.slope == pytest.approx(-1.5, rel=1e-3)

    def test_empty_window_is_identity(self):
        reg = WindowedRegression(100)
        reg.update_from(3.0 + 2.0 * np.arange(100))
        reg.update_from([])
        assert reg.intercept == 0.0
        assert reg.slope == 1.0

    def test_single_sample_is_flat(self):
        reg = WindowedRegression(10)
        reg.update_from([42.0])
        assert reg.intercept == pytest.approx(42.0)
        assert reg.slope == 0.0

    def test_window_length_change(self):
        reg = WindowedRegression(100)
        reg.update_from(np.ones(100))
        reg.update_from(5.0 + 3.0 * np.arange(50))
        assert reg.n == 50
        assert reg.intercept == pytest.approx(5.0, rel=1e-3)
        assert reg.slope == pytest.approx(3.0, rel=1e-3)

    def test_y_outside_window(self):
        reg = WindowedRegression(20)
        reg.update_from(1.0 + 2.0 * np.arange(20))
        assert reg.y(0) == pytest.approx(1.0, rel=1e-3)
        assert reg.y(200) == pytest.approx(401.0, rel=1e-3)

    def test_detrend_removes_linear_baseline(self):
        x = np.arange(100)
        wave = 50.0 * np.cos(2 * np.pi * x / 20.0)
        reg = WindowedRegression(100)
        residual = reg.detrend(1000.0 + 4.0 * x + wave)
        assert residual.shape == (100,)
        assert abs(residual.mean()) < 1.0
        # the pulsatile part survives the detrend
        assert residual.max() - residual.min() == pytest.approx(100.0, rel=0.1)

    def test_double_precision(self):
        x = np.arange(2000)
        reg = WindowedRegression(2000, dtype=np.float64)
        reg.update_from(12345.0 + 0.25 * x)
        assert reg.intercept == pytest.approx(12345.0, rel=1e-9)
        assert reg.slope == pytest.approx(0.25, rel=1e-9)

"""
Unit tests for the pulse engine, BpmEstimator, PresenceDetector and the
synthetic PPG source.
Run with:  pytest tests/
"""

from __future__ import annotations

import numpy as np
import pytest

from pulser.config import BatchConfig, BpmBand, EngineConfig, FilterConfig, Strategy
from pulser.estimator import BpmEstimator
from pulser.pipeline import PulseEngine
from pulser.presence import PresenceDetector
from pulser.synthetic import SyntheticPPGSource, synthetic_ppg


def _batch_engine(**batch_kwargs) -> PulseEngine:
    return PulseEngine(EngineConfig(sample_rate=25.0, window_length=100, batch=BatchConfig(**batch_kwargs)))


def _ppg_72bpm(n: int = 100) -> np.ndarray:
    # 72 BPM at 25 Hz on a drifting baseline
    return synthetic_ppg(72.0, 25.0, n, drift_per_s=30.0)


# ---------------------------------------------------------------------------
# BpmEstimator tests
# ---------------------------------------------------------------------------

class TestBpmEstimator:

    def test_starts_empty(self):
        est = BpmEstimator()
        assert est.bpm is None
        assert est.accepted_count == 0

    def test_accepts_in_band(self):
        est = BpmEstimator()
        assert est.update(72.0) == 72.0
        assert est.bpm == 72.0
        assert est.accepted_count == 1

    def test_missing_value_keeps_previous(self):
        est = BpmEstimator()
        est.update(80.0)
        assert est.update(None) is None
        assert est.bpm == 80.0

    def test_out_of_band_keeps_previous(self):
        est = BpmEstimator()
        est.update(65.0)
        assert est.update(250.0) is None
        assert est.update(20.0) is None
        assert est.bpm == 65.0
        assert est.rejected_count == 2

    def test_band_edges_are_inclusive(self):
        est = BpmEstimator(BpmBand(50.0, 150.0))
        assert est.update(50.0) == 50.0
        assert est.update(150.0) == 150.0

    def test_clear(self):
        est = BpmEstimator()
        est.update(90.0)
        est.clear()
        assert est.bpm is None

    def test_invalid_band(self):
        with pytest.raises(ValueError):
            BpmBand(200.0, 40.0)
        with pytest.raises(ValueError):
            BpmBand(0.0, 100.0)


# ---------------------------------------------------------------------------
# PulseEngine: windowed batch strategy
# ---------------------------------------------------------------------------

class TestBatchEngine:

    def test_synthetic_72_bpm(self):
        """A full 4 s window of a 72 BPM pulse on a drifting baseline."""
        engine = _batch_engine()
        for v in _ppg_72bpm():
            assert engine.add_sample(v) is None

        result = engine.analyze_window()
        assert result.signal_present is True
        assert len(result.heartbeats) >= 3
        assert result.bpm is not None
        assert 68.0 <= result.bpm <= 76.0, f"Expected ~72 BPM, got {result.bpm:.1f}"
        assert engine.bpm == result.bpm

    def test_detrended_window_has_no_baseline(self):
        engine = _batch_engine()
        for v in _ppg_72bpm():
            engine.add_sample(v)
        result = engine.analyze_window()
        assert result.detrended.shape == (100,)
        assert abs(result.detrended.mean()) < 20.0
        assert result.intercept == pytest.approx(2048.0, abs=100.0)
        assert result.slope == pytest.approx(30.0 / 25.0, abs=1.0)

    def test_presence_floor(self):
        engine = _batch_engine(presence_floor=1000.0)
        for v in _ppg_72bpm():
            engine.add_sample(v)
        assert engine.analyze_window().bpm is not None

        gated = _batch_engine(presence_floor=5000.0)
        for v in _ppg_72bpm():
            gated.add_sample(v)
        result = gated.analyze_window()
        assert result.signal_present is False
        assert result.bpm is None
        assert gated.bpm is None

    def test_partial_window(self):
        engine = _batch_engine()
        for v in _ppg_72bpm(10):
            engine.add_sample(v)
        assert engine.buffer_fill_ratio == pytest.approx(0.1)
        result = engine.analyze_window()
        assert result.detrended.shape == (10,)
        assert result.bpm is None

    def test_flat_window_has_no_bpm(self):
        engine = _batch_engine()
        for _ in range(100):
            engine.add_sample(2048.0)
        result = engine.analyze_window()
        assert result.heartbeats == []
        assert result.bpm is None

    def test_bpm_survives_a_bad_window(self):
        engine = _batch_engine()
        first = engine.process_window(_ppg_72bpm())
        assert first.bpm is not None
        second = engine.process_window(np.full(100, 2048.0))
        assert second.bpm is None
        assert engine.bpm == first.bpm

    def test_smoothing(self):
        engine = _batch_engine(smoothing_cutoff=3.0)
        result = engine.process_window(_ppg_72bpm())
        assert result.bpm is not None
        assert 66.0 <= result.bpm <= 78.0

    def test_reset(self):
        engine = _batch_engine()
        for v in _ppg_72bpm():
            engine.add_sample(v)
        engine.analyze_window()
        assert engine.bpm is not None

        engine.reset()
        assert engine.bpm is None
        assert engine.buffer_fill_ratio == 0.0
        assert engine.samples_seen == 100

    def test_reset_can_keep_bpm(self):
        engine = _batch_engine()
        engine.process_window(_ppg_72bpm())
        engine.reset(clear_bpm=False)
        assert engine.bpm is not None

    def test_add_sample_only_stores(self):
        engine = _batch_engine()
        assert engine.strategy is Strategy.WINDOWED_BATCH
        # add_sample is allowed in both modes; batch mode just stores
        assert engine.add_sample(1.0) is None


# ---------------------------------------------------------------------------
# PulseEngine: adaptive-threshold streaming strategy
# ---------------------------------------------------------------------------

class TestStreamingEngine:

    def _engine(self, fs: float = 100.0) -> PulseEngine:
        return PulseEngine(EngineConfig(
            sample_rate=fs,
            window_length=int(fs * 4),
            strategy=Strategy.ADAPTIVE_THRESHOLD,
        ))

    def test_first_sample_has_no_derivative(self):
        engine = self._engine()
        result = engine.add_sample(2048.0)
        assert result is not None
        assert result.derivative is None
        assert result.beat_started is False

    def test_synthetic_60_bpm(self):
        fs = 100.0
        engine = self._engine(fs)
        signal = synthetic_ppg(60.0, fs, int(fs * 10), harmonic=0.0)
        results = [engine.add_sample(v) for v in signal]

        beats = [r.beat for r in results if r.beat_started]
        assert len(beats) >= 5
        assert engine.bpm is not None
        assert engine.bpm == pytest.approx(60.0, rel=0.1)

    def test_batch_calls_rejected(self):
        engine = self._engine()
        with pytest.raises(RuntimeError):
            engine.analyze_window()
        with pytest.raises(RuntimeError):
            engine.process_window(np.zeros(10))

    def test_reset_clears_bpm(self):
        fs = 100.0
        engine = self._engine(fs)
        for v in synthetic_ppg(60.0, fs, int(fs * 6), harmonic=0.0):
            engine.add_sample(v)
        assert engine.bpm is not None
        engine.reset()
        assert engine.bpm is None
        assert engine.add_sample(2048.0).derivative is None


class TestEngineConfig:

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            EngineConfig(sample_rate=0.0)
        with pytest.raises(ValueError):
            EngineConfig(window_length=1)

    def test_lowpass_must_sit_below_nyquist(self):
        with pytest.raises(ValueError):
            EngineConfig(sample_rate=8.0)
        with pytest.raises(ValueError):
            EngineConfig(sample_rate=100.0, filters=FilterConfig(lowpass_cutoff=60.0))
        EngineConfig(sample_rate=10.0)

    def test_filter_corners_ordered(self):
        with pytest.raises(ValueError):
            FilterConfig(highpass_cutoff=5.0, lowpass_cutoff=4.0)

    def test_default_adaptive_seeds_are_zero_centred(self):
        cfg = EngineConfig(sample_rate=50.0).adaptive_config()
        assert cfg.threshold == 0.0
        assert cfg.sample_interval_ms == pytest.approx(20.0)


# ---------------------------------------------------------------------------
# PresenceDetector tests
# ---------------------------------------------------------------------------

class TestPresenceDetector:

    def test_finger_on_sensor(self):
        det = PresenceDetector(floor=500.0, ceiling=4000.0)
        assert det.is_present(_ppg_72bpm()) is True

    def test_ambient_level(self):
        det = PresenceDetector(floor=500.0, ceiling=4000.0)
        assert det.is_present(np.full(25, 120.0)) is False

    def test_saturated(self):
        det = PresenceDetector(floor=500.0, ceiling=4000.0)
        assert det.is_present(np.full(25, 4095.0)) is False

    def test_single_sample(self):
        det = PresenceDetector()
        assert det.is_present(2048.0) is True

    def test_motion_rejected(self):
        det = PresenceDetector(max_std=50.0)
        jumpy = np.r_[np.full(10, 1000.0), np.full(10, 3000.0)]
        assert det.is_present(jumpy) is False

    def test_empty(self):
        assert PresenceDetector().is_present([]) is False

    def test_invalid_limits(self):
        with pytest.raises(ValueError):
            PresenceDetector(floor=4000.0, ceiling=500.0)


# ---------------------------------------------------------------------------
# Synthetic source tests
# ---------------------------------------------------------------------------

class TestSyntheticPPG:

    def test_shape_and_level(self):
        x = synthetic_ppg(72.0, 25.0, 250)
        assert x.shape == (250,)
        assert x.mean() == pytest.approx(2048.0, abs=5.0)

    def test_noise_is_seeded(self):
        a = synthetic_ppg(72.0, 25.0, 100, noise_std=10.0, seed=3)
        b = synthetic_ppg(72.0, 25.0, 100, noise_std=10.0, seed=3)
        np.testing.assert_array_equal(a, b)

    def test_pieces_join_up(self):
        whole = synthetic_ppg(80.0, 25.0, 50)
        pieces = np.r_[synthetic_ppg(80.0, 25.0, 20), synthetic_ppg(80.0, 25.0, 30, start=20)]
        np.testing.assert_allclose(pieces, whole)

    def test_source_matches_function(self):
        source = SyntheticPPGSource(bpm=72.0, sample_rate=25.0)
        got = list(source.samples(limit=60))
        assert len(got) == 60
        np.testing.assert_allclose(got, synthetic_ppg(72.0, 25.0, 60))

    def test_invalid_rate(self):
        with pytest.raises(ValueError):
            synthetic_ppg(72.0, 0.0, 10)

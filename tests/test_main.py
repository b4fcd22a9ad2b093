"""
Tests for the command-line sensing loop (headless only).
Run with:  pytest tests/test_main.py
"""

from __future__ import annotations

import numpy as np
import pytest

from main import build_config, parse_args, parse_band, run
from pulser.config import Strategy
from pulser.synthetic import synthetic_ppg


class TestCommandLine:

    def test_parse_band(self):
        band = parse_band("50,180")
        assert (band.low, band.high) == (50.0, 180.0)

    def test_parse_band_rejects_reversed(self):
        with pytest.raises(ValueError):
            parse_band("200,40")

    def test_build_config(self):
        args = parse_args(["--mode", "stream", "--fs", "100", "--window", "400", "--intercept-floor", "300"])
        cfg = build_config(args)
        assert cfg.strategy is Strategy.ADAPTIVE_THRESHOLD
        assert cfg.sample_rate == 100.0
        assert cfg.window_length == 400
        assert cfg.batch.presence_floor == 300.0

    def test_headless_synthetic_batch(self, capsys):
        assert run(parse_args(["--headless", "--duration", "8"])) == 0
        out = capsys.readouterr().out
        assert "BPM=" in out

    def test_headless_synthetic_stream(self, capsys):
        args = parse_args(["--headless", "--mode", "stream", "--fs", "100", "--window", "400", "--duration", "6"])
        assert run(args) == 0
        assert "BPM=" in capsys.readouterr().out

    def test_csv_input(self, tmp_path, capsys):
        path = tmp_path / "ppg.csv"
        np.savetxt(path, synthetic_ppg(72.0, 25.0, 200), delimiter=",")
        assert run(parse_args(["--headless", "--input", str(path)])) == 0
        assert "BPM=" in capsys.readouterr().out

    def test_save_snapshot(self, tmp_path):
        out = tmp_path / "monitor.png"
        assert run(parse_args(["--headless", "--duration", "5", "--save", str(out)])) == 0
        assert out.exists()

    def test_bad_band_is_an_error(self):
        assert run(parse_args(["--headless", "--bpm-band", "200,40"])) == 1

    @pytest.mark.parametrize("hop", ["0", "-5"])
    def test_bad_hop_is_an_error(self, hop):
        assert run(parse_args(["--headless", "--duration", "5", "--hop", hop])) == 1

    def test_missing_input_is_an_error(self, tmp_path):
        assert run(parse_args(["--headless", "--input", str(tmp_path / "nope.csv")])) == 1

    def test_non_finite_samples_dropped(self, tmp_path):
        path = tmp_path / "ppg.txt"
        data = synthetic_ppg(72.0, 25.0, 150)
        data[40] = np.nan
        np.savetxt(path, data)
        assert run(parse_args(["--headless", "--input", str(path)])) == 0

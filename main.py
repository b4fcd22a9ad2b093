#!/usr/bin/env python3
"""
Pulser – command-line sensing loop.

Reads raw PPG samples from a text/CSV file (or a synthetic source), feeds
them to the pulse extraction engine at a fixed sample rate and shows the
waveform and heart rate.

Usage
-----
    python main.py [OPTIONS]

Options
-------
    --input PATH          Text/CSV file of raw samples (default: synthetic)
    --column INT          Column of the CSV holding the samples (default: 0)
    --fs FLOAT            Sample rate in Hz (default: 25)
    --mode stream|batch   Beat-detection strategy (default: batch)
    --window INT          Ring buffer / analysis window length (default: 100)
    --hop INT             Batch mode: analyse every HOP samples (default: fs)
    --bpm-band LOW,HIGH   Physiological band (default: 40,200)
    --headless            Run without display window (log BPM to stdout)

Keyboard shortcuts (when a window is open)
------------------------------------------
    q / ESC  – quit
    r        – reset the engine
    s        – save a snapshot of the monitor as PNG
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Iterable, Optional

import cv2
import numpy as np

from pulser.config import BatchConfig, BpmBand, EngineConfig, FilterConfig, Strategy
from pulser.pipeline import BatchResult, PulseEngine
from pulser.presence import PresenceDetector
from pulser.ring_buffer import RingBuffer
from pulser.synthetic import SyntheticPPGSource
from pulser.visualizer import Visualizer

logger = logging.getLogger("pulser")

WINDOW_NAME = "Pulser"


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Heart-rate extraction from raw PPG samples",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--input", type=Path, default=None,
                        help="Text/CSV file of raw samples; synthetic source when omitted")
    parser.add_argument("--column", type=int, default=0,
                        help="CSV column holding the samples")
    parser.add_argument("--fs", type=float, default=25.0,
                        help="Sample rate in Hz")
    parser.add_argument("--mode", choices=[s.value for s in Strategy], default=Strategy.WINDOWED_BATCH.value,
                        help="Beat-detection strategy")
    parser.add_argument("--window", type=int, default=100,
                        help="Ring buffer / batch analysis window length in samples")
    parser.add_argument("--hop", type=int, default=None,
                        help="Batch mode: run the detector every HOP samples (default: one second)")
    parser.add_argument("--bpm-band", default="40,200",
                        help="Physiological BPM band as LOW,HIGH")
    parser.add_argument("--highpass", type=float, default=0.5,
                        help="Streaming high-pass cut-off in Hz")
    parser.add_argument("--lowpass", type=float, default=4.0,
                        help="Streaming low-pass cut-off in Hz")
    parser.add_argument("--presence-floor", type=float, default=500.0,
                        help="Raw level below which no finger is assumed")
    parser.add_argument("--presence-ceiling", type=float, default=4000.0,
                        help="Raw level above which the sensor is saturated")
    parser.add_argument("--intercept-floor", type=float, default=None,
                        help="Batch mode: minimum |baseline| for a window to count as signal")
    parser.add_argument("--synthetic-bpm", type=float, default=72.0,
                        help="Heart rate of the synthetic source")
    parser.add_argument("--duration", type=float, default=None,
                        help="Stop after this many seconds of samples")
    parser.add_argument("--realtime", action="store_true",
                        help="Pace samples at the sample rate instead of as fast as possible")
    parser.add_argument("--save", type=Path, default=None,
                        help="Save the final monitor image to this PNG path")
    parser.add_argument("--headless", action="store_true",
                        help="No display window; log BPM to stdout only")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable debug logging")
    return parser.parse_args(argv)


def parse_band(text: str) -> BpmBand:
    low, high = (float(v) for v in text.split(","))
    return BpmBand(low, high)


def build_config(args: argparse.Namespace) -> EngineConfig:
    return EngineConfig(
        sample_rate=args.fs,
        window_length=args.window,
        strategy=Strategy(args.mode),
        band=parse_band(args.bpm_band),
        filters=FilterConfig(highpass_cutoff=args.highpass, lowpass_cutoff=args.lowpass),
        batch=BatchConfig(presence_floor=args.intercept_floor),
    )


def load_samples(path: Path, column: int = 0) -> np.ndarray:
    """Load one column of raw samples from a whitespace- or comma-separated file."""
    delimiter = "," if path.suffix.lower() == ".csv" else None
    return np.loadtxt(path, delimiter=delimiter, usecols=column, ndmin=1, dtype=np.float64)


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------

def run(args: argparse.Namespace) -> int:
    try:
        config = build_config(args)
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1
    if args.hop is not None and args.hop < 1:
        logger.error("Invalid configuration: hop must be at least 1 sample, got %d", args.hop)
        return 1

    limit: Optional[int] = None
    if args.duration is not None:
        limit = int(args.duration * args.fs)

    samples: Iterable[float]
    if args.input is not None:
        try:
            data = load_samples(args.input, args.column)
        except (OSError, ValueError) as exc:
            logger.error("Cannot read samples from %s: %s", args.input, exc)
            return 1
        finite = np.isfinite(data)
        if not finite.all():
            logger.warning("Dropping %d non-finite samples from %s", int((~finite).sum()), args.input)
            data = data[finite]
        logger.info("Loaded %d samples from %s", data.shape[0], args.input)
        samples = data[:limit] if limit is not None else data
    else:
        samples = SyntheticPPGSource(bpm=args.synthetic_bpm, sample_rate=args.fs).samples(limit)

    engine   = PulseEngine(config)
    presence = PresenceDetector(floor=args.presence_floor, ceiling=args.presence_ceiling)
    vis      = Visualizer()

    # Streaming mode keeps its own history of conditioned values for display
    waveform    = RingBuffer(config.window_length, fill_value=0.0)
    beat_marks  = RingBuffer(config.window_length, fill_value=False, dtype=bool)
    last_batch: Optional[BatchResult] = None

    hop = args.hop if args.hop is not None else max(1, int(round(args.fs)))
    log_interval = max(1, int(round(args.fs)))
    was_present = False
    canvas: Optional[np.ndarray] = None

    logger.info("Starting pulse monitor (%s mode).", config.strategy.value)
    if not args.headless:
        cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)

    try:
        for idx, sample in enumerate(samples):
            present = presence.is_present(sample)
            if present:
                was_present = True
                result = engine.add_sample(sample)
                if result is not None:
                    waveform.add(result.value)
                    beat_marks.add(result.beat_started)
                elif engine.samples_seen % hop == 0 and engine.buffer_fill_ratio >= 1.0:
                    last_batch = engine.analyze_window()
            elif was_present:
                engine.reset()
                last_batch = None
                was_present = False
                logger.info("Signal lost – engine reset.")

            if args.headless and idx % log_interval == 0:
                ts = time.strftime("%H:%M:%S")
                if engine.bpm is not None:
                    print(f"[{ts}] BPM={engine.bpm:.1f}  fill={engine.buffer_fill_ratio:.2f}  present={present}")
                else:
                    print(f"[{ts}] Waiting for signal…  present={present}")

            if not args.headless or args.save:
                canvas = _render(vis, engine, waveform, beat_marks, last_batch, present)

            if not args.headless:
                cv2.imshow(WINDOW_NAME, canvas)
                key = cv2.waitKey(1) & 0xFF
                if key in (ord("q"), 27):          # q or ESC
                    logger.info("Quit requested by user.")
                    break
                elif key == ord("r"):
                    engine.reset()
                    last_batch = None
                    logger.info("Engine reset.")
                elif key == ord("s"):
                    fname = f"snapshot_{int(time.time())}.png"
                    cv2.imwrite(fname, canvas)
                    logger.info("Saved snapshot: %s", fname)

            if args.realtime:
                time.sleep(1.0 / args.fs)

    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        if args.save and canvas is not None:
            cv2.imwrite(str(args.save), canvas)
            logger.info("Saved monitor image to %s", args.save)
        if not args.headless:
            cv2.destroyAllWindows()

    if engine.bpm is not None:
        logger.info("Final BPM estimate: %.1f", engine.bpm)
    else:
        logger.info("No confident BPM estimate.")
    return 0


def _render(
    vis: Visualizer,
    engine: PulseEngine,
    waveform: RingBuffer,
    beat_marks: RingBuffer,
    last_batch: Optional[BatchResult],
    present: bool,
) -> np.ndarray:
    if engine.strategy is Strategy.ADAPTIVE_THRESHOLD:
        signal = waveform.snapshot()
        beats = np.flatnonzero(beat_marks.snapshot()).tolist()
    elif last_batch is not None:
        signal = last_batch.detrended
        beats = [hb.low_idx for hb in last_batch.heartbeats]
    else:
        signal, beats = None, []
    return vis.draw(
        signal,
        bpm=engine.bpm,
        buffer_fill=engine.buffer_fill_ratio,
        signal_present=present,
        beat_indices=beats,
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s – %(message)s",
        datefmt="%H:%M:%S",
    )
    return run(args)


if __name__ == "__main__":
    sys.exit(main())

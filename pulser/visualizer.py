"""
Waveform monitor.

Renders the state of the sensing loop onto a BGR canvas:
  • The conditioned / detrended PPG waveform.
  • Vertical markers at detected heartbeats.
  • BPM readout, or a status hint when there is none.
  • Buffer fill bar.

Only the command-line sensing loop uses this; the engine itself never
draws anything.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import cv2
import numpy as np


# ---------------------------------------------------------------------------
# Colour palette (BGR)
# ---------------------------------------------------------------------------
_GREEN  = (0, 220,  80)
_RED    = (0,  50, 220)
_YELLOW = (0, 210, 210)
_WHITE  = (255, 255, 255)
_BLACK  = (0, 0, 0)
_CYAN   = (220, 200,  0)
_DARK   = (30, 30, 30)


class Visualizer:
    """
    Draws the pulse monitor onto an OpenCV canvas.

    Parameters
    ----------
    resolution:
        (width, height) of the canvas.
    waveform_height:
        Pixel height of the waveform panel.
    """

    def __init__(
        self,
        resolution: Tuple[int, int] = (640, 360),
        waveform_height: int = 220,
    ) -> None:
        self.w, self.h = resolution
        self.waveform_height = min(waveform_height, self.h - 40)

    def new_canvas(self) -> np.ndarray:
        return np.full((self.h, self.w, 3), _BLACK, dtype=np.uint8)

    def draw(
        self,
        signal: Optional[np.ndarray],
        bpm: Optional[float],
        buffer_fill: float,
        signal_present: bool,
        beat_indices: Sequence[int] = (),
        frame: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """
        Draw onto *frame* (a fresh canvas when ``None``) and return it.

        Parameters
        ----------
        signal:
            1-D waveform to plot, oldest sample first.
        bpm:
            Current confident BPM, or ``None``.
        buffer_fill:
            How full the sample buffer is (0 – 1).
        signal_present:
            Whether the presence check currently passes.
        beat_indices:
            Indices into *signal* where heartbeats were detected.
        """
        if frame is None:
            frame = self.new_canvas()

        self._draw_bpm(frame, bpm, signal_present)
        self._draw_fill_bar(frame, buffer_fill)
        if signal is not None and len(signal) > 1:
            self._draw_waveform(frame, np.asarray(signal, dtype=np.float64), beat_indices)
        return frame

    # ------------------------------------------------------------------
    # Private drawing helpers
    # ------------------------------------------------------------------

    def _draw_bpm(self, frame: np.ndarray, bpm: Optional[float], signal_present: bool) -> None:
        if bpm is not None and signal_present:
            cv2.putText(
                frame, f"{bpm:.0f} BPM",
                (16, 52), cv2.FONT_HERSHEY_SIMPLEX, 1.6, _BLACK, 5, cv2.LINE_AA,
            )
            cv2.putText(
                frame, f"{bpm:.0f} BPM",
                (16, 52), cv2.FONT_HERSHEY_SIMPLEX, 1.6, _GREEN, 3, cv2.LINE_AA,
            )
        else:
            status = "Acquiring..." if signal_present else "No finger detected"
            color = _YELLOW if signal_present else _RED
            cv2.putText(
                frame, status,
                (16, 52), cv2.FONT_HERSHEY_SIMPLEX, 0.7, color, 2, cv2.LINE_AA,
            )

    def _draw_fill_bar(self, frame: np.ndarray, fill: float) -> None:
        bar_w = int((self.w - 32) * min(max(fill, 0.0), 1.0))
        y0, y1 = self.h - self.waveform_height - 12, self.h - self.waveform_height - 4
        cv2.rectangle(frame, (16, y0), (self.w - 16, y1), _DARK, -1)
        cv2.rectangle(frame, (16, y0), (16 + bar_w, y1), _CYAN, -1)
        cv2.putText(
            frame, "buffer",
            (16, y0 - 2), cv2.FONT_HERSHEY_SIMPLEX, 0.35, _CYAN, 1, cv2.LINE_AA,
        )

    def _draw_waveform(self, frame: np.ndarray, signal: np.ndarray, beat_indices: Sequence[int]) -> None:
        panel_top = self.h - self.waveform_height
        cv2.rectangle(frame, (0, panel_top), (self.w, self.h), _DARK, -1)

        mn, mx = signal.min(), signal.max()
        rng = mx - mn if mx != mn else 1.0
        norm = (signal - mn) / rng

        margin = 6
        plot_h = self.waveform_height - 2 * margin
        xs = np.linspace(0, self.w - 1, len(norm)).astype(int)
        ys = (panel_top + margin + (1.0 - norm) * plot_h).astype(int)

        for idx in beat_indices:
            if 0 <= idx < len(xs):
                cv2.line(frame, (int(xs[idx]), panel_top), (int(xs[idx]), self.h - 1), _RED, 1)

        pts = np.column_stack([xs, ys]).astype(np.int32)
        cv2.polylines(frame, [pts[:, None, :]], False, _GREEN, 1, cv2.LINE_AA)

        cv2.putText(
            frame, "PPG",
            (4, panel_top + 14), cv2.FONT_HERSHEY_SIMPLEX, 0.4, _WHITE, 1, cv2.LINE_AA,
        )

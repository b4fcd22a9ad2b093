"""
BPM estimator.

Holds the last confident heart-rate value.  Whatever detector is active
offers its per-beat or per-window BPM; only values inside the
physiological band replace the stored one.  Missing or rejected values
leave the previous estimate untouched until the caller clears it.
"""

from __future__ import annotations

import logging
from typing import Optional

from .config import BpmBand

logger = logging.getLogger(__name__)


class BpmEstimator:
    """
    Last-confident-value BPM holder.

    Parameters
    ----------
    band:
        Inclusive physiological band (default 40 – 200 BPM).
    """

    def __init__(self, band: BpmBand | None = None) -> None:
        self.band = band if band is not None else BpmBand()
        self._bpm: Optional[float] = None
        self._accepted = 0
        self._rejected = 0

    def update(self, bpm: Optional[float]) -> Optional[float]:
        """
        Offer a new BPM value.

        Returns the value if it was accepted, ``None`` otherwise.
        """
        if bpm is None:
            return None
        if not self.band.contains(bpm):
            self._rejected += 1
            logger.debug("Rejected BPM %.1f outside [%g, %g]", bpm, self.band.low, self.band.high)
            return None
        self._bpm = float(bpm)
        self._accepted += 1
        return self._bpm

    def clear(self) -> None:
        self._bpm = None

    @property
    def bpm(self) -> Optional[float]:
        """Last confident BPM, or ``None``."""
        return self._bpm

    @property
    def accepted_count(self) -> int:
        return self._accepted

    @property
    def rejected_count(self) -> int:
        return self._rejected

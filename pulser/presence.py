"""
Finger-on-sensor detector for raw optical samples.

When a finger rests on a reflective PPG sensor the raw reading:
  - sits well above the ambient "nothing there" level,
  - stays below the ADC saturation ceiling,
  - moves only by the small pulsatile component (no gross motion).

The engine never guesses presence on its own.  This heuristic is for the
sensing loop, which calls :meth:`PulseEngine.reset` when it returns
*False*.
"""

from __future__ import annotations

import numpy as np


class PresenceDetector:
    """
    Heuristic check: is there a finger on the sensor?

    Parameters
    ----------
    floor:
        Minimum mean raw level.  Below it the sensor is looking at air.
    ceiling:
        Maximum mean raw level.  Above it the front end is saturated.
    max_std:
        Maximum standard deviation of the window.  Larger swings are
        motion or ambient-light artefacts, not a pulse.  ``None`` disables
        the check.
    """

    def __init__(
        self,
        floor: float = 500.0,
        ceiling: float = 4000.0,
        max_std: float | None = None,
    ) -> None:
        if floor >= ceiling:
            raise ValueError(f"floor ({floor}) must be below ceiling ({ceiling})")
        self.floor = floor
        self.ceiling = ceiling
        self.max_std = max_std

    def is_present(self, window) -> bool:
        """
        Return *True* if *window* (one sample or a short run of raw
        samples) looks like a finger on the sensor.
        """
        data = np.atleast_1d(np.asarray(window, dtype=np.float64))
        if data.size == 0:
            return False

        level = float(data.mean())
        in_range = self.floor < level < self.ceiling
        steady = self.max_std is None or float(data.std()) <= self.max_std

        return in_range and steady

"""
pulser — heart-rate extraction from raw photoplethysmogram (PPG) samples.

Feed raw optical sensor readings sampled at a fixed rate into a
:class:`~pulser.pipeline.PulseEngine`; it conditions the signal, detects
heartbeats with either a streaming adaptive-threshold detector or a
windowed edge-crossing detector, and reports a confident BPM.
"""

from .config import AdaptiveConfig, BatchConfig, BpmBand, EngineConfig, FilterConfig, Strategy
from .pipeline import BatchResult, PulseEngine, StreamResult

__version__ = "0.1.0"
__author__ = "pulser"

__all__ = [
    "AdaptiveConfig",
    "BatchConfig",
    "BatchResult",
    "BpmBand",
    "EngineConfig",
    "FilterConfig",
    "PulseEngine",
    "Strategy",
    "StreamResult",
]

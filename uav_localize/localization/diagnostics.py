"""
Processing Rate Diagnostics

Smoothed processing-rate statistics for the measurement cycle. Kept outside
the tracking core; the localizer reports cycle durations to an optional
monitor and never reads anything back.
"""

import logging
import time
from typing import Optional

logger = logging.getLogger(__name__)


class ProcessingRateMonitor:
    """
    Exponentially smoothed cycle duration.

    Usage:
        monitor = ProcessingRateMonitor()
        start = monitor.begin()
        ...  # process detections
        monitor.end(start)
        print(monitor.rate_hz)
    """

    def __init__(self, smoothing: float = 0.9) -> None:
        if not 0.0 <= smoothing < 1.0:
            raise ValueError(f"smoothing must be in [0, 1), got {smoothing}")
        self.smoothing = smoothing
        self.mean_duration: Optional[float] = None
        self.cycles = 0

    @staticmethod
    def begin() -> float:
        return time.perf_counter()

    def end(self, start: float) -> float:
        """Record a cycle that began at `start`; returns the cycle duration."""
        duration = time.perf_counter() - start
        self.record(duration)
        return duration

    def record(self, duration: float) -> None:
        if self.mean_duration is None:
            self.mean_duration = duration
        else:
            self.mean_duration = (
                self.smoothing * self.mean_duration + (1.0 - self.smoothing) * duration
            )
        self.cycles += 1
        logger.debug("processing rate: %.1f Hz", self.rate_hz)

    @property
    def rate_hz(self) -> float:
        """Smoothed processing rate, 0 before the first cycle."""
        if not self.mean_duration:
            return 0.0
        return 1.0 / self.mean_duration

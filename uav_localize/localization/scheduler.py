"""
Fixed-Rate Timer

Runs a callback on a background thread at a fixed period. The callback is
handed the measured time since its previous invocation, not the nominal
period, so consumers integrate over real elapsed time.

Ticks never overlap: the callback runs on the timer's own thread, and any
deadlines that pass while it is still running are dropped rather than
queued.
"""

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTimer:
    """
    Background fixed-rate timer.

    Attributes:
        period: Nominal tick period (seconds)
        ticks: Number of completed callback invocations
        skipped: Number of deadlines dropped because a tick overran

    Usage:
        timer = PeriodicTimer(0.05, lambda dt: print(dt), name="predictor")
        timer.start()
        ...
        timer.stop()
    """

    def __init__(self, period: float, callback: Callable[[float], None], name: str = "timer"):
        if not period > 0:
            raise ValueError(f"Timer period must be positive, got {period}")

        self.period = period
        self.callback = callback
        self.name = name
        self.ticks = 0
        self.skipped = 0

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return (
            self._thread is not None
            and self._thread.is_alive()
            and not self._stop_event.is_set()
        )

    def start(self) -> None:
        """
        Start ticking on a fresh thread.

        Raises:
            RuntimeError: if a previous run was stopped but its thread is
                still inside a callback
        """
        if self._thread is not None and self._thread.is_alive():
            if not self._stop_event.is_set():
                return
            raise RuntimeError(f"{self.name}: previous run has not finished stopping")

        # One stop event per run
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(self._stop_event,), name=self.name, daemon=True
        )
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the thread to exit and wait up to `timeout` for it."""
        self._stop_event.set()
        thread = self._thread
        if thread is None or thread is threading.current_thread():
            return

        thread.join(timeout)
        if thread.is_alive():
            logger.warning("%s still running after %.3f s stop timeout", self.name, timeout)
        else:
            self._thread = None

    def _run(self, stop_event: threading.Event) -> None:
        last_tick = time.perf_counter()
        next_due = last_tick + self.period

        while not stop_event.wait(max(0.0, next_due - time.perf_counter())):
            now = time.perf_counter()
            elapsed = now - last_tick
            last_tick = now

            try:
                self.callback(elapsed)
            except Exception:
                logger.exception("%s tick failed", self.name)
            self.ticks += 1

            next_due += self.period
            now = time.perf_counter()
            if next_due <= now:
                missed = int((now - next_due) // self.period) + 1
                self.skipped += missed
                next_due += missed * self.period
                logger.debug("%s overran, skipping %d tick(s)", self.name, missed)

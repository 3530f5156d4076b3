"""
Single-Target Localizer

Ties the measurement preprocessor, the filter bank and two fixed-rate timers
together:

    predictor  (every lkf_dt):  predict every track by the measured elapsed time
    main loop  (every lkf_dt):  if a new detection batch arrived, run a cycle

A measurement cycle:
    1. Look up the sensor-to-world transform (outside the bank lock)
    2. Back-project detections into world-frame measurements
    3. Associate / correct / prune / spawn under the bank lock
    4. Publish the most certain track as an Estimate

A failed transform lookup aborts the cycle before the bank is touched.

Usage:
    localizer = Localizer(config, camera, transforms, on_estimate=publish)
    with localizer:
        localizer.submit(batch)
"""

import logging
import threading
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence

from ..exceptions import TransformUnavailable
from ..tracking.kalman import Measurement
from ..tracking.tracker import CycleResult, Track, TrackManager
from .diagnostics import ProcessingRateMonitor
from .estimate import Estimate
from .measurement import CameraModel, DetectionBatch, MeasurementPreprocessor
from .scheduler import PeriodicTimer
from .transforms import TransformSource

if TYPE_CHECKING:
    from ..io.config_loader import LocalizerConfig

logger = logging.getLogger(__name__)


class Localizer:
    """
    Localization service around one filter bank.

    Attributes:
        config: Static parameters
        bank: The filter bank shared by both timers
        last_estimate: Most recently published estimate
        last_result: Outcome of the most recent measurement cycle
    """

    def __init__(
        self,
        config: "LocalizerConfig",
        camera: CameraModel,
        transforms: TransformSource,
        on_estimate: Optional[Callable[[Estimate], None]] = None,
        monitor: Optional[ProcessingRateMonitor] = None,
    ):
        """
        Initialize localizer.

        Args:
            config: Localizer parameters
            camera: Pinhole intrinsics of the detecting camera
            transforms: Object providing lookup_transform(target, source, stamp, timeout)
            on_estimate: Called with each published Estimate
            monitor: Optional processing-rate monitor

        Raises:
            ValueError: if the configured tick period is not positive
        """
        if not config.lkf_dt > 0:
            raise ValueError(f"lkf_dt must be positive, got {config.lkf_dt}")

        self.config = config
        self.transforms = transforms
        self.on_estimate = on_estimate
        self.monitor = monitor

        self.preprocessor = MeasurementPreprocessor(
            camera,
            xy_covariance_coeff=config.xy_covariance_coeff,
            z_covariance_coeff=config.z_covariance_coeff,
        )
        self.bank = TrackManager(
            max_update_divergence=config.max_update_divergence,
            max_uncertainty=config.max_lkf_uncertainty,
            process_noise=config.lkf_process_noise,
            init_vel_cov=config.init_vel_cov,
            exclusive_association=config.exclusive_association,
        )

        self.last_estimate: Optional[Estimate] = None
        self.last_result: Optional[CycleResult] = None

        # Latest unprocessed batch; newer batches overwrite older ones
        self._pending: Optional[DetectionBatch] = None
        self._pending_lock = threading.Lock()

        self._predictor = PeriodicTimer(config.lkf_dt, self.predict_tick, name="lkf_update")
        self._main_loop = PeriodicTimer(config.lkf_dt, self._main_loop_tick, name="main_loop")

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def start(self) -> None:
        self._predictor.start()
        self._main_loop.start()
        logger.info("Localizer started (period %.3f s)", self.config.lkf_dt)

    def stop(self) -> None:
        self._main_loop.stop()
        self._predictor.stop()
        logger.info("Localizer stopped")

    @property
    def is_running(self) -> bool:
        return self._predictor.is_running or self._main_loop.is_running

    def __enter__(self) -> "Localizer":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def submit(self, batch: DetectionBatch) -> None:
        """Hand a new detection batch to the main loop."""
        with self._pending_lock:
            self._pending = batch

    def _main_loop_tick(self, elapsed: float) -> None:
        with self._pending_lock:
            batch, self._pending = self._pending, None
        if batch is not None:
            self.process_detections(batch)

    # ------------------------------------------------------------------
    # Passes over the bank
    # ------------------------------------------------------------------

    def predict_tick(self, dt: float) -> None:
        """Predictor pass: advance every track by dt."""
        self.bank.predict(dt)

    def process_detections(self, batch: DetectionBatch) -> Optional[Estimate]:
        """
        Run one measurement cycle for a detection batch.

        Returns:
            The published Estimate, or None if the cycle was aborted or the
            bank holds no candidate track
        """
        logger.debug("Processing %d new detections", len(batch))

        try:
            sensor_to_world = self.transforms.lookup_transform(
                self.config.world_frame,
                batch.frame_id,
                batch.stamp,
                self.config.transform_timeout_s,
            )
        except TransformUnavailable as exc:
            logger.warning("%s; skipping detections", exc)
            return None

        measurements = self.preprocessor.preprocess(batch, sensor_to_world)
        return self.process_measurements(measurements, batch.stamp)

    def process_measurements(
        self, measurements: Sequence[Measurement], stamp: float
    ) -> Optional[Estimate]:
        """Run one measurement cycle for world-frame measurements."""
        start = self.monitor.begin() if self.monitor is not None else None

        result = self.bank.process(measurements)
        self.last_result = result

        estimate = None
        if result.best is not None:
            estimate = Estimate.from_track(result.best, stamp, self.config.world_frame)
            self.last_estimate = estimate
            if self.on_estimate is not None:
                self.on_estimate(estimate)

        if start is not None:
            self.monitor.end(start)

        logger.debug(
            "Detections processed: %d corrected, %d spawned, %d pruned",
            len(result.corrected),
            len(result.spawned),
            len(result.pruned),
        )
        return estimate

    def get_tracks(self) -> List[Track]:
        return self.bank.get_tracks()

"""
Track Manager for Single-Target Localization

Manages a bank of linear Kalman filters, one per target hypothesis, using
greedy minimum-divergence association. Handles track initiation, correction,
pruning and selection of the most certain track.

Track Lifecycle:
    CREATED -> PREDICTED / CORRECTED -> PRUNED

Tracks live in an insertion-ordered arena keyed by a stable integer id.
A processing pass only marks tracks as PRUNED; they are compacted out of the
bank after the pass completes.

Every pass over the bank (prediction, or association + correction + pruning
+ spawning) runs under one exclusive lock held for the full pass.

Reference:
    - Blackman, S. "Multiple-Target Tracking with Radar Applications", 1986
"""

import copy
import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..exceptions import CovarianceDegeneracy, NumericDegeneracy
from .divergence import kl_divergence
from .kalman import KalmanState, LinearKalmanFilter, Measurement

logger = logging.getLogger(__name__)


class TrackStatus(Enum):
    """Track lifecycle states."""

    CREATED = "created"  # Spawned this cycle from an unmatched measurement
    PREDICTED = "predicted"  # Last touched by a predict step
    CORRECTED = "corrected"  # Last touched by a measurement correction
    PRUNED = "pruned"  # Marked for removal, never re-enters the bank


@dataclass
class Track:
    """
    Single target hypothesis backed by one Kalman filter state.

    Attributes:
        id: Stable track identifier
        state: Kalman filter state [x, y, z, vx, vy, vz]
        status: Track lifecycle status
        hits: Number of measurement corrections
        creation_time: Wall-clock creation time
        last_update: Wall-clock time of the last correction
    """

    id: int
    state: KalmanState
    status: TrackStatus = TrackStatus.CREATED
    hits: int = 0
    creation_time: float = field(default_factory=time.time)
    last_update: float = field(default_factory=time.time)

    @property
    def position(self) -> np.ndarray:
        """Current position estimate [x, y, z]."""
        return self.state.x[:3].copy()

    @property
    def velocity(self) -> np.ndarray:
        """Current velocity estimate [vx, vy, vz]."""
        return self.state.x[3:].copy()

    @property
    def position_covariance(self) -> np.ndarray:
        """3x3 positional marginal of the state covariance."""
        return self.state.P[:3, :3].copy()

    @property
    def is_alive(self) -> bool:
        return self.status != TrackStatus.PRUNED

    def uncertainty(self) -> float:
        """sqrt(det) of the position covariance block."""
        return LinearKalmanFilter.uncertainty(self.state)

    def snapshot(self) -> "Track":
        """Deep copy safe to read outside the bank lock."""
        return copy.deepcopy(self)


@dataclass
class CycleResult:
    """
    Outcome of one measurement cycle.

    Attributes:
        best: Snapshot of the lowest-uncertainty surviving track, if any
        corrected: Ids of tracks corrected this cycle
        spawned: Ids of tracks created this cycle
        pruned: Ids of tracks removed this cycle
        assignments: track id -> index of the measurement it was corrected with
    """

    best: Optional[Track] = None
    corrected: List[int] = field(default_factory=list)
    spawned: List[int] = field(default_factory=list)
    pruned: List[int] = field(default_factory=list)
    assignments: Dict[int, int] = field(default_factory=dict)


class TrackManager:
    """
    Filter bank with greedy divergence-gated association.

    Features:
        - Automatic track initiation from unused measurements
        - Per-track nearest measurement by KL divergence, with gating
        - Uncertainty-driven pruning (no hit/miss counters)
        - Lowest-uncertainty track selection

    Association is greedy per track, not a global assignment. By default two
    tracks may pick and be corrected by the same measurement; with
    `exclusive_association` a measurement used for one correction is
    unavailable to the tracks visited after it.

    Example:
        >>> manager = TrackManager(max_update_divergence=10.0, max_uncertainty=1.0)
        >>> result = manager.process([Measurement([0, 0, 5], np.diag([0.1, 0.1, 0.2]))])
        >>> len(manager)
        1
    """

    def __init__(
        self,
        max_update_divergence: float,
        max_uncertainty: float,
        process_noise: float = 0.0,
        init_vel_cov: float = 1.0,
        exclusive_association: bool = False,
    ) -> None:
        """
        Initialize Track Manager.

        Args:
            max_update_divergence: Divergence gate below which a correction is applied
            max_uncertainty: Tracks whose uncertainty exceeds this are pruned
            process_noise: Kalman filter process noise
            init_vel_cov: Velocity variance of new tracks
            exclusive_association: Forbid two tracks correcting from one measurement
        """
        self.max_update_divergence = max_update_divergence
        self.max_uncertainty = max_uncertainty
        self.exclusive_association = exclusive_association

        # Kalman filter for all tracks
        self.kf = LinearKalmanFilter(process_noise=process_noise, init_vel_cov=init_vel_cov)

        # Track storage
        self.tracks: Dict[int, Track] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self.tracks)

    # ------------------------------------------------------------------
    # Predictor pass
    # ------------------------------------------------------------------

    def predict(self, dt: float) -> int:
        """
        Advance every track by dt without correction.

        Returns:
            Number of tracks left in the bank

        Raises:
            ValueError: if dt is negative
        """
        if dt < 0:
            raise ValueError(f"Prediction step must be non-negative, got dt={dt}")

        with self._lock:
            for track in self.tracks.values():
                try:
                    track.state = self.kf.predict(track.state, dt)
                    track.status = TrackStatus.PREDICTED
                except CovarianceDegeneracy as exc:
                    logger.warning("Track %d diverged during prediction: %s", track.id, exc)
                    track.status = TrackStatus.PRUNED
            self._compact()
            return len(self.tracks)

    # ------------------------------------------------------------------
    # Measurement cycle
    # ------------------------------------------------------------------

    def process(self, measurements: Sequence[Measurement]) -> CycleResult:
        """
        Run one measurement cycle over the bank.

        Steps:
            1. For each track, find the minimum-divergence measurement
            2. Correct the track if that divergence passes the gate
            3. Evaluate uncertainty of every track, mark over-threshold ones
            4. Select the most certain surviving track
            5. Compact pruned tracks out of the bank
            6. Spawn tracks for measurements no corrected track used

        Tracks spawned in step 6 are not candidates for selection until the
        next cycle.
        """
        result = CycleResult()
        used = [0] * len(measurements)

        with self._lock:
            tracks = list(self.tracks.values())

            for track in tracks:
                claimed = used if self.exclusive_association else None
                closest, divergence = self.find_closest_measurement(track, measurements, claimed)
                if closest is None or not divergence < self.max_update_divergence:
                    logger.debug(
                        "Track %d not corrected (min divergence %.3f)", track.id, divergence
                    )
                    continue

                try:
                    self._correct(track, measurements[closest])
                except CovarianceDegeneracy as exc:
                    logger.warning("Track %d diverged during correction: %s", track.id, exc)
                    track.status = TrackStatus.PRUNED
                    continue

                used[closest] += 1
                result.corrected.append(track.id)
                result.assignments[track.id] = closest

            # Uncertainty is evaluated over the whole snapshot before removal
            min_uncertainty = float("inf")
            for track in tracks:
                if not track.is_alive:
                    result.pruned.append(track.id)
                    continue
                uncertainty = track.uncertainty()
                if uncertainty > self.max_uncertainty:
                    logger.info(
                        "Pruning track %d (uncertainty %.4f > %.4f)",
                        track.id,
                        uncertainty,
                        self.max_uncertainty,
                    )
                    track.status = TrackStatus.PRUNED
                    result.pruned.append(track.id)
                elif uncertainty < min_uncertainty:
                    min_uncertainty = uncertainty
                    result.best = track.snapshot()

            self._compact()

            for idx, measurement in enumerate(measurements):
                if used[idx] > 0:
                    continue
                try:
                    track = self._create_track(measurement)
                except CovarianceDegeneracy as exc:
                    logger.warning("Measurement %d not spawned: %s", idx, exc)
                    continue
                result.spawned.append(track.id)

        return result

    def find_closest_measurement(
        self,
        track: Track,
        measurements: Sequence[Measurement],
        claimed: Optional[Sequence[int]] = None,
    ) -> Tuple[Optional[int], float]:
        """
        Find the measurement with the smallest divergence from a track.

        Pairs whose divergence is undefined (singular covariance) are skipped.

        Args:
            track: Track to match
            measurements: Candidate measurements
            claimed: Per-measurement use counts; measurements with a non-zero
                count are skipped

        Returns:
            (index, divergence), or (None, inf) when nothing is eligible
        """
        track_pos = track.state.x[:3]
        track_cov = track.state.P[:3, :3]

        min_divergence = float("inf")
        closest = None
        for idx, measurement in enumerate(measurements):
            if claimed is not None and claimed[idx] > 0:
                continue
            try:
                divergence = kl_divergence(
                    measurement.position, measurement.covariance, track_pos, track_cov
                )
            except NumericDegeneracy as exc:
                logger.debug("Skipping track %d / measurement %d: %s", track.id, idx, exc)
                continue

            if divergence < min_divergence:
                min_divergence = divergence
                closest = idx

        return closest, min_divergence

    def _correct(self, track: Track, measurement: Measurement) -> None:
        track.state = self.kf.update(track.state, measurement)
        track.status = TrackStatus.CORRECTED
        track.hits += 1
        track.last_update = time.time()

    def _create_track(self, measurement: Measurement) -> Track:
        """Create a new track from an unused measurement."""
        state = self.kf.initialize(measurement)

        track = Track(id=self._next_id, state=state, status=TrackStatus.CREATED)
        self.tracks[self._next_id] = track
        self._next_id += 1

        logger.info("Spawned track %d at %s", track.id, np.round(measurement.position, 3))
        return track

    def _compact(self) -> None:
        """Drop tracks marked PRUNED. Caller must hold the lock."""
        self.tracks = {tid: t for tid, t in self.tracks.items() if t.is_alive}

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def get_tracks(self) -> List[Track]:
        """Snapshots of all live tracks in iteration order."""
        with self._lock:
            return [t.snapshot() for t in self.tracks.values()]

    def get_track_by_id(self, track_id: int) -> Optional[Track]:
        """Snapshot of a track by id."""
        with self._lock:
            track = self.tracks.get(track_id)
            return track.snapshot() if track is not None else None

    def clear(self) -> None:
        """Clear all tracks."""
        with self._lock:
            self.tracks.clear()
            self._next_id = 1

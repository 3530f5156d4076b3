"""
Tracking Module

Filter-bank tracking core for single-target 3-D localization.

Components:
    - LinearKalmanFilter: Constant Velocity Kalman Filter (6-D state)
    - Measurement: World-frame position observation with covariance
    - kl_divergence: Gaussian divergence used for association
    - TrackManager: Filter bank with greedy association and pruning
    - Track: Individual target hypothesis
    - TrackStatus: Track lifecycle states

Example:
    >>> from uav_localize.tracking import Measurement, TrackManager
    >>> manager = TrackManager(max_update_divergence=10.0, max_uncertainty=1.0)
    >>> result = manager.process([Measurement([0, 0, 5], np.diag([0.1, 0.1, 0.2]))])
"""

from .divergence import kl_divergence
from .kalman import KalmanState, LinearKalmanFilter, Measurement, check_covariance
from .tracker import CycleResult, Track, TrackManager, TrackStatus

__all__ = [
    "LinearKalmanFilter",
    "KalmanState",
    "Measurement",
    "check_covariance",
    "kl_divergence",
    "TrackManager",
    "Track",
    "TrackStatus",
    "CycleResult",
]

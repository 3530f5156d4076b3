"""
uav-localize

Depth-camera target localization with a bank of linear Kalman filters:
- Constant-velocity 3-D track filters
- KL-divergence gated greedy association
- Uncertainty-driven track spawning and pruning
- Fixed-rate prediction concurrent with measurement processing
"""

from uav_localize.exceptions import (
    CovarianceDegeneracy,
    LocalizationError,
    MissingConfiguration,
    NumericDegeneracy,
    TransformUnavailable,
)
from uav_localize.io import ConfigLoader, LocalizerConfig, load_config
from uav_localize.localization import (
    CameraModel,
    Detection,
    DetectionBatch,
    Estimate,
    Localizer,
    RigidTransform,
    StaticTransformBuffer,
)
from uav_localize.tracking import LinearKalmanFilter, Measurement, Track, TrackManager

__version__ = "1.0.0"
__author__ = "uav-localize Contributors"

__all__ = [
    # Errors
    "LocalizationError",
    "TransformUnavailable",
    "MissingConfiguration",
    "NumericDegeneracy",
    "CovarianceDegeneracy",
    # Tracking
    "LinearKalmanFilter",
    "Measurement",
    "Track",
    "TrackManager",
    # Localization
    "Localizer",
    "Estimate",
    "CameraModel",
    "Detection",
    "DetectionBatch",
    "RigidTransform",
    "StaticTransformBuffer",
    # Configuration
    "ConfigLoader",
    "LocalizerConfig",
    "load_config",
]

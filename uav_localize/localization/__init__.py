"""
Localization Module

Detection preprocessing, transforms and the localization service that
drives the tracking core.
"""

from .diagnostics import ProcessingRateMonitor
from .estimate import UNESTIMATED_VARIANCE, Estimate
from .localizer import Localizer
from .measurement import (
    CameraModel,
    Detection,
    DetectionBatch,
    MeasurementPreprocessor,
    RegionOfInterest,
    detection_to_point,
    position_covariance,
)
from .scheduler import PeriodicTimer
from .transforms import RigidTransform, StaticTransformBuffer, TransformSource

__all__ = [
    "Localizer",
    "Estimate",
    "UNESTIMATED_VARIANCE",
    "CameraModel",
    "Detection",
    "DetectionBatch",
    "RegionOfInterest",
    "MeasurementPreprocessor",
    "detection_to_point",
    "position_covariance",
    "RigidTransform",
    "StaticTransformBuffer",
    "TransformSource",
    "PeriodicTimer",
    "ProcessingRateMonitor",
]

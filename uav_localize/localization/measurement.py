"""
Measurement Preprocessing

Turns decoded camera detections into world-frame Measurements:

    1. Back-project the detection through a pinhole camera model to a 3-D
       point in the sensor frame (ray scaled by depth).
    2. Build a position covariance in the sensor frame: isotropic across the
       image plane, growing with depth along the viewing ray.
    3. Transform the point and rotate the covariance into the world frame.

Reference:
    - Hartley, R., Zisserman, A. "Multiple View Geometry", 2nd Ed., Ch. 6
"""

from dataclasses import dataclass, field
from typing import List

import numpy as np

from ..tracking.kalman import Measurement
from .transforms import RigidTransform

# Threshold for treating the viewing ray as parallel to the optical axis
PARALLEL_TOLERANCE = 1e-9

# Lower bound on the depth variance as a fraction of z_covariance_coeff
MIN_DEPTH_VARIANCE_RATIO = 0.33


@dataclass
class RegionOfInterest:
    """Sub-window of the image the detector ran on (pixels)."""

    x_offset: int = 0
    y_offset: int = 0
    width: int = 0
    height: int = 0


@dataclass
class Detection:
    """
    One detected target in a camera image.

    Attributes:
        x, y: Detection center, normalized to [0, 1] within the ROI
        depth: Range along the optical axis (meters)
        roi: Region of interest the normalized coordinates refer to
    """

    x: float
    y: float
    depth: float
    roi: RegionOfInterest = field(default_factory=RegionOfInterest)


@dataclass
class DetectionBatch:
    """All detections from one image, with the frame they were taken in."""

    frame_id: str
    stamp: float
    detections: List[Detection] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.detections)


@dataclass
class CameraModel:
    """Pinhole camera intrinsics."""

    fx: float
    fy: float
    cx: float
    cy: float

    def __post_init__(self) -> None:
        if self.fx == 0 or self.fy == 0:
            raise ValueError("Focal lengths must be non-zero")


def detection_to_point(detection: Detection, camera: CameraModel) -> np.ndarray:
    """Back-project a detection to a 3-D point in the sensor frame."""
    u = detection.x * detection.roi.width + detection.roi.x_offset
    v = detection.y * detection.roi.height + detection.roi.y_offset
    ray = np.array([(u - camera.cx) / camera.fx, (v - camera.cy) / camera.fy, 1.0])
    return ray * detection.depth


def _rotation_between(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Rotation matrix taking unit vector a onto unit vector b (Rodrigues)."""
    v = np.cross(a, b)
    sin_ab = np.linalg.norm(v)
    cos_ab = float(np.dot(a, b))

    if sin_ab < PARALLEL_TOLERANCE:
        if cos_ab + 1.0 < PARALLEL_TOLERANCE:
            # Anti-parallel: 180 deg about x
            return np.diag([1.0, -1.0, -1.0])
        return np.eye(3)

    v_x = np.array([[0.0, -v[2], v[1]], [v[2], 0.0, -v[0]], [-v[1], v[0], 0.0]])
    return np.eye(3) + v_x + (1.0 - cos_ab) / (sin_ab * sin_ab) * (v_x @ v_x)


def position_covariance(
    position_sf: np.ndarray, xy_covariance_coeff: float, z_covariance_coeff: float
) -> np.ndarray:
    """
    Covariance of a back-projected point, in the sensor frame.

    The depth variance grows as z^1.5 and is floored at
    0.33 * z_covariance_coeff. The matrix is rotated so that its depth axis
    points along the viewing ray.

    Args:
        position_sf: Point in the sensor frame [x, y, z]
        xy_covariance_coeff: Variance across the image plane
        z_covariance_coeff: Depth variance scale
    """
    position_sf = np.asarray(position_sf, dtype=np.float64)
    depth = position_sf[2]

    cov = np.eye(3)
    cov[0, 0] = cov[1, 1] = xy_covariance_coeff
    cov[2, 2] = depth * np.sqrt(max(depth, 0.0)) * z_covariance_coeff
    if cov[2, 2] < MIN_DEPTH_VARIANCE_RATIO * z_covariance_coeff:
        cov[2, 2] = MIN_DEPTH_VARIANCE_RATIO * z_covariance_coeff

    norm = np.linalg.norm(position_sf)
    if norm < PARALLEL_TOLERANCE:
        return cov

    rotation = _rotation_between(np.array([0.0, 0.0, 1.0]), position_sf / norm)
    return rotation @ cov @ rotation.T


class MeasurementPreprocessor:
    """
    Converts detection batches to world-frame measurements.

    Usage:
        pre = MeasurementPreprocessor(camera, xy_covariance_coeff=0.1, z_covariance_coeff=0.2)
        measurements = pre.preprocess(batch, sensor_to_world)
    """

    def __init__(
        self, camera: CameraModel, xy_covariance_coeff: float, z_covariance_coeff: float
    ) -> None:
        self.camera = camera
        self.xy_covariance_coeff = xy_covariance_coeff
        self.z_covariance_coeff = z_covariance_coeff

    def to_measurement(
        self, detection: Detection, sensor_to_world: RigidTransform, stamp: float
    ) -> Measurement:
        point_sf = detection_to_point(detection, self.camera)
        cov_sf = position_covariance(point_sf, self.xy_covariance_coeff, self.z_covariance_coeff)
        return Measurement(
            position=sensor_to_world.apply(point_sf),
            covariance=sensor_to_world.rotate_covariance(cov_sf),
            stamp=stamp,
        )

    def preprocess(
        self, batch: DetectionBatch, sensor_to_world: RigidTransform
    ) -> List[Measurement]:
        return [self.to_measurement(d, sensor_to_world, batch.stamp) for d in batch.detections]


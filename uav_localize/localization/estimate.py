"""
Localization Estimate

Read-only snapshot of the most certain track, in the layout of a
pose-with-covariance message: position, identity orientation and a row-major
6x6 covariance over (x, y, z, roll, pitch, yaw).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

import numpy as np

from ..tracking.tracker import Track

# Variance written on the rotational diagonal, which is never estimated
UNESTIMATED_VARIANCE = 666.0

IDENTITY_ORIENTATION = (0.0, 0.0, 0.0, 1.0)


@dataclass(frozen=True)
class Estimate:
    """
    Published target estimate.

    Attributes:
        position: World-frame position [x, y, z] (meters)
        position_covariance: 3x3 position covariance
        stamp: Stamp of the detections that triggered the cycle
        frame_id: World frame identifier
        track_id: Id of the track the estimate was taken from
        orientation: Quaternion (x, y, z, w), always identity
    """

    position: np.ndarray
    position_covariance: np.ndarray
    stamp: float
    frame_id: str
    track_id: int = 0
    orientation: Tuple[float, float, float, float] = field(default=IDENTITY_ORIENTATION)

    @classmethod
    def from_track(cls, track: Track, stamp: float, frame_id: str) -> "Estimate":
        return cls(
            position=track.position,
            position_covariance=track.position_covariance,
            stamp=stamp,
            frame_id=frame_id,
            track_id=track.id,
        )

    def covariance_6x6(self) -> np.ndarray:
        """Pose covariance with the position block filled and a sentinel elsewhere."""
        cov = np.zeros((6, 6))
        cov[:3, :3] = self.position_covariance
        cov[3, 3] = cov[4, 4] = cov[5, 5] = UNESTIMATED_VARIANCE
        return cov

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "frame_id": self.frame_id,
            "stamp": self.stamp,
            "track_id": self.track_id,
            "position": [float(v) for v in self.position],
            "orientation": list(self.orientation),
            "covariance": self.covariance_6x6().flatten().tolist(),
        }

"""
Rigid Transforms and Transform Lookup

Sensor-to-world transforms applied to measurement positions and covariances
before they reach the filter bank.

A transform source exposes:

    lookup_transform(target_frame, source_frame, stamp, timeout) -> RigidTransform

and raises TransformUnavailable when it cannot answer in time. The
StaticTransformBuffer here serves fixed transforms (replay, tests, rigs with
a static camera mount); a live deployment plugs in its own buffer with the
same method.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol, Sequence, Tuple

import numpy as np
from scipy.spatial.transform import Rotation

from ..exceptions import TransformUnavailable


@dataclass
class RigidTransform:
    """
    Rotation + translation mapping points from a source into a target frame.

    Attributes:
        rotation: 3x3 rotation matrix
        translation: Translation vector [x, y, z] (meters)
    """

    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        self.rotation = np.asarray(self.rotation, dtype=np.float64).reshape(3, 3)
        self.translation = np.asarray(self.translation, dtype=np.float64).reshape(3)

    @classmethod
    def identity(cls) -> "RigidTransform":
        return cls()

    @classmethod
    def from_quaternion(
        cls, translation: Sequence[float], quaternion: Sequence[float]
    ) -> "RigidTransform":
        """
        Build from a translation and an (x, y, z, w) quaternion.
        """
        rotation = Rotation.from_quat(np.asarray(quaternion, dtype=np.float64)).as_matrix()
        return cls(rotation=rotation, translation=translation)

    def apply(self, point: np.ndarray) -> np.ndarray:
        """Transform a point (or an Nx3 array of points)."""
        return np.asarray(point, dtype=np.float64) @ self.rotation.T + self.translation

    def rotate_covariance(self, covariance: np.ndarray) -> np.ndarray:
        """R * C * R^T"""
        return self.rotation @ covariance @ self.rotation.T

    def compose(self, other: "RigidTransform") -> "RigidTransform":
        """self * other: apply `other` first, then `self`."""
        return RigidTransform(
            rotation=self.rotation @ other.rotation,
            translation=self.rotation @ other.translation + self.translation,
        )

    def inverse(self) -> "RigidTransform":
        rotation_inv = self.rotation.T
        return RigidTransform(rotation=rotation_inv, translation=-rotation_inv @ self.translation)


class TransformSource(Protocol):
    """Anything that resolves sensor-to-world transforms for the localizer."""

    def lookup_transform(
        self,
        target_frame: str,
        source_frame: str,
        stamp: float,
        timeout: Optional[float] = None,
    ) -> RigidTransform:
        ...


class StaticTransformBuffer:
    """
    In-memory registry of time-invariant transforms.

    Each registered edge answers lookups in both directions. Lookups between
    identical frames return the identity. Chains of edges are not resolved.

    Usage:
        buffer = StaticTransformBuffer()
        buffer.set_transform("local_origin", "camera", RigidTransform(...))
        tf = buffer.lookup_transform("local_origin", "camera", stamp)
    """

    def __init__(self) -> None:
        self._transforms: Dict[Tuple[str, str], RigidTransform] = {}

    def set_transform(
        self, target_frame: str, source_frame: str, transform: RigidTransform
    ) -> None:
        """Register the transform taking `source_frame` points into `target_frame`."""
        self._transforms[(target_frame, source_frame)] = transform

    def lookup_transform(
        self,
        target_frame: str,
        source_frame: str,
        stamp: float,
        timeout: Optional[float] = None,
    ) -> RigidTransform:
        """
        Resolve the transform from `source_frame` into `target_frame`.

        `stamp` and `timeout` are accepted for interface compatibility; static
        transforms are valid at every time and never block.

        Raises:
            TransformUnavailable: if no edge connects the two frames
        """
        if target_frame == source_frame:
            return RigidTransform.identity()

        transform = self._transforms.get((target_frame, source_frame))
        if transform is not None:
            return transform

        reverse = self._transforms.get((source_frame, target_frame))
        if reverse is not None:
            return reverse.inverse()

        raise TransformUnavailable(target_frame, source_frame, "no such transform")

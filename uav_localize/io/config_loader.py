"""
Localizer Configuration Loader

YAML-based configuration parser for the localization node.

Loads filter parameters, optional camera intrinsics and optional static
transforms, and creates configured Localizer instances.

Supported configuration elements:
    - Filter bank parameters (compulsory, see COMPULSORY_KEYS)
    - Camera intrinsics (fx, fy, cx, cy)
    - Static transforms between frames

Usage:
    loader = ConfigLoader('config/localizer.yaml')
    localizer = loader.create_localizer()

Example file:
    world_frame: local_origin
    lkf_dt: 0.05
    xy_covariance_coeff: 0.1
    z_covariance_coeff: 0.2
    max_update_divergence: 10.0
    max_lkf_uncertainty: 1.0
    lkf_process_noise: 0.01
    init_vel_cov: 1.0
    camera: {fx: 600, fy: 600, cx: 320, cy: 240}
    transforms:
      - parent: local_origin
        child: camera
        translation: [0, 0, 1]
        rotation: [0, 0, 0, 1]
"""

import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import yaml

from ..exceptions import MissingConfiguration
from ..localization.measurement import CameraModel
from ..localization.transforms import RigidTransform, StaticTransformBuffer

logger = logging.getLogger(__name__)

COMPULSORY_KEYS = (
    "lkf_dt",
    "xy_covariance_coeff",
    "z_covariance_coeff",
    "max_update_divergence",
    "max_lkf_uncertainty",
    "lkf_process_noise",
    "init_vel_cov",
)

POSITIVE_KEYS = (
    "lkf_dt",
    "xy_covariance_coeff",
    "z_covariance_coeff",
    "max_update_divergence",
    "max_lkf_uncertainty",
)

NON_NEGATIVE_KEYS = ("lkf_process_noise", "init_vel_cov", "transform_timeout_s")


@dataclass
class LocalizerConfig:
    """
    Static localizer parameters.

    Attributes:
        lkf_dt: Predictor and main loop period (seconds)
        xy_covariance_coeff: Measurement variance across the image plane
        z_covariance_coeff: Measurement depth variance scale
        max_update_divergence: Divergence gate for corrections
        max_lkf_uncertainty: Prune threshold on track uncertainty
        lkf_process_noise: Diagonal process noise per predict step
        init_vel_cov: Velocity variance of new tracks
        world_frame: Frame estimates are expressed in
        exclusive_association: Forbid two tracks correcting from one measurement
        transform_timeout_s: Transform lookup timeout (seconds)
    """

    lkf_dt: float
    xy_covariance_coeff: float
    z_covariance_coeff: float
    max_update_divergence: float
    max_lkf_uncertainty: float
    lkf_process_noise: float
    init_vel_cov: float
    world_frame: str = "local_origin"
    exclusive_association: bool = False
    transform_timeout_s: float = 0.01

    def validate(self) -> None:
        """
        Check parameter ranges.

        Raises:
            ValueError: listing every out-of-range parameter
        """
        invalid = [key for key in POSITIVE_KEYS if not getattr(self, key) > 0]
        invalid += [key for key in NON_NEGATIVE_KEYS if not getattr(self, key) >= 0]
        if invalid:
            for key in invalid:
                logger.error("Parameter %s out of range: %s", key, getattr(self, key))
            raise ValueError("Out-of-range parameter(s): " + ", ".join(invalid))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocalizerConfig":
        """
        Build from a flat mapping.

        Raises:
            MissingConfiguration: listing every absent compulsory key
            ValueError: if a parameter is out of range
        """
        missing = [key for key in COMPULSORY_KEYS if data.get(key) is None]
        if missing:
            for key in missing:
                logger.error("Could not load non-optional parameter %s", key)
            raise MissingConfiguration(missing)

        config = cls(
            lkf_dt=float(data["lkf_dt"]),
            xy_covariance_coeff=float(data["xy_covariance_coeff"]),
            z_covariance_coeff=float(data["z_covariance_coeff"]),
            max_update_divergence=float(data["max_update_divergence"]),
            max_lkf_uncertainty=float(data["max_lkf_uncertainty"]),
            lkf_process_noise=float(data["lkf_process_noise"]),
            init_vel_cov=float(data["init_vel_cov"]),
            world_frame=str(data.get("world_frame", "local_origin")),
            exclusive_association=bool(data.get("exclusive_association", False)),
            transform_timeout_s=float(data.get("transform_timeout_s", 0.01)),
        )
        config.validate()
        for key, value in asdict(config).items():
            logger.info("\t%s:\t%s", key, value)
        return config


class ConfigLoader:
    """
    Loads localizer configuration from YAML files.

    Usage:
        loader = ConfigLoader('config/localizer.yaml')
        config = loader.get_config()
        localizer = loader.create_localizer()
    """

    def __init__(self, filepath: Optional[str] = None):
        """
        Initialize configuration loader.

        Args:
            filepath: Path to YAML configuration file (optional)
        """
        self.filepath = filepath
        self.data: Dict[str, Any] = {}
        self._config: Optional[LocalizerConfig] = None

        if filepath:
            self.load(filepath)

    def load(self, filepath: str) -> LocalizerConfig:
        """
        Load configuration from YAML file.

        Raises:
            FileNotFoundError: If file doesn't exist
            yaml.YAMLError: If YAML parsing fails
            MissingConfiguration: If compulsory parameters are absent
            ValueError: If a parameter is out of range
        """
        if not os.path.exists(filepath):
            raise FileNotFoundError(f"Configuration file not found: {filepath}")

        self.filepath = filepath

        with open(filepath, "r", encoding="utf-8") as f:
            self.data = yaml.safe_load(f) or {}

        logger.info("Loading static parameters from %s:", filepath)
        self._config = LocalizerConfig.from_dict(self.data)
        return self._config

    def get_config(self) -> Optional[LocalizerConfig]:
        """Parsed localizer configuration, or None if not loaded."""
        return self._config

    def get_camera(self) -> Optional[CameraModel]:
        """Camera intrinsics from the `camera` section, if present."""
        camera = self.data.get("camera")
        if not camera:
            return None
        return CameraModel(
            fx=float(camera["fx"]),
            fy=float(camera["fy"]),
            cx=float(camera["cx"]),
            cy=float(camera["cy"]),
        )

    def get_transforms(self) -> StaticTransformBuffer:
        """Static transforms from the `transforms` section."""
        buffer = StaticTransformBuffer()
        for entry in self.data.get("transforms", []) or []:
            transform = RigidTransform.from_quaternion(
                entry.get("translation", [0.0, 0.0, 0.0]),
                entry.get("rotation", [0.0, 0.0, 0.0, 1.0]),
            )
            buffer.set_transform(entry["parent"], entry["child"], transform)
        return buffer

    def create_localizer(self, **kwargs):
        """
        Create a Localizer from the loaded configuration.

        Raises:
            ValueError: If no configuration or no camera section is loaded
        """
        if not self._config:
            raise ValueError("No configuration loaded. Call load() first.")

        camera = self.get_camera()
        if camera is None:
            raise ValueError("Configuration has no camera section")

        # Import here to avoid circular dependencies
        from ..localization.localizer import Localizer

        return Localizer(self._config, camera, self.get_transforms(), **kwargs)


def load_config(filepath: str) -> LocalizerConfig:
    """
    Convenience function to load a configuration file.

    Args:
        filepath: Path to YAML configuration file

    Returns:
        LocalizerConfig instance
    """
    loader = ConfigLoader(filepath)
    return loader.get_config()

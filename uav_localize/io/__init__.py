"""
I/O Package

Configuration loading and detection log replay.
"""

from .config_loader import ConfigLoader, LocalizerConfig, load_config
from .replay import ReplayResult, load_detection_log, parse_detection_log, replay

__all__ = [
    "ConfigLoader",
    "LocalizerConfig",
    "load_config",
    "ReplayResult",
    "load_detection_log",
    "parse_detection_log",
    "replay",
]

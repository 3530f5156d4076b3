"""
Detection Log Replay

Replays recorded detection batches through a Localizer on a simulated
clock, so a run is reproducible regardless of wall-clock scheduling.

Log format (YAML):
    detections:
      - stamp: 0.0
        frame_id: camera
        items:
          - {x: 0.5, y: 0.5, depth: 5.0, roi: {x_offset: 0, y_offset: 0, width: 640, height: 480}}

Usage:
    batches = load_detection_log('logs/run.yaml')
    result = replay(localizer, batches, tail_s=2.0)
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import yaml

from ..localization.estimate import Estimate
from ..localization.localizer import Localizer
from ..localization.measurement import Detection, DetectionBatch, RegionOfInterest

logger = logging.getLogger(__name__)

# Slack when comparing simulated clock ticks against batch stamps
CLOCK_EPSILON = 1e-9


@dataclass
class ReplayResult:
    """
    Outcome of a replay run.

    Attributes:
        estimates: Published estimates in order
        cycles: Number of measurement cycles run
        predict_ticks: Number of predictor ticks run
        final_track_count: Tracks left in the bank at the end
    """

    estimates: List[Estimate] = field(default_factory=list)
    cycles: int = 0
    predict_ticks: int = 0
    final_track_count: int = 0


def _parse_detection(item: Dict[str, Any]) -> Detection:
    roi = item.get("roi", {}) or {}
    return Detection(
        x=float(item["x"]),
        y=float(item["y"]),
        depth=float(item["depth"]),
        roi=RegionOfInterest(
            x_offset=int(roi.get("x_offset", 0)),
            y_offset=int(roi.get("y_offset", 0)),
            width=int(roi.get("width", 0)),
            height=int(roi.get("height", 0)),
        ),
    )


def parse_detection_log(data: Dict[str, Any]) -> List[DetectionBatch]:
    """Parse a loaded detection log mapping into batches sorted by stamp."""
    batches = []
    for entry in data.get("detections", []) or []:
        batches.append(
            DetectionBatch(
                frame_id=str(entry["frame_id"]),
                stamp=float(entry["stamp"]),
                detections=[_parse_detection(item) for item in entry.get("items", []) or []],
            )
        )
    return sorted(batches, key=lambda b: b.stamp)


def load_detection_log(filepath: str) -> List[DetectionBatch]:
    """
    Load a YAML detection log.

    Raises:
        FileNotFoundError: If file doesn't exist
    """
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"Detection log not found: {filepath}")

    with open(filepath, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return parse_detection_log(data)


def replay(
    localizer: Localizer,
    batches: Sequence[DetectionBatch],
    tick: Optional[float] = None,
    tail_s: float = 0.0,
) -> ReplayResult:
    """
    Replay batches on a simulated clock.

    The clock starts at the first batch stamp and advances in fixed ticks;
    every tick whose time is at or before a batch stamp runs a predictor pass
    before that batch is processed. After the last batch the clock keeps
    ticking for `tail_s` seconds.

    Args:
        localizer: Localizer to drive (its timers should not be running)
        batches: Detection batches sorted by stamp
        tick: Predictor period, defaults to the configured lkf_dt
        tail_s: Extra prediction time after the last batch

    Returns:
        ReplayResult
    """
    tick = tick if tick is not None else localizer.config.lkf_dt
    if not tick > 0:
        raise ValueError(f"tick must be positive, got {tick}")

    result = ReplayResult()
    if not batches:
        return result

    t0 = batches[0].stamp

    def advance_to(t: float) -> None:
        while t0 + (result.predict_ticks + 1) * tick <= t + CLOCK_EPSILON:
            localizer.predict_tick(tick)
            result.predict_ticks += 1

    for batch in batches:
        advance_to(batch.stamp)
        estimate = localizer.process_detections(batch)
        result.cycles += 1
        if estimate is not None:
            result.estimates.append(estimate)

    advance_to(batches[-1].stamp + tail_s)
    result.final_track_count = len(localizer.bank)

    logger.info(
        "Replayed %d batches (%d predictor ticks): %d estimates, %d tracks left",
        result.cycles,
        result.predict_ticks,
        len(result.estimates),
        result.final_track_count,
    )
    return result

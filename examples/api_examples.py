"""
uav-localize API Examples

Usage examples demonstrating the localization API.
"""

import os
import sys
import time

import numpy as np

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def example_single_filter():
    """
    Example 1: One Kalman Track

    Seed a filter from a measurement, let it coast, then correct it.
    """
    from uav_localize.tracking import LinearKalmanFilter, Measurement

    kf = LinearKalmanFilter(process_noise=0.01, init_vel_cov=1.0)
    cov = np.diag([0.1, 0.1, 0.2])

    state = kf.initialize(Measurement([0.0, 0.0, 5.0], cov))
    print("=== Single Filter Example ===")
    print(f"Initial uncertainty: {kf.uncertainty(state):.4f}")

    state = kf.predict(state, dt=0.1)
    print(f"After predict:       {kf.uncertainty(state):.4f}")

    state = kf.update(state, Measurement([0.05, 0.0, 5.0], cov))
    print(f"After correction:    {kf.uncertainty(state):.4f}")
    print(f"Position: {np.round(kf.get_position(state), 3)}")


def example_filter_bank():
    """
    Example 2: Filter Bank Cycles

    Spawn, correct and eventually prune a track.
    """
    from uav_localize.tracking import Measurement, TrackManager

    manager = TrackManager(max_update_divergence=10.0, max_uncertainty=1.0, process_noise=0.01)
    cov = np.diag([0.1, 0.1, 0.2])

    print("\n=== Filter Bank Example ===")
    manager.process([Measurement([0.0, 0.0, 5.0], cov)])
    print(f"Cycle 1: {len(manager)} track(s)")

    manager.predict(0.1)
    result = manager.process([Measurement([0.05, 0.0, 5.0], cov)])
    print(f"Cycle 2: corrected {result.corrected}, best at {np.round(result.best.position, 3)}")

    cycles = 0
    while len(manager) > 0:
        manager.predict(0.1)
        manager.process([])
        cycles += 1
    print(f"Track pruned after {cycles} silent cycles")


def example_localizer_service():
    """
    Example 3: Threaded Localizer

    Run the predictor and main loop timers and submit detections.
    """
    from uav_localize.io import LocalizerConfig
    from uav_localize.localization import (
        CameraModel,
        Detection,
        DetectionBatch,
        Localizer,
        RegionOfInterest,
        StaticTransformBuffer,
    )

    config = LocalizerConfig(
        lkf_dt=0.02,
        xy_covariance_coeff=0.1,
        z_covariance_coeff=0.2,
        max_update_divergence=10.0,
        max_lkf_uncertainty=1.0,
        lkf_process_noise=0.01,
        init_vel_cov=1.0,
        world_frame="camera",
    )
    camera = CameraModel(fx=600.0, fy=600.0, cx=320.0, cy=240.0)
    roi = RegionOfInterest(width=640, height=480)

    estimates = []
    localizer = Localizer(config, camera, StaticTransformBuffer(), on_estimate=estimates.append)

    print("\n=== Localizer Service Example ===")
    with localizer:
        for k in range(10):
            batch = DetectionBatch(
                frame_id="camera",
                stamp=time.time(),
                detections=[Detection(x=0.5 + 0.002 * k, y=0.5, depth=5.0, roi=roi)],
            )
            localizer.submit(batch)
            time.sleep(0.05)

    print(f"Published {len(estimates)} estimates")
    if estimates:
        print(f"Last: {estimates[-1].to_dict()['position']}")


if __name__ == "__main__":
    example_single_filter()
    example_filter_bank()
    example_localizer_service()

"""
Filter Bank Validation Test Suite

Tests for association, correction, spawning, pruning and selection.

Test ID | Description                         | Expected
--------|-------------------------------------|---------------------------------
1       | Spawn from empty bank               | One track seeded at measurement
2       | Pruning after silent predicts       | Bank shrinks by pruned count
3       | Gated greedy association            | Closest passing measurement used
4       | Shared vs exclusive association     | Measurement reuse configurable
5       | Selection                           | Lowest uncertainty, first on tie
6       | End-to-end scenario                 | Spawn, correct, coast, prune
"""

import os
import sys

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from uav_localize.tracking.kalman import Measurement
from uav_localize.tracking.tracker import TrackManager, TrackStatus

MEAS_COV = np.diag([0.1, 0.1, 0.2])


def make_manager(**kwargs) -> TrackManager:
    params = dict(
        max_update_divergence=10.0,
        max_uncertainty=0.5,
        process_noise=0.01,
        init_vel_cov=1.0,
    )
    params.update(kwargs)
    return TrackManager(**params)


def meas(x, y, z, cov=MEAS_COV) -> Measurement:
    return Measurement(position=[x, y, z], covariance=cov)


# =============================================================================
# TEST 1: Spawning
# =============================================================================


class TestSpawn:
    def test_single_measurement_empty_bank(self):
        """One measurement against an empty bank yields exactly one seeded track"""
        manager = make_manager(init_vel_cov=2.0)

        result = manager.process([meas(0.0, 0.0, 5.0)])

        tracks = manager.get_tracks()
        assert len(tracks) == 1
        assert result.spawned == [tracks[0].id]
        np.testing.assert_allclose(tracks[0].position, [0.0, 0.0, 5.0])
        np.testing.assert_allclose(tracks[0].velocity, np.zeros(3))
        np.testing.assert_allclose(tracks[0].position_covariance, MEAS_COV)
        np.testing.assert_allclose(tracks[0].state.P[3:, 3:], 2.0 * np.eye(3))
        assert tracks[0].status == TrackStatus.CREATED

    def test_spawned_track_not_selected_same_cycle(self):
        manager = make_manager()

        result = manager.process([meas(0.0, 0.0, 5.0)])

        assert result.best is None

    def test_every_unused_measurement_spawns(self):
        manager = make_manager()

        result = manager.process([meas(0, 0, 5), meas(3, 0, 5), meas(0, 3, 5)])

        assert len(result.spawned) == 3
        assert len(manager) == 3

    def test_degenerate_measurement_not_spawned(self):
        """An indefinite measurement covariance is skipped, the rest of the cycle completes"""
        manager = make_manager()
        bad = meas(3, 0, 5, cov=np.diag([0.1, -0.1, 0.2]))

        result = manager.process([meas(0, 0, 5), bad])

        assert result.spawned == [1]
        assert len(manager) == 1

        manager.predict(0.1)
        result = manager.process([meas(0.05, 0, 5), bad])
        assert result.corrected == [1]
        assert result.best.id == 1
        assert len(manager) == 1

    def test_ids_are_stable_and_increasing(self):
        manager = make_manager()
        manager.process([meas(0, 0, 5)])
        manager.process([meas(50, 0, 5)])

        ids = [t.id for t in manager.get_tracks()]
        assert ids == [1, 2]


# =============================================================================
# TEST 2: Pruning
# =============================================================================


class TestPruning:
    def test_silent_predicts_eventually_prune(self):
        manager = make_manager(max_uncertainty=0.5)
        manager.process([meas(0, 0, 5)])
        track_id = manager.get_tracks()[0].id

        steps = 0
        while manager.get_track_by_id(track_id).uncertainty() <= 0.5:
            manager.predict(0.1)
            steps += 1
            assert steps < 1000

        result = manager.process([])

        assert result.pruned == [track_id]
        assert len(manager) == 0
        assert result.best is None

    def test_bank_shrinks_by_pruned_count(self):
        manager = make_manager(max_uncertainty=0.5)
        manager.process(
            [meas(0, 0, 5, cov=np.eye(3) * 0.45), meas(100, 0, 5, cov=np.eye(3) * 0.01)]
        )
        for _ in range(5):
            manager.predict(0.1)

        before = len(manager)
        result = manager.process([])

        assert result.pruned == [1]
        assert len(manager) == before - len(result.pruned)

    def test_predict_does_not_prune_by_uncertainty(self):
        manager = make_manager(max_uncertainty=0.01)
        manager.process([meas(0, 0, 5)])

        manager.predict(1.0)

        assert len(manager) == 1

    def test_degenerate_track_removed_by_predict(self):
        manager = make_manager()
        manager.process([meas(0, 0, 5)])
        manager.tracks[1].state.P[0, 0] = np.nan

        remaining = manager.predict(0.1)

        assert remaining == 0

    def test_negative_dt_rejected(self):
        manager = make_manager()
        with pytest.raises(ValueError):
            manager.predict(-0.1)

    def test_all_pruned_tracks_reported_in_one_pass(self):
        """Adjacent tracks over threshold are all removed in the same cycle"""
        manager = make_manager(max_uncertainty=0.5)
        manager.process([meas(0, 0, 5), meas(10, 0, 5), meas(20, 0, 5)])
        for _ in range(15):
            manager.predict(0.1)

        result = manager.process([])

        assert sorted(result.pruned) == [1, 2, 3]
        assert len(manager) == 0


# =============================================================================
# TEST 3: Association
# =============================================================================


class TestAssociation:
    def test_closest_measurement_corrects(self):
        manager = make_manager()
        manager.process([meas(0, 0, 5)])
        manager.predict(0.1)

        result = manager.process([meas(3, 0, 5), meas(0.05, 0, 5)])

        assert result.corrected == [1]
        assert result.assignments == {1: 1}
        # The far measurement was not used and spawned a track
        assert len(result.spawned) == 1
        assert manager.get_track_by_id(1).status == TrackStatus.CORRECTED

    def test_gate_blocks_far_measurement(self):
        manager = make_manager(max_update_divergence=1.0)
        manager.process([meas(0, 0, 5)])
        manager.predict(0.1)

        result = manager.process([meas(5, 0, 5)])

        assert result.corrected == []
        assert len(result.spawned) == 1
        np.testing.assert_allclose(manager.get_track_by_id(1).position, [0, 0, 5], atol=1e-12)

    def test_one_correction_per_track_per_cycle(self):
        manager = make_manager()
        manager.process([meas(0, 0, 5)])
        manager.predict(0.1)

        manager.process([meas(0.01, 0, 5), meas(-0.01, 0, 5)])

        assert manager.get_track_by_id(1).hits == 1

    def test_singular_measurement_never_selected(self):
        manager = make_manager()
        manager.process([meas(0, 0, 5)])
        manager.predict(0.1)

        # Exactly at the track, but with a singular covariance
        singular = meas(0, 0, 5, cov=np.diag([0.1, 0.1, 0.0]))
        result = manager.process([singular, meas(0.1, 0, 5)])

        assert result.assignments == {1: 1}

    def test_only_singular_measurements_leave_track_uncorrected(self):
        manager = make_manager()
        manager.process([meas(0, 0, 5)])
        manager.predict(0.1)

        closest, divergence = manager.find_closest_measurement(
            manager.tracks[1], [meas(0, 0, 5, cov=np.zeros((3, 3)))]
        )

        assert closest is None
        assert divergence == float("inf")


# =============================================================================
# TEST 4: Shared vs Exclusive Association
# =============================================================================


class TestMeasurementSharing:
    def _two_overlapping_tracks(self, **kwargs) -> TrackManager:
        manager = make_manager(**kwargs)
        manager.process([meas(0, 0, 5), meas(0, 0, 5)])
        manager.predict(0.1)
        return manager

    def test_shared_measurement_corrects_both(self):
        manager = self._two_overlapping_tracks()

        result = manager.process([meas(0.05, 0, 5)])

        assert result.corrected == [1, 2]
        assert result.assignments == {1: 0, 2: 0}
        assert result.spawned == []

    def test_exclusive_measurement_corrects_first_only(self):
        manager = self._two_overlapping_tracks(exclusive_association=True)

        result = manager.process([meas(0.05, 0, 5)])

        assert result.corrected == [1]
        assert result.spawned == []
        assert manager.get_track_by_id(2).status == TrackStatus.PREDICTED


# =============================================================================
# TEST 5: Selection
# =============================================================================


class TestSelection:
    def test_empty_bank_produces_nothing(self):
        manager = make_manager()

        result = manager.process([])

        assert result.best is None
        assert len(manager) == 0

    def test_lowest_uncertainty_wins(self):
        manager = make_manager()
        manager.process([meas(0, 0, 5, cov=np.eye(3) * 0.3), meas(10, 0, 5, cov=np.eye(3) * 0.05)])

        result = manager.process([])

        assert result.best.id == 2

    def test_tie_goes_to_first_track(self):
        manager = make_manager()
        manager.process([meas(0, 0, 5), meas(10, 0, 5)])

        result = manager.process([])

        assert result.best.id == 1

    def test_negative_determinant_track_pruned_not_selected(self):
        manager = make_manager()
        manager.process([meas(0, 0, 5), meas(10, 0, 5)])
        manager.tracks[1].state.P[:3, :3] = np.diag([0.1, 0.1, -1e-12])

        result = manager.process([])

        assert result.pruned == [1]
        assert result.best.id == 2
        assert len(manager) == 1

    def test_best_is_a_snapshot(self):
        manager = make_manager()
        manager.process([meas(0, 0, 5)])
        result = manager.process([])

        manager.predict(1.0)

        assert result.best.uncertainty() < manager.get_track_by_id(1).uncertainty()

    def test_track_after_pruned_one_still_considered(self):
        """Selection covers the track following a pruned one"""
        manager = make_manager(max_uncertainty=0.5)
        manager.process(
            [meas(0, 0, 5, cov=np.eye(3) * 0.45), meas(100, 0, 5, cov=np.eye(3) * 0.01)]
        )
        for _ in range(5):
            manager.predict(0.1)

        result = manager.process([])

        assert result.pruned == [1]
        assert result.best is not None
        assert result.best.id == 2


# =============================================================================
# TEST 6: End-to-end Scenario
# =============================================================================


class TestEndToEnd:
    """
    Cycle 1: M1 spawns a track at (0, 0, 5)
    Cycle 2: after dt = 0.1, M2 corrects it toward (0.05, 0, 5)
    Cycles 3-20: no measurements, track ages until pruned
    """

    def test_scenario(self):
        manager = make_manager(max_update_divergence=10.0, max_uncertainty=0.5)
        dt = 0.1

        result = manager.process([meas(0.0, 0.0, 5.0)])
        assert len(manager) == 1
        np.testing.assert_allclose(manager.get_tracks()[0].position, [0, 0, 5])

        manager.predict(dt)
        track = manager.get_track_by_id(1)
        divergence = manager.find_closest_measurement(track, [meas(0.05, 0.0, 5.0)])[1]
        assert divergence < manager.max_update_divergence

        result = manager.process([meas(0.05, 0.0, 5.0)])
        assert result.corrected == [1]
        assert result.best is not None
        assert 0.0 < result.best.position[0] < 0.05

        estimates = []
        pruned_at = None
        for cycle in range(3, 21):
            manager.predict(dt)
            result = manager.process([])
            estimates.append(result.best)
            if result.pruned and pruned_at is None:
                pruned_at = cycle

        assert pruned_at is not None
        assert len(manager) == 0
        first_missing = pruned_at - 3
        assert all(e is not None for e in estimates[:first_missing])
        assert all(e is None for e in estimates[first_missing:])


# =============================================================================
# MAIN EXECUTION
# =============================================================================

if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])

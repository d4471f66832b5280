"""Tests for mode filtering and tempo estimation."""

import pytest

from conductor.clusterer import ClusterItem, ClusteringResult
from conductor.direction import DirectionChangeEvent
from conductor.rhythm import (
    Analysis,
    RhythmEstimator,
    average_time_delta_bpm,
    compute_mode,
)
from conductor.vector import Point


def clustering(k):
    return ClusteringResult(error=0.0, assignments=[], centroids=[Point(i, i) for i in range(k)])


def event_at(t, x, y):
    return DirectionChangeEvent(angle=0.0, time=float(t), position=Point(x, y))


class TestComputeMode:
    def test_majority(self):
        assert compute_mode([4, 4, 3, 4, 4]) == 4

    def test_tie_goes_to_first_to_reach_count(self):
        assert compute_mode([3, 4, 3, 4]) == 3
        assert compute_mode([4, 3, 3, 4]) == 3

    def test_empty(self):
        assert compute_mode([]) is None

    def test_floats(self):
        assert compute_mode([120.0, 85.0, 120.0]) == 120.0


class TestAverageTimeDelta:
    def test_even_spacing(self):
        assert average_time_delta_bpm([0, 500, 1000, 1500]) == 120.0

    def test_floors(self):
        # 60000 / 700 = 85.71
        assert average_time_delta_bpm([0, 700]) == 85.0

    def test_uneven_spacing_uses_mean(self):
        assert average_time_delta_bpm([0, 400, 1000]) == 120.0

    @pytest.mark.parametrize("times", [[], [100.0], [500.0, 500.0], [1000.0, 500.0]])
    def test_no_estimate(self, times):
        assert average_time_delta_bpm(times) is None


class TestRhythmEstimator:
    def test_starts_unknown(self):
        est = RhythmEstimator()
        assert est.analysis == Analysis()
        assert est.analysis.to_dict() == {"tempo_bpm": None, "time_signature": None}

    def test_time_signature_follows_mode(self):
        est = RhythmEstimator(window=5)
        for k in (4, 4, 3, 4, 4):
            est.fold_clustering(clustering(k))
        assert est.time_signature == 4

    def test_time_signature_window_slides(self):
        est = RhythmEstimator(window=3)
        for k in (4, 4, 4, 3, 3, 3):
            est.fold_clustering(clustering(k))
        assert est.time_signature == 3

    def test_missing_clustering_keeps_value(self):
        est = RhythmEstimator()
        est.fold_clustering(clustering(3))
        assert est.fold_clustering(None) == 3

    def test_update_tempo(self):
        est = RhythmEstimator()
        assert est.update_tempo([0, 500, 1000, 1500]) == 120.0
        assert est.analysis.tempo_bpm == 120.0

    def test_update_tempo_keeps_previous_without_data(self):
        est = RhythmEstimator()
        est.update_tempo([0, 500])
        assert est.update_tempo([1000]) == 120.0
        assert est.update_tempo([]) == 120.0

    def test_update_tempo_uses_lookback(self):
        est = RhythmEstimator(tempo_lookback=3)
        # Only the last three times count: gaps of 1000ms
        assert est.update_tempo([0, 100, 200, 1200, 2200]) == 60.0

    def test_refine_tempo_uses_top_cluster(self):
        events = [
            event_at(0, 10, 0),
            event_at(250, 10, 100),
            event_at(1000, 12, 0),
            event_at(1250, 12, 100),
        ]
        result = ClusteringResult(
            error=0.0,
            assignments=[0, 1, 0, 1],
            centroids=[Point(11, 0), Point(11, 100)],
            items=[ClusterItem(e.position, e) for e in events],
        )
        est = RhythmEstimator()
        assert est.refine_tempo(result) == 60.0

    def test_refine_tempo_mode_filters(self):
        def top_cluster_with_gap(gap):
            events = [event_at(0, 0, 0), event_at(gap, 1, 0), event_at(gap / 2, 0, 50)]
            return ClusteringResult(
                error=0.0,
                assignments=[0, 0, 1],
                centroids=[Point(0.5, 0), Point(0, 50)],
                items=[ClusterItem(e.position, e) for e in events],
            )

        est = RhythmEstimator(window=4)
        est.refine_tempo(top_cluster_with_gap(1000))
        est.refine_tempo(top_cluster_with_gap(1000))
        assert est.refine_tempo(top_cluster_with_gap(500)) == 60.0

    def test_refine_tempo_single_member_keeps_value(self):
        events = [event_at(0, 0, 0), event_at(500, 0, 50)]
        result = ClusteringResult(
            error=0.0,
            assignments=[0, 1],
            centroids=[Point(0, 0), Point(0, 50)],
            items=[ClusterItem(e.position, e) for e in events],
        )
        est = RhythmEstimator()
        assert est.refine_tempo(result) is None
        assert est.refine_tempo(None) is None

    def test_reset(self):
        est = RhythmEstimator()
        est.fold_clustering(clustering(4))
        est.update_tempo([0, 500])
        est.reset()
        assert est.analysis == Analysis()

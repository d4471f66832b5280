"""End-to-end tests for the analysis engine."""

import logging

import numpy as np
import pytest

from conductor import AnalysisEngine, Clusterer, EngineConfig, MetricsCollector
from conductor.synthetic import square_path, triangle_path


def feed(engine, samples):
    for x, y, t in samples:
        engine.add_sample(x, y, t)


@pytest.fixture
def config():
    # k-means++ never seeds two centroids on the same point, so with a few
    # distinct corner positions the zero-error clustering is always found
    return EngineConfig(seed=7, initializer="kmeans++")


class TestConductingPatterns:
    def test_square_is_four_four(self, config):
        engine = AnalysisEngine(config=config)
        feed(engine, square_path(cycles=4))

        assert len(engine.events) >= 3
        analysis = engine.get_analysis()
        assert analysis.tempo_bpm == 120.0
        assert analysis.time_signature == 4

    def test_triangle_is_three_four(self, config):
        engine = AnalysisEngine(config=config)
        feed(engine, triangle_path(cycles=4))

        analysis = engine.get_analysis()
        assert analysis.tempo_bpm == 120.0
        assert analysis.time_signature == 3

    def test_square_with_default_initializer(self):
        """Bounding-box seeding can miss the four-way split, so require a large majority."""
        samples = square_path(cycles=4)
        signatures = []
        for seed in range(20):
            engine = AnalysisEngine(config=EngineConfig(seed=seed))
            feed(engine, samples)
            analysis = engine.get_analysis()
            assert analysis.tempo_bpm == 120.0
            signatures.append(analysis.time_signature)
        assert signatures.count(4) >= 15

    def test_slower_pattern(self, config):
        engine = AnalysisEngine(config=config)
        feed(engine, square_path(cycles=4, interval_ms=40.0))
        # 20 samples * 40ms = 800ms per beat
        assert engine.get_analysis().tempo_bpm == 75.0

    def test_cluster_tempo_strategy(self):
        cfg = EngineConfig(seed=7, initializer="kmeans++", tempo_strategy="cluster")
        engine = AnalysisEngine(config=cfg)
        feed(engine, square_path(cycles=4))
        # Top cluster holds one corner per lap: 4 beats * 500ms apart
        assert engine.get_analysis().tempo_bpm == 30.0

    def test_events_are_spaced(self, config):
        engine = AnalysisEngine(config=config)
        feed(engine, square_path(cycles=4))
        times = [e.time for e in engine.events]
        assert all(b - a >= config.min_gap_ms for a, b in zip(times, times[1:]))
        assert engine.last_event == engine.events[-1]

    def test_nothing_before_min_samples(self, config):
        engine = AnalysisEngine(config=config)
        feed(engine, square_path(cycles=1)[:19])
        assert not engine.is_ready
        assert engine.events == []
        assert engine.get_analysis().tempo_bpm is None
        assert engine.get_analysis().time_signature is None

    def test_stationary_pointer(self, config):
        engine = AnalysisEngine(config=config)
        for i in range(100):
            engine.add_sample(50, 50, i * 25.0)
        assert engine.is_ready
        assert engine.events == []
        assert engine.average_speed() == 0.0


class TestStaleHistory:
    def test_pause_clears_old_events(self, config):
        engine = AnalysisEngine(config=config)
        feed(engine, square_path(cycles=3))
        assert engine.events[-1].time < 6000

        feed(engine, square_path(cycles=3, start_ms=9000.0))
        assert engine.events
        assert all(e.time >= 9000 for e in engine.events)
        assert engine.get_analysis().tempo_bpm == 120.0

    def test_pause_counted_in_metrics(self, config):
        metrics = MetricsCollector()
        engine = AnalysisEngine(config=config, metrics=metrics)
        feed(engine, square_path(cycles=3))
        feed(engine, square_path(cycles=2, start_ms=9000.0))
        assert "conductor_stale_resets_total 1" in metrics.render()


class TestHandlers:
    def test_handler_called_per_event(self, config):
        engine = AnalysisEngine(config=config)
        seen = []
        engine.on_direction_change(seen.append)
        feed(engine, square_path(cycles=2))
        assert seen == engine.events

    def test_handler_without_arguments(self, config, caplog):
        engine = AnalysisEngine(config=config)
        calls = []
        engine.on_direction_change(lambda: calls.append(1))
        with caplog.at_level(logging.ERROR, logger="conductor.engine"):
            feed(engine, square_path(cycles=2))

        assert len(calls) == len(engine.events) == 6
        assert "handler error" not in caplog.text

    def test_handler_without_arguments_reads_last_event(self, config):
        engine = AnalysisEngine(config=config)
        seen = []
        engine.on_direction_change(lambda: seen.append(engine.last_event))
        feed(engine, square_path(cycles=2))
        assert seen == engine.events

    def test_handler_bound_method(self, config):
        class Listener:
            def __init__(self):
                self.times = []

            def on_change(self, event):
                self.times.append(event.time)

        engine = AnalysisEngine(config=config)
        listener = Listener()
        engine.on_direction_change(listener.on_change)
        feed(engine, square_path(cycles=2))
        assert listener.times == [e.time for e in engine.events]

    def test_handler_replaced(self, config):
        engine = AnalysisEngine(config=config)
        first, second = [], []
        engine.on_direction_change(first.append)
        engine.on_direction_change(second.append)
        feed(engine, square_path(cycles=2))
        assert first == []
        assert len(second) > 0

    def test_handler_removed(self, config):
        engine = AnalysisEngine(config=config)
        seen = []
        engine.on_direction_change(seen.append)
        engine.on_direction_change(None)
        feed(engine, square_path(cycles=2))
        assert seen == []
        assert engine.events

    def test_handler_error_is_logged(self, config, caplog):
        engine = AnalysisEngine(config=config)

        def broken(event):
            raise RuntimeError("boom")

        engine.on_direction_change(broken)
        with caplog.at_level(logging.ERROR, logger="conductor.engine"):
            feed(engine, square_path(cycles=2))

        assert engine.events
        assert "boom" in caplog.text


class TestEngineOptions:
    def test_clock_used_without_timestamp(self, config):
        ticks = iter(range(0, 10_000, 25))
        engine = AnalysisEngine(config=config, clock=lambda: float(next(ticks)))
        engine.add_sample(1, 2)
        engine.add_sample(3, 4)
        assert engine.history.latest().time == 25.0

    def test_explicit_timestamp_wins(self, config):
        engine = AnalysisEngine(config=config, clock=lambda: 999.0)
        engine.add_sample(1, 2, 10)
        assert engine.history.latest().time == 10.0

    def test_custom_clusterer(self):
        clusterer = Clusterer(max_clusters=2, initializer="kmeans++", rng=np.random.default_rng(0))
        engine = AnalysisEngine(clusterer=clusterer)
        feed(engine, square_path(cycles=3))
        assert engine.clusterer is clusterer
        assert engine.get_analysis().time_signature == 2

    def test_profiling(self, config):
        engine = AnalysisEngine(config=config, enable_profiling=True)
        feed(engine, square_path(cycles=1))
        summary = engine.profiler.summary()
        for stage in ("history", "direction", "clustering", "estimation", "total"):
            assert summary[stage]["calls"] == 81

    def test_profiling_off_by_default(self, config):
        engine = AnalysisEngine(config=config)
        feed(engine, square_path(cycles=1))
        assert engine.profiler.summary() == {}

    def test_metrics(self, config):
        metrics = MetricsCollector()
        engine = AnalysisEngine(config=config, metrics=metrics)
        samples = square_path(cycles=4)
        feed(engine, samples)

        assert metrics.samples_total == len(samples)
        assert metrics.direction_changes == 14
        assert metrics.clustering_outcomes["none"] > 0
        assert metrics.clustering_outcomes["4"] > 0
        assert "conductor_tempo_bpm 120.0" in metrics.render()
        assert "conductor_time_signature 4" in metrics.render()

    def test_reset(self, config):
        engine = AnalysisEngine(config=config)
        feed(engine, square_path(cycles=4))
        engine.reset()
        assert len(engine.history) == 0
        assert engine.events == []
        assert engine.last_clustering is None
        assert engine.get_analysis().tempo_bpm is None
        assert engine.get_analysis().time_signature is None

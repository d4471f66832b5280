"""Real-time gesture-to-rhythm analysis: positions in, tempo and time signature out.

One ``add_sample`` call runs the whole pipeline synchronously:

    sample → history → direction-change detection → clustering of recent
    change positions → tempo / time-signature estimation

Usage:
    engine = AnalysisEngine()
    engine.on_direction_change(lambda event: print("beat at", event.time))
    # In the input loop:
    engine.add_sample(x, y, time_ms)
    analysis = engine.get_analysis()
    if analysis.tempo_bpm and analysis.time_signature:
        player.set(analysis.tempo_bpm, analysis.time_signature)

The engine is not thread-safe; a multi-threaded host must serialize calls.
"""

from __future__ import annotations

import inspect
import logging
import time
from typing import Callable, Optional

import numpy as np

from conductor.clusterer import ClusterItem, Clusterer, ClusteringResult
from conductor.config import EngineConfig
from conductor.direction import (
    DirectionChangeDetector,
    DirectionChangeEvent,
    Sample,
    Verdict,
    average_speed,
)
from conductor.metrics import MetricsCollector
from conductor.profiler import PipelineProfiler
from conductor.rhythm import Analysis, RhythmEstimator
from conductor.ring_buffer import RingBuffer
from conductor.vector import Point

logger = logging.getLogger("conductor.engine")

# Either () -> None, reading engine.last_event, or (event) -> None
DirectionChangeHandler = Callable[..., None]


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class AnalysisEngine:
    """Owns the history, detector, clusterer and estimator for one input stream.

    Args:
        config: Pipeline tunables; defaults to ``EngineConfig()``.
        clusterer: Override the clusterer (e.g. with a seeded generator).
        metrics: Optional collector updated on every sample.
        enable_profiling: Time each stage with ``PipelineProfiler``.
        clock: Time source (ms) used when ``add_sample`` gets no timestamp.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        clusterer: Optional[Clusterer] = None,
        metrics: Optional[MetricsCollector] = None,
        enable_profiling: bool = False,
        clock: Callable[[], float] = monotonic_ms,
    ):
        self.config = config or EngineConfig()
        cfg = self.config

        self.history: RingBuffer[Sample] = RingBuffer(cfg.history_capacity)
        self.detector = DirectionChangeDetector(
            min_samples=cfg.min_samples,
            direction_threshold=cfg.direction_threshold,
            fast_enough=cfg.fast_enough,
            accel_min=cfg.accel_min,
            accel_max=cfg.accel_max,
            min_gap_ms=cfg.min_gap_ms,
            max_gap_ms=cfg.max_gap_ms,
            direction_window=cfg.direction_window,
            event_capacity=cfg.event_capacity,
        )
        self.clusterer = clusterer or Clusterer(
            max_clusters=cfg.max_clusters,
            restarts=cfg.restarts,
            tolerance=cfg.tolerance,
            max_iterations=cfg.max_iterations,
            rng=np.random.default_rng(cfg.seed),
            initializer=cfg.initializer,
        )
        self.estimator = RhythmEstimator(
            window=cfg.estimator_window,
            tempo_lookback=cfg.tempo_lookback,
        )
        self.metrics = metrics
        self.profiler = PipelineProfiler()
        self.profiler.enabled = enable_profiling
        self._clock = clock

        self._handler: Optional[DirectionChangeHandler] = None
        self._handler_takes_event = False
        self.last_clustering: Optional[ClusteringResult] = None

    def on_direction_change(self, handler: Optional[DirectionChangeHandler]):
        """Set the single direction-change handler (None removes it).

        A handler with no parameters is called bare and can read
        ``last_event``; one that accepts a positional argument gets the event.
        """
        self._handler = handler
        self._handler_takes_event = handler is not None and _accepts_event(handler)

    def add_sample(self, x: float, y: float, time: Optional[float] = None):
        """Feed one position sample and run the full pipeline."""
        t_start = _perf_counter()
        now = self._clock() if time is None else float(time)

        with self.profiler.stage("total"):
            with self.profiler.stage("history"):
                sample = Sample.following(self.history.latest(), Point(float(x), float(y)), now)
                self.history.append(sample)

            with self.profiler.stage("direction"):
                event = self.detector.on_new_sample(self.history)
                self._after_detection(event)

            with self.profiler.stage("clustering"):
                self.last_clustering = self.clusterer.cluster(self._cluster_items())

            with self.profiler.stage("estimation"):
                self._estimate()

        if self.metrics is not None:
            self.metrics.record_sample(_perf_counter() - t_start)
            self.metrics.record_clustering(
                self.last_clustering.k if self.last_clustering else None
            )
            analysis = self.estimator.analysis
            self.metrics.set_analysis(analysis.tempo_bpm, analysis.time_signature)

    def _after_detection(self, event: Optional[DirectionChangeEvent]):
        verdict = self.detector.last_verdict
        if self.metrics is not None:
            if verdict is Verdict.DEBOUNCED:
                self.metrics.record_debounced()
            elif event is not None:
                self.metrics.record_direction_change(stale_reset=verdict is Verdict.RESET)

        if event is None or self._handler is None:
            return
        try:
            if self._handler_takes_event:
                self._handler(event)
            else:
                self._handler()
        except Exception as e:
            logger.error("Direction change handler error: %s", e)

    def _cluster_items(self) -> list[ClusterItem]:
        events = self.detector.recent_events(self.config.cluster_window)
        return [ClusterItem(position=e.position, payload=e) for e in events]

    def _estimate(self):
        if self.config.tempo_strategy == "cluster":
            self.estimator.refine_tempo(self.last_clustering)
        else:
            times = [e.time for e in self.detector.recent_events(self.config.tempo_lookback)]
            self.estimator.update_tempo(times)
        self.estimator.fold_clustering(self.last_clustering)

    def get_analysis(self) -> Analysis:
        """Current stabilized tempo and time signature (fields may be None)."""
        return self.estimator.analysis

    @property
    def events(self) -> list[DirectionChangeEvent]:
        """Retained direction-change events, oldest first."""
        return self.detector.recent_events()

    @property
    def last_event(self) -> Optional[DirectionChangeEvent]:
        return self.detector.events.latest()

    @property
    def is_ready(self) -> bool:
        return self.detector.is_ready(self.history)

    def average_speed(self, window: int = 10) -> Optional[float]:
        """Mean squared speed over the last ``window`` samples, if available."""
        return average_speed(self.history, window)

    def reset(self):
        """Forget all samples, events and estimates."""
        self.history.clear()
        self.detector.reset()
        self.estimator.reset()
        self.last_clustering = None
        self.profiler.reset()


def _perf_counter() -> float:
    return time.perf_counter()


def _accepts_event(handler: DirectionChangeHandler) -> bool:
    try:
        params = inspect.signature(handler).parameters.values()
    except (TypeError, ValueError):
        # No introspectable signature (some builtins); assume the event form
        return True
    positional = (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
        inspect.Parameter.VAR_POSITIONAL,
    )
    return any(p.kind in positional for p in params)

"""Stabilized tempo and time-signature estimates.

Per-frame signals are noisy: the cluster count flips as k-means lands on
different local optima, and a single late direction change skews an
interval average. Both readings are therefore published only after a
sliding-window filter: the mode for time signature (and for the
cluster-refined tempo), a trailing mean interval for the simple tempo.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Hashable, Iterable, Optional, Sequence

from conductor.clusterer import ClusteringResult
from conductor.ring_buffer import RingBuffer

logger = logging.getLogger("conductor.rhythm")

MS_PER_MINUTE = 60_000


@dataclass(frozen=True)
class Analysis:
    """Snapshot of the current stabilized estimates. None means not yet known."""
    tempo_bpm: Optional[float] = None
    time_signature: Optional[int] = None

    def to_dict(self) -> dict:
        return {"tempo_bpm": self.tempo_bpm, "time_signature": self.time_signature}


def compute_mode(values: Iterable[Hashable]) -> Optional[Hashable]:
    """Most frequent value; on ties the one that reached the top count first."""
    counts: dict = {}
    mode = None
    best = 0
    for value in values:
        counts[value] = counts.get(value, 0) + 1
        if counts[value] > best:
            mode = value
            best = counts[value]
    return mode


def average_time_delta_bpm(times: Sequence[float]) -> Optional[float]:
    """Convert the mean gap between consecutive times (ms) into whole BPM.

    Floors rather than rounds. None with fewer than two times or a
    non-positive mean gap.
    """
    if len(times) < 2:
        return None
    total = 0.0
    for t1, t2 in zip(times, times[1:]):
        total += t2 - t1
    average = total / (len(times) - 1)
    if average <= 0:
        return None
    return float(math.floor(MS_PER_MINUTE / average))


class RhythmEstimator:
    """Folds clusterings and event times into tempo/time-signature readings."""

    def __init__(self, window: int = 16, tempo_lookback: int = 8):
        self.tempo_lookback = tempo_lookback
        self._ts_history: RingBuffer[int] = RingBuffer(window)
        self._bpm_history: RingBuffer[float] = RingBuffer(window)
        self.tempo_bpm: Optional[float] = None
        self.time_signature: Optional[int] = None

    @property
    def analysis(self) -> Analysis:
        return Analysis(tempo_bpm=self.tempo_bpm, time_signature=self.time_signature)

    def fold_clustering(self, result: Optional[ClusteringResult]) -> Optional[int]:
        """Record one frame's cluster count; returns the published time signature."""
        if result is None:
            return self.time_signature
        self._ts_history.append(len(result.centroids))
        mode = compute_mode(self._ts_history)
        if mode != self.time_signature:
            logger.info("Time signature %s -> %s", self.time_signature, mode)
            self.time_signature = mode
        return self.time_signature

    def update_tempo(self, event_times: Sequence[float]) -> Optional[float]:
        """Simple strategy: mean interval over the trailing lookback window."""
        bpm = average_time_delta_bpm(list(event_times)[-self.tempo_lookback:])
        if bpm is None:
            return self.tempo_bpm
        if bpm != self.tempo_bpm:
            logger.debug("Tempo %s -> %s bpm", self.tempo_bpm, bpm)
            self.tempo_bpm = bpm
        return self.tempo_bpm

    def refine_tempo(self, result: Optional[ClusteringResult]) -> Optional[float]:
        """Cluster-refined strategy: interval of the top cluster, mode-filtered.

        Cluster item payloads are expected to carry a ``time`` attribute.
        """
        if result is None or not result.centroids:
            return self.tempo_bpm
        top = result.members(result.top_cluster())
        bpm = average_time_delta_bpm([item.payload.time for item in top])
        if bpm is None:
            return self.tempo_bpm
        self._bpm_history.append(bpm)
        mode = compute_mode(self._bpm_history)
        if mode != self.tempo_bpm:
            logger.debug("Refined tempo %s -> %s bpm", self.tempo_bpm, mode)
            self.tempo_bpm = mode
        return self.tempo_bpm

    def reset(self):
        self._ts_history.clear()
        self._bpm_history.clear()
        self.tempo_bpm = None
        self.time_signature = None

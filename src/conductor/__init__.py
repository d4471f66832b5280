"""Conductor - infer tempo and time signature from a live pointer stream."""

__version__ = "0.1.0"

from conductor.ring_buffer import RingBuffer, BufferIndexError
from conductor.vector import Point
from conductor.clusterer import Clusterer, ClusterItem, ClusteringResult
from conductor.direction import (
    DirectionChangeDetector,
    DirectionChangeEvent,
    DirectionState,
    Sample,
    angular_diff,
)
from conductor.rhythm import Analysis, RhythmEstimator, compute_mode
from conductor.config import EngineConfig
from conductor.engine import AnalysisEngine
from conductor.recorder import SampleRecorder, SamplePlayer
from conductor.profiler import PipelineProfiler
from conductor.metrics import MetricsCollector

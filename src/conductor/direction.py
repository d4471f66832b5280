"""Debounced detection of sharp changes in motion heading.

Each new sample is gated on speed and on a plausible acceleration band,
then the heading of the summed trailing velocities is compared with the
last gated heading. A large enough swing becomes a candidate, which is
dropped if it comes too soon after the previous event and which wipes
the event history first if it comes after a long pause.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from conductor.ring_buffer import RingBuffer
from conductor.vector import Point, vector_sum

logger = logging.getLogger("conductor.direction")


@dataclass(frozen=True)
class Sample:
    """One timestamped position observation with derived motion vectors."""
    position: Point
    time: float  # milliseconds
    velocity: Optional[Point] = None
    acceleration: Optional[Point] = None

    @classmethod
    def following(cls, previous: Optional[Sample], position: Point, time: float) -> Sample:
        """Build a sample, deriving velocity/acceleration from ``previous``."""
        velocity = acceleration = None
        if previous is not None:
            velocity = previous.position.delta(position)
            if previous.velocity is not None:
                acceleration = previous.velocity.delta(velocity)
        return cls(position=position, time=time, velocity=velocity, acceleration=acceleration)


@dataclass(frozen=True)
class DirectionChangeEvent:
    """A recorded sharp change of heading."""
    angle: float  # degrees, -180..180
    time: float  # milliseconds
    position: Point


@dataclass
class DirectionState:
    """Mutable detector state, updated once per gated sample."""
    last_direction: Optional[float] = None
    last_event_time: Optional[float] = None


def angular_diff(a1: float, a2: float) -> float:
    """Smallest absolute difference between two headings, in [0, 180]."""
    angle = abs(a1 - a2) % 360
    if angle > 180:
        angle = 360 - angle
    return angle


class Verdict(Enum):
    """Outcome labels for a direction-change candidate."""
    RECORDED = "recorded"
    DEBOUNCED = "debounced"
    RESET = "reset"  # recorded after clearing stale history


class DirectionChangeDetector:
    """Watches a sample history and records direction-change events.

    Args:
        min_samples: History length required before any analysis.
        direction_threshold: Heading swing (degrees) that counts as a change.
        fast_enough: Minimum squared speed of the latest sample.
        accel_min / accel_max: Open band for the latest squared acceleration.
        min_gap_ms: Candidates closer than this to the last event are dropped.
        max_gap_ms: Candidates later than this clear the event history first.
        direction_window: Trailing samples whose velocities are summed.
        event_capacity: Capacity of the event ring buffer.
    """

    def __init__(
        self,
        min_samples: int = 20,
        direction_threshold: float = 50.0,
        fast_enough: float = 4.0,
        accel_min: float = 1.0,
        accel_max: float = 1000.0,
        min_gap_ms: float = 100.0,
        max_gap_ms: float = 2000.0,
        direction_window: int = 2,
        event_capacity: int = 32,
    ):
        self.min_samples = min_samples
        self.direction_threshold = direction_threshold
        self.fast_enough = fast_enough
        self.accel_min = accel_min
        self.accel_max = accel_max
        self.min_gap_ms = min_gap_ms
        self.max_gap_ms = max_gap_ms
        self.direction_window = direction_window

        self.events: RingBuffer[DirectionChangeEvent] = RingBuffer(event_capacity)
        self.state = DirectionState()
        self.last_verdict: Optional[Verdict] = None

    def is_ready(self, history: RingBuffer[Sample]) -> bool:
        return len(history) >= self.min_samples

    def passes_gates(self, sample: Sample) -> bool:
        """Speed and acceleration plausibility checks on one sample."""
        if sample.velocity is None or sample.acceleration is None:
            return False
        if not sample.velocity.mag2() > self.fast_enough:
            return False
        accel = sample.acceleration.mag2()
        return self.accel_min < accel < self.accel_max

    def average_direction(self, history: RingBuffer[Sample]) -> Optional[float]:
        """Heading of the summed velocities of the trailing window."""
        velocities = []
        for offset in range(self.direction_window - 1, -1, -1):
            sample = history.latest(offset)
            if sample is None or sample.velocity is None:
                return None
            velocities.append(sample.velocity)
        return vector_sum(velocities).angle()

    def on_new_sample(self, history: RingBuffer[Sample]) -> Optional[DirectionChangeEvent]:
        """Inspect the newest sample; return the event if one was recorded."""
        self.last_verdict = None
        if not self.is_ready(history):
            return None

        latest = history.latest()
        if latest is None or not self.passes_gates(latest):
            return None

        direction = self.average_direction(history)
        if direction is None:
            return None
        return self.consider(direction, latest)

    def consider(self, direction: float, sample: Sample) -> Optional[DirectionChangeEvent]:
        """Apply the heading comparison and gap policy for a gated sample.

        ``last_direction`` is advanced whatever the outcome.
        """
        previous = self.state.last_direction
        self.state.last_direction = direction
        self.last_verdict = None

        if previous is None or angular_diff(direction, previous) <= self.direction_threshold:
            return None

        verdict = Verdict.RECORDED
        last_time = self.state.last_event_time
        if last_time is not None and len(self.events) > 0:
            gap = sample.time - last_time
            if gap < self.min_gap_ms:
                logger.debug("Direction change %.0fms after previous, ignored", gap)
                self.last_verdict = Verdict.DEBOUNCED
                return None
            if gap > self.max_gap_ms:
                logger.info("Direction change %.0fms after previous, clearing stale history", gap)
                self.events.clear()
                verdict = Verdict.RESET

        event = DirectionChangeEvent(angle=direction, time=sample.time, position=sample.position)
        self.events.append(event)
        self.state.last_event_time = sample.time
        self.last_verdict = verdict
        logger.debug("Direction change at %.0fms, heading %.1f°", sample.time, direction)
        return event

    def recent_events(self, count: Optional[int] = None) -> list[DirectionChangeEvent]:
        return self.events.values(last=count)

    def reset(self):
        self.events.clear()
        self.state = DirectionState()
        self.last_verdict = None


def average_speed(history: RingBuffer[Sample], window: int = 10) -> Optional[float]:
    """Mean squared speed over the trailing ``window`` samples.

    None when any sample in the window is missing or has no velocity.
    """
    total = 0.0
    for offset in range(window):
        sample = history.latest(offset)
        if sample is None or sample.velocity is None:
            return None
        total += sample.velocity.mag2()
    return total / window

"""Prometheus text-format metrics for the analysis engine.

No client library: the exposition format is rendered directly so a host
can serve ``render()`` from whatever HTTP stack it already has.

Tracked metrics:
- conductor_samples_total (counter)
- conductor_direction_changes_total (counter)
- conductor_debounced_changes_total (counter)
- conductor_stale_resets_total (counter)
- conductor_clustering_passes_total (counter, by outcome)
- conductor_sample_latency_seconds (histogram)
- conductor_tempo_bpm (gauge)
- conductor_time_signature (gauge)
"""

from __future__ import annotations

import threading
import time
from collections import Counter
from typing import Optional


class _Histogram:
    """Cumulative histogram with fixed buckets."""

    def __init__(self, buckets: list[float]):
        self.buckets = sorted(buckets)
        self.bucket_counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value: float):
        with self._lock:
            self.count += 1
            self.sum += value
            for i, b in enumerate(self.buckets):
                if value <= b:
                    self.bucket_counts[i] += 1
                    break

    def render(self, name: str, help_text: str) -> str:
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} histogram",
        ]
        with self._lock:
            cumulative = 0
            for i, b in enumerate(self.buckets):
                cumulative += self.bucket_counts[i]
                lines.append(f'{name}_bucket{{le="{b}"}} {cumulative}')
            lines.append(f'{name}_bucket{{le="+Inf"}} {self.count}')
            lines.append(f"{name}_sum {self.sum:.6f}")
            lines.append(f"{name}_count {self.count}")
        return "\n".join(lines)


class MetricsCollector:
    """Counters and gauges fed by ``AnalysisEngine``; safe to read from another thread."""

    def __init__(self):
        self._samples_total = 0
        self._direction_changes = 0
        self._debounced = 0
        self._stale_resets = 0
        self._clustering: Counter = Counter()
        self._tempo_bpm: Optional[float] = None
        self._time_signature: Optional[int] = None
        self._lock = threading.Lock()

        # Sample latency: 50µs to 20ms
        self._latency = _Histogram(
            [0.00005, 0.0001, 0.0005, 0.001, 0.002, 0.005, 0.010, 0.020]
        )
        self._start_time = time.time()

    def record_sample(self, latency_seconds: float):
        with self._lock:
            self._samples_total += 1
        self._latency.observe(latency_seconds)

    def record_direction_change(self, stale_reset: bool = False):
        with self._lock:
            self._direction_changes += 1
            if stale_reset:
                self._stale_resets += 1

    def record_debounced(self):
        with self._lock:
            self._debounced += 1

    def record_clustering(self, k: Optional[int]):
        """Count a clustering pass by outcome (``k=None`` for no result)."""
        with self._lock:
            self._clustering["none" if k is None else str(k)] += 1

    def set_analysis(self, tempo_bpm: Optional[float], time_signature: Optional[int]):
        with self._lock:
            self._tempo_bpm = tempo_bpm
            self._time_signature = time_signature

    def render(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        lines: list[str] = []

        uptime = time.time() - self._start_time
        lines.append("# HELP conductor_uptime_seconds Time since the collector was created")
        lines.append("# TYPE conductor_uptime_seconds gauge")
        lines.append(f"conductor_uptime_seconds {uptime:.1f}")
        lines.append("")

        with self._lock:
            counters = [
                ("conductor_samples_total", "Position samples processed", self._samples_total),
                ("conductor_direction_changes_total", "Direction changes recorded", self._direction_changes),
                ("conductor_debounced_changes_total", "Direction changes dropped as too close to the previous one", self._debounced),
                ("conductor_stale_resets_total", "Event history resets after a long pause", self._stale_resets),
            ]
            clustering = sorted(self._clustering.items())
            tempo = self._tempo_bpm
            ts = self._time_signature

        for name, help_text, value in counters:
            lines.append(f"# HELP {name} {help_text}")
            lines.append(f"# TYPE {name} counter")
            lines.append(f"{name} {value}")
            lines.append("")

        lines.append("# HELP conductor_clustering_passes_total Clustering passes by resulting cluster count")
        lines.append("# TYPE conductor_clustering_passes_total counter")
        for outcome, count in clustering:
            lines.append(f'conductor_clustering_passes_total{{clusters="{outcome}"}} {count}')
        lines.append("")

        lines.append(self._latency.render(
            "conductor_sample_latency_seconds",
            "Time to run the full pipeline for one sample",
        ))
        lines.append("")

        # Unknown estimates are exported as NaN
        lines.append("# HELP conductor_tempo_bpm Current stabilized tempo")
        lines.append("# TYPE conductor_tempo_bpm gauge")
        lines.append(f"conductor_tempo_bpm {tempo if tempo is not None else 'NaN'}")
        lines.append("")

        lines.append("# HELP conductor_time_signature Current stabilized beats per cycle")
        lines.append("# TYPE conductor_time_signature gauge")
        lines.append(f"conductor_time_signature {ts if ts is not None else 'NaN'}")
        lines.append("")

        return "\n".join(lines) + "\n"

    @property
    def samples_total(self) -> int:
        with self._lock:
            return self._samples_total

    @property
    def direction_changes(self) -> int:
        with self._lock:
            return self._direction_changes

    @property
    def clustering_outcomes(self) -> dict[str, int]:
        with self._lock:
            return dict(self._clustering)

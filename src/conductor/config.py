"""Engine configuration, loadable from and savable to YAML.

Example ``conductor.yml``:

    direction_threshold: 50
    fast_enough: 4
    min_gap_ms: 100
    max_gap_ms: 2000
    max_clusters: 4
    tempo_strategy: simple
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from conductor.clusterer import INITIALIZERS

logger = logging.getLogger("conductor.config")

TEMPO_STRATEGIES = ("simple", "cluster")


@dataclass
class EngineConfig:
    """All tunables of the analysis pipeline, with their defaults."""

    # Buffer capacities
    history_capacity: int = 32
    event_capacity: int = 32
    estimator_window: int = 16
    cluster_window: int = 16  # most recent events fed to the clusterer

    # Direction-change detection
    min_samples: int = 20
    direction_threshold: float = 50.0  # degrees
    fast_enough: float = 4.0  # squared speed
    accel_min: float = 1.0  # squared acceleration, exclusive
    accel_max: float = 1000.0
    min_gap_ms: float = 100.0
    max_gap_ms: float = 2000.0
    direction_window: int = 2

    # Clustering
    max_clusters: int = 4
    restarts: int = 10
    tolerance: float = 1e-9
    max_iterations: int = 100
    initializer: str = "uniform_box"
    seed: int | None = None

    # Tempo
    tempo_lookback: int = 8
    tempo_strategy: str = "simple"

    def __post_init__(self):
        for name in ("history_capacity", "event_capacity", "estimator_window", "cluster_window"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.min_samples > self.history_capacity:
            raise ValueError(
                f"min_samples ({self.min_samples}) cannot exceed history_capacity "
                f"({self.history_capacity})"
            )
        if self.direction_window < 1 or self.direction_window > self.history_capacity:
            raise ValueError(f"direction_window out of range: {self.direction_window}")
        if self.accel_min >= self.accel_max:
            raise ValueError(
                f"accel_min ({self.accel_min}) must be below accel_max ({self.accel_max})"
            )
        if self.min_gap_ms > self.max_gap_ms:
            raise ValueError(
                f"min_gap_ms ({self.min_gap_ms}) must not exceed max_gap_ms ({self.max_gap_ms})"
            )
        if self.max_clusters < 2:
            raise ValueError(f"max_clusters must be >= 2, got {self.max_clusters}")
        if self.restarts < 1 or self.max_iterations < 1:
            raise ValueError("restarts and max_iterations must be >= 1")
        if self.tempo_lookback < 2:
            raise ValueError(f"tempo_lookback must be >= 2, got {self.tempo_lookback}")
        if self.initializer not in INITIALIZERS:
            raise ValueError(
                f"Unknown initializer '{self.initializer}' (expected one of {sorted(INITIALIZERS)})"
            )
        if self.tempo_strategy not in TEMPO_STRATEGIES:
            raise ValueError(
                f"Unknown tempo_strategy '{self.tempo_strategy}' (expected one of {TEMPO_STRATEGIES})"
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> EngineConfig:
        """Build a config from a mapping. Unknown keys are logged and ignored."""
        data = data or {}
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_yaml(cls, path: str | Path) -> EngineConfig:
        """Load a config file; a missing or empty file yields the defaults."""
        path = Path(path)
        if not path.exists():
            logger.info("Config %s not found, using defaults", path)
            return cls()
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is not None and not isinstance(data, dict):
            raise ValueError(f"Config {path} must contain a mapping, got {type(data).__name__}")
        return cls.from_dict(data)

    def to_yaml(self, path: str | Path):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

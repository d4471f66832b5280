"""Position-sample recording and replay.

Record real pointer sessions for:
- Reproducible tests without an input device
- Tuning thresholds offline against the same motion
- Demo sessions that play back deterministically
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Iterator, Optional

import numpy as np

if TYPE_CHECKING:
    from conductor.engine import AnalysisEngine

logger = logging.getLogger("conductor.recorder")

FORMAT_VERSION = 1


@dataclass
class RecordedSample:
    """A single position sample in a recording."""
    x: float
    y: float
    time: float  # milliseconds


class SampleRecorder:
    """Collects position samples and writes them to disk.

    Usage:
        recorder = SampleRecorder()
        recorder.start()
        # In your input loop:
        recorder.add(x, y, time_ms)
        recorder.stop()
        recorder.save("session.json")
    """

    def __init__(self):
        self._samples: list[RecordedSample] = []
        self._recording = False

    def start(self):
        """Begin a new recording, discarding any previous one."""
        self._samples = []
        self._recording = True

    def stop(self) -> int:
        """Stop recording. Returns number of samples captured."""
        self._recording = False
        return len(self._samples)

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    @property
    def duration_ms(self) -> float:
        if len(self._samples) < 2:
            return 0.0
        return self._samples[-1].time - self._samples[0].time

    def add(self, x: float, y: float, time_ms: float):
        if not self._recording:
            return
        self._samples.append(RecordedSample(float(x), float(y), float(time_ms)))

    def extend(self, samples: Iterable[tuple[float, float, float]]):
        for x, y, t in samples:
            self.add(x, y, t)

    def save(self, path: str | Path) -> Path:
        """Save as JSON, or as compressed numpy arrays when ``path`` ends in .npz."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        if path.suffix == ".npz":
            np.savez_compressed(
                path,
                version=np.array([FORMAT_VERSION], dtype=np.int32),
                samples=np.array(
                    [[s.x, s.y, s.time] for s in self._samples], dtype=np.float64
                ).reshape(-1, 3),
            )
        else:
            data = {
                "version": FORMAT_VERSION,
                "sample_count": len(self._samples),
                "duration_ms": self.duration_ms,
                "samples": [asdict(s) for s in self._samples],
            }
            with open(path, "w") as f:
                json.dump(data, f)

        logger.info("Saved %d samples to %s", len(self._samples), path)
        return path


class SamplePlayer:
    """Replays a recorded session.

    Usage:
        player = SamplePlayer.load("session.json")
        player.feed(engine)

        # Or pace samples at their recorded timing:
        for sample in player.play_realtime():
            engine.add_sample(sample.x, sample.y, sample.time)
    """

    def __init__(self, samples: list[RecordedSample]):
        self._samples = samples

    @classmethod
    def load(cls, path: str | Path) -> SamplePlayer:
        path = Path(path)
        if path.suffix == ".npz":
            player = cls._load_compact(path)
        else:
            with open(path) as f:
                data = json.load(f)
            version = data.get("version")
            if version != FORMAT_VERSION:
                raise ValueError(f"Unsupported recording version {version!r} in {path}")
            player = cls([
                RecordedSample(float(s["x"]), float(s["y"]), float(s["time"]))
                for s in data["samples"]
            ])
        logger.info("Loaded %d samples from %s", player.sample_count, path)
        return player

    @classmethod
    def _load_compact(cls, path: Path) -> SamplePlayer:
        with np.load(path, allow_pickle=False) as data:
            version = int(data["version"][0])
            if version != FORMAT_VERSION:
                raise ValueError(f"Unsupported recording version {version!r} in {path}")
            rows = data["samples"]
        return cls([RecordedSample(float(x), float(y), float(t)) for x, y, t in rows])

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    @property
    def duration_ms(self) -> float:
        if len(self._samples) < 2:
            return 0.0
        return self._samples[-1].time - self._samples[0].time

    def play(self) -> Iterator[RecordedSample]:
        """Iterate through all samples instantly (no timing)."""
        yield from self._samples

    def play_realtime(self, speed: float = 1.0) -> Iterator[RecordedSample]:
        """Yield samples at their recorded pace, scaled by ``speed``."""
        if not self._samples:
            return
        t0 = self._samples[0].time
        start = time.monotonic()
        for sample in self._samples:
            target = (sample.time - t0) / 1000.0 / speed
            elapsed = time.monotonic() - start
            if target > elapsed:
                time.sleep(target - elapsed)
            yield sample

    def feed(self, engine: AnalysisEngine, realtime: bool = False, speed: float = 1.0) -> int:
        """Push every sample into ``engine``. Returns the number fed."""
        samples = self.play_realtime(speed) if realtime else self.play()
        count = 0
        for s in samples:
            engine.add_sample(s.x, s.y, s.time)
            count += 1
        return count

    def get_sample(self, index: int) -> Optional[RecordedSample]:
        if 0 <= index < len(self._samples):
            return self._samples[index]
        return None

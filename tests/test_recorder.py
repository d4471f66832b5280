"""Tests for sample recording and replay."""

import json

import numpy as np
import pytest

from conductor.config import EngineConfig
from conductor.engine import AnalysisEngine
from conductor.recorder import RecordedSample, SamplePlayer, SampleRecorder
from conductor.synthetic import square_path


def recorded(samples):
    rec = SampleRecorder()
    rec.start()
    rec.extend(samples)
    rec.stop()
    return rec


class TestRecorder:
    def test_record_and_count(self):
        rec = SampleRecorder()
        rec.start()
        for i in range(10):
            rec.add(i, i, i * 25)
        assert rec.is_recording
        assert rec.stop() == 10
        assert not rec.is_recording
        assert rec.duration_ms == 225

    def test_not_recording_ignores_samples(self):
        rec = SampleRecorder()
        rec.add(1, 2, 3)
        assert rec.sample_count == 0
        assert rec.duration_ms == 0.0

    def test_start_discards_previous(self):
        rec = recorded([(0, 0, 0), (1, 1, 25)])
        rec.start()
        assert rec.sample_count == 0

    def test_save_and_load_json(self, tmp_path):
        rec = recorded([(0, 0, 0), (10, 5, 25), (20, 10, 50)])
        path = rec.save(tmp_path / "session.json")

        data = json.loads(path.read_text())
        assert data["version"] == 1
        assert data["sample_count"] == 3

        player = SamplePlayer.load(path)
        assert player.sample_count == 3
        assert player.duration_ms == 50
        assert player.get_sample(1) == RecordedSample(10.0, 5.0, 25.0)

    def test_save_and_load_npz(self, tmp_path):
        samples = square_path(cycles=1)
        path = recorded(samples).save(tmp_path / "session.npz")

        player = SamplePlayer.load(path)
        assert player.sample_count == len(samples)
        loaded = [(s.x, s.y, s.time) for s in player.play()]
        np.testing.assert_allclose(loaded, samples)

    def test_empty_npz(self, tmp_path):
        path = recorded([]).save(tmp_path / "empty.npz")
        assert SamplePlayer.load(path).sample_count == 0

    def test_version_mismatch(self, tmp_path):
        path = tmp_path / "future.json"
        path.write_text(json.dumps({"version": 99, "samples": []}))
        with pytest.raises(ValueError):
            SamplePlayer.load(path)


class TestPlayer:
    def test_get_sample_out_of_range(self):
        player = SamplePlayer([RecordedSample(0, 0, 0)])
        assert player.get_sample(5) is None
        assert player.get_sample(-1) is None

    def test_play_realtime_keeps_order(self):
        samples = [RecordedSample(i, 0, i * 2.0) for i in range(5)]
        player = SamplePlayer(samples)
        assert list(player.play_realtime(speed=10.0)) == samples

    def test_feed_reproduces_live_analysis(self, tmp_path):
        samples = square_path(cycles=4)
        path = recorded(samples).save(tmp_path / "session.json")

        cfg = EngineConfig(seed=1, initializer="kmeans++")
        live = AnalysisEngine(config=cfg)
        for x, y, t in samples:
            live.add_sample(x, y, t)

        replayed = AnalysisEngine(config=cfg)
        assert SamplePlayer.load(path).feed(replayed) == len(samples)
        assert replayed.get_analysis() == live.get_analysis()
        assert replayed.events == live.events

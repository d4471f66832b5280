"""Conductor CLI.

Usage:
    conductor simulate    — Run the analyzer on a synthetic beat pattern
    conductor replay      — Replay a recorded session through the analyzer
    conductor benchmark   — Time the per-sample pipeline
    conductor config      — Write the default configuration as YAML
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Optional

try:
    import typer
except ImportError:
    raise ImportError("typer is required for CLI. Install with: pip install typer")

app = typer.Typer(
    name="conductor",
    help="🎼 Infer tempo and time signature from a conducting gesture.",
    add_completion=False,
)


def _setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config(path: Optional[str]):
    from conductor.config import EngineConfig

    if path is None:
        return EngineConfig()
    try:
        return EngineConfig.from_yaml(path)
    except (ValueError, TypeError) as e:
        typer.echo(f"❌ Invalid config {path}: {e}", err=True)
        raise typer.Exit(1)


def _format_analysis(analysis) -> str:
    ts = f"{analysis.time_signature}/4" if analysis.time_signature else "?"
    bpm = f"{analysis.tempo_bpm:.0f} bpm" if analysis.tempo_bpm else "?"
    return f"time: {ts}  tempo: {bpm}"


def _run(engine, samples, verbose: bool) -> int:
    changes = 0

    def on_change(event):
        nonlocal changes
        changes += 1
        if verbose:
            typer.echo(
                f"   ↪ direction change at {event.time:.0f}ms "
                f"({event.position.x:.0f}, {event.position.y:.0f}) heading {event.angle:.0f}°"
            )

    engine.on_direction_change(on_change)
    for x, y, t in samples:
        engine.add_sample(x, y, t)
    return changes


@app.command()
def simulate(
    shape: str = typer.Option("square", help="Beat pattern: square or triangle"),
    cycles: int = typer.Option(6, help="Laps around the pattern"),
    side_samples: int = typer.Option(20, help="Samples between corners"),
    interval_ms: float = typer.Option(25.0, help="Milliseconds between samples"),
    size: float = typer.Option(200.0, help="Side length in pixels"),
    jitter: float = typer.Option(0.0, help="Gaussian position noise (pixels)"),
    seed: Optional[int] = typer.Option(None, help="Random seed for noise and clustering"),
    config: Optional[str] = typer.Option(None, help="Path to config YAML"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Also save the generated samples"),
    as_json: bool = typer.Option(False, "--json", help="Print the final analysis as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print every direction change"),
    log_level: str = typer.Option("warning", help="Log level"),
):
    """Feed a synthetic conducting pattern through the analyzer."""
    import numpy as np
    from conductor.engine import AnalysisEngine
    from conductor.recorder import SampleRecorder
    from conductor.synthetic import SHAPES

    _setup_logging(log_level)

    if shape not in SHAPES:
        typer.echo(f"❌ Unknown shape '{shape}' (expected one of {', '.join(SHAPES)})", err=True)
        raise typer.Exit(1)

    cfg = _load_config(config)
    if seed is not None:
        cfg.seed = seed

    samples = SHAPES[shape](
        size=size,
        side_samples=side_samples,
        cycles=cycles,
        interval_ms=interval_ms,
        jitter=jitter,
        rng=np.random.default_rng(seed),
    )

    if output:
        recorder = SampleRecorder()
        recorder.start()
        recorder.extend(samples)
        recorder.stop()
        path = recorder.save(output)
        typer.echo(f"💾 Saved {recorder.sample_count} samples to {path}")

    engine = AnalysisEngine(config=cfg)
    changes = _run(engine, samples, verbose)
    analysis = engine.get_analysis()

    if as_json:
        typer.echo(json.dumps({"direction_changes": changes, **analysis.to_dict()}))
        return

    typer.echo(f"🎼 {shape}: {len(samples)} samples, {changes} direction changes")
    typer.echo(f"   {_format_analysis(analysis)}")


@app.command()
def replay(
    recording: str = typer.Argument(..., help="Path to a .json or .npz recording"),
    config: Optional[str] = typer.Option(None, help="Path to config YAML"),
    realtime: bool = typer.Option(False, help="Play at the recorded pace"),
    speed: float = typer.Option(1.0, help="Playback speed multiplier"),
    as_json: bool = typer.Option(False, "--json", help="Print the final analysis as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print every direction change"),
    log_level: str = typer.Option("warning", help="Log level"),
):
    """Replay a recorded session through the analyzer."""
    from conductor.engine import AnalysisEngine
    from conductor.recorder import SamplePlayer

    _setup_logging(log_level)

    path = Path(recording)
    if not path.exists():
        typer.echo(f"❌ Recording not found: {recording}", err=True)
        raise typer.Exit(1)

    try:
        player = SamplePlayer.load(path)
    except (OSError, ValueError, KeyError) as e:
        typer.echo(f"❌ Could not read {recording}: {e}", err=True)
        raise typer.Exit(1)

    engine = AnalysisEngine(config=_load_config(config))
    if not as_json:
        typer.echo(
            f"▶️  Replaying {path.name} ({player.sample_count} samples, "
            f"{player.duration_ms / 1000:.1f}s)"
        )

    stream = player.play_realtime(speed) if realtime else player.play()
    changes = _run(engine, ((s.x, s.y, s.time) for s in stream), verbose)
    analysis = engine.get_analysis()

    if as_json:
        typer.echo(json.dumps({"direction_changes": changes, **analysis.to_dict()}))
        return

    typer.echo(f"\n✅ Replay complete. {changes} direction changes.")
    typer.echo(f"   {_format_analysis(analysis)}")


@app.command()
def benchmark(
    cycles: int = typer.Option(20, help="Laps of the square pattern to feed"),
    seed: int = typer.Option(42, help="Random seed"),
):
    """Measure per-sample pipeline latency on a synthetic pattern."""
    from conductor.config import EngineConfig
    from conductor.engine import AnalysisEngine
    from conductor.synthetic import square_path

    samples = square_path(cycles=cycles)
    engine = AnalysisEngine(config=EngineConfig(seed=seed), enable_profiling=True)

    typer.echo(f"⚡ Running benchmark: {len(samples)} samples")
    times = []
    for x, y, t in samples:
        t0 = time.perf_counter()
        engine.add_sample(x, y, t)
        times.append(time.perf_counter() - t0)

    avg_ms = sum(times) / len(times) * 1000
    p95_ms = sorted(times)[int(len(times) * 0.95)] * 1000
    rate = 1000 / avg_ms if avg_ms > 0 else 0

    typer.echo(f"\n📊 Results:")
    typer.echo(f"   Average latency: {avg_ms:.3f} ms")
    typer.echo(f"   P95 latency:     {p95_ms:.3f} ms")
    typer.echo(f"   Throughput:      {rate:.0f} samples/s")
    typer.echo(f"   Analysis:        {_format_analysis(engine.get_analysis())}")

    typer.echo(f"\n📈 Stage breakdown:")
    for name, stats in engine.profiler.summary().items():
        share = f"{stats['share_pct']:5.1f}%" if stats["share_pct"] is not None else "      "
        typer.echo(
            f"   {name:12s} {share}  avg={stats['avg_ms']:.3f}ms  p95={stats['p95_ms']:.3f}ms"
        )
    typer.echo(f"   Slowest stage: {engine.profiler.slowest_stage()}")


@app.command("config")
def write_config(
    output: Optional[str] = typer.Argument(None, help="Where to write; stdout if omitted"),
):
    """Write the default configuration as YAML."""
    import yaml
    from conductor.config import EngineConfig

    cfg = EngineConfig()
    if output is None:
        typer.echo(yaml.dump(cfg.to_dict(), default_flow_style=False, sort_keys=False).rstrip())
        return
    cfg.to_yaml(output)
    typer.echo(f"💾 Default config written to {output}")


def main():
    app()


if __name__ == "__main__":
    main()

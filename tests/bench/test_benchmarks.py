"""Pytest micro-benchmarks for the DDSketch."""

from __future__ import annotations

from pathlib import Path

import pytest

pytest.importorskip("numpy")
import numpy as np

from dd_sketch import Config, DDSketch

OUTPUT_DIR = Path("bench_out/pytest")
OUTPUT_DIR.mkdir(parents=True, exist_ok=True)

pytestmark = pytest.mark.benchmark


def _generate_data(dist: str, size: int, seed: int) -> np.ndarray:
    rng = np.random.default_rng(seed)
    if dist == "exponential":
        return rng.exponential(scale=1.0, size=size)
    if dist == "lognormal":
        return rng.lognormal(mean=3.0, sigma=1.5, size=size)
    raise ValueError(f"Unsupported distribution for pytest benchmarks: {dist}")


@pytest.mark.parametrize("distribution", ["exponential", "lognormal"])
@pytest.mark.parametrize("N", [int(1e5)])
@pytest.mark.parametrize("config", [Config.defaults(), Config.agent_defaults()], ids=["default", "agent"])
def test_update_throughput(distribution: str, N: int, config: Config, benchmark) -> None:
    data = _generate_data(distribution, N, seed=42)

    def build_sketch() -> DDSketch:
        sketch = DDSketch(config)
        for value in data:
            sketch.add(float(value))
        return sketch

    sketch = benchmark(build_sketch)

    for q in [0.5, 0.99]:
        approx = sketch.quantile(q)
        exact = float(np.quantile(data, q, method="lower"))
        assert abs(approx - exact) <= config.alpha * exact * (1 + 1e-9)


@pytest.mark.parametrize("shards", [8, 64])
def test_merge_throughput(shards: int, benchmark) -> None:
    data = _generate_data("lognormal", int(1e5), seed=7)
    parts = []
    for chunk in np.array_split(data, shards):
        part = DDSketch()
        for value in chunk:
            part.add(float(value))
        parts.append(part)

    def merge_all() -> DDSketch:
        target = DDSketch()
        for part in parts:
            target.merge(part)
        return target

    merged = benchmark(merge_all)
    assert merged.count() == data.size

"""Property-based tests exercising the guarantees of :mod:`dd_sketch`."""
from __future__ import annotations

from typing import Sequence

import pytest

hypothesis = pytest.importorskip("hypothesis")
st = hypothesis.strategies
given = hypothesis.given
settings = hypothesis.settings

from dd_sketch import Config, DDSketch, MergeError

# Wide enough for both signs of magnitudes in [1e-6, 1e6] without collapsing.
WIDE = Config(0.01, 4096, 1e-9)

magnitudes = st.floats(min_value=1e-6, max_value=1e6, allow_nan=False, allow_infinity=False)
samples = st.builds(lambda m, neg: -m if neg else m, magnitudes, st.booleans())


def _sorted_list(seq: Sequence[float]) -> list[float]:
    ordered = list(seq)
    ordered.sort()
    return ordered


@given(st.lists(samples, min_size=1, max_size=500), st.floats(min_value=0.0, max_value=1.0))
@settings(max_examples=100, deadline=None)
def test_quantile_relative_error_is_bounded(xs: list[float], q: float) -> None:
    sketch = DDSketch(WIDE)
    sketch.extend(xs)
    assert not sketch._store.is_collapsed()

    estimate = sketch.quantile(q)
    truth = _sorted_list(xs)[int(q * (len(xs) - 1))]
    assert abs(estimate - truth) <= WIDE.alpha * abs(truth) * (1 + 1e-9)


@given(st.lists(samples, min_size=1, max_size=200), st.floats(allow_nan=False))
@settings(max_examples=60, deadline=None)
def test_out_of_range_quantiles_clamp_to_extremes(xs: list[float], q: float) -> None:
    sketch = DDSketch(WIDE)
    sketch.extend(xs)
    if q <= 0.0:
        assert sketch.quantile(q) == min(xs)
    elif q >= 1.0:
        assert sketch.quantile(q) == max(xs)
    else:
        assert min(xs) <= sketch.quantile(q) <= max(xs)


@given(st.lists(samples, min_size=0, max_size=300), st.lists(samples, min_size=0, max_size=300))
@settings(max_examples=60, deadline=None)
def test_merge_matches_extending(xs: list[float], ys: list[float]) -> None:
    combined = xs + ys

    serial = DDSketch(WIDE)
    serial.extend(combined)

    a = DDSketch(WIDE)
    b = DDSketch(WIDE)
    a.extend(xs)
    b.extend(ys)
    a.merge(b)

    assert a.count() == serial.count() == len(combined)
    assert list(a._store.items()) == list(serial._store.items())
    if not combined:
        assert a.is_empty()
        assert a.min() is None
        return

    assert a.min() == serial.min()
    assert a.max() == serial.max()
    assert a.sum() == pytest.approx(serial.sum(), rel=1e-9, abs=1e-6)
    for q in [0.0, 0.1, 0.5, 0.9, 1.0]:
        assert a.quantile(q) == serial.quantile(q)


@given(
    st.lists(magnitudes, min_size=1, max_size=1_000),
    st.integers(min_value=1, max_value=64),
)
@settings(max_examples=60, deadline=None)
def test_collapsing_bounds_memory_and_keeps_counts(xs: list[float], bins: int) -> None:
    sketch = DDSketch(Config(0.01, bins, 1e-9))
    sketch.extend(xs)

    assert sketch.length() <= bins
    assert sketch.count() == len(xs)
    assert sum(c for _, c in sketch._store.items()) == len(xs)
    assert sketch.min() == min(xs)
    assert sketch.max() == max(xs)
    # Collapsing only ever folds the low end: the top bucket is the maximum's.
    top_key, _ = list(sketch._store.items())[-1]
    assert top_key == sketch.config.key(max(xs))


@given(st.floats(min_value=0.001, max_value=0.2), st.floats(min_value=0.001, max_value=0.2))
@settings(max_examples=40, deadline=None)
def test_merge_requires_equal_configs(alpha_a: float, alpha_b: float) -> None:
    a = DDSketch(Config(alpha_a))
    b = DDSketch(Config(alpha_b))
    a.add(1.0)
    b.add(2.0)
    if alpha_a == alpha_b:
        a.merge(b)
        assert a.count() == 2
    else:
        with pytest.raises(MergeError):
            a.merge(b)
        assert a.count() == 1
        assert a.max() == 1.0


@given(st.lists(samples, min_size=0, max_size=500))
@settings(max_examples=60, deadline=None)
def test_serialization_roundtrip_matches_buckets(xs: list[float]) -> None:
    sketch = DDSketch(WIDE)
    sketch.extend(xs)
    restored = DDSketch.from_bytes(sketch.to_bytes())

    assert restored.count() == sketch.count()
    assert list(restored._store.items()) == list(sketch._store.items())
    assert (restored.min(), restored.max(), restored.sum()) == (sketch.min(), sketch.max(), sketch.sum())
    for q in [0.0, 0.25, 0.5, 0.75, 1.0]:
        assert restored.quantile(q) == sketch.quantile(q)

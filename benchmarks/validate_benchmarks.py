#!/usr/bin/env python3
"""Validate benchmark outputs against regression thresholds.

Run in CI after ``benchmarks/bench_ddsketch.py``. Reads the CSV outputs from
``bench_out`` (or a supplied directory) and fails when the relative-error
guarantee, the bin bound or the speed floors are violated.
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Callable, Dict, List, Tuple

import pandas as pd

# Relative error may exceed alpha only by floating-point noise.
ACCURACY_REL_SLACK = 1e-9
# Floor for pure-Python ingestion on shared CI runners; only catches large
# regressions.
THROUGHPUT_MIN_UPS = 6_000
LATENCY_P95_MAX_US = 500.0
MERGE_TIME_MAX_S = 1.0


def _load_csv(path: Path) -> pd.DataFrame:
    if not path.exists():
        raise FileNotFoundError(f"Expected benchmark artifact missing: {path}")
    return pd.read_csv(path)


def _check_accuracy(df: pd.DataFrame) -> Tuple[bool, object]:
    if df.empty:
        return True, {"overall": 0.0}
    # Each error as a multiple of the alpha the sketch was built with.
    ratio = df["rel_error"] / df["alpha"]
    worst = {mode: round(float(v), 6) for mode, v in ratio.groupby(df["mode"]).max().items()}
    worst["overall"] = round(float(ratio.max()), 6)
    return worst["overall"] <= 1.0 + ACCURACY_REL_SLACK, worst


def _check_bins(df: pd.DataFrame, max_bins: int) -> Tuple[bool, object]:
    largest = int(df["bins"].max()) if not df.empty else 0
    return largest <= max_bins, largest


def _check_throughput(df: pd.DataFrame) -> Tuple[bool, object]:
    minimum = float(df["updates_per_sec"].min()) if not df.empty else float("inf")
    return minimum >= THROUGHPUT_MIN_UPS, round(minimum, 2)


def _check_latency(df: pd.DataFrame) -> Tuple[bool, object]:
    p95 = float(df["latency_us"].quantile(0.95)) if not df.empty else 0.0
    return p95 <= LATENCY_P95_MAX_US, round(p95, 2)


def _check_merge(df: pd.DataFrame) -> Tuple[bool, object]:
    maximum = float(df["merge_time_s"].max()) if not df.empty else 0.0
    return maximum <= MERGE_TIME_MAX_S, round(maximum, 3)


def _summarise(results: Dict[str, Dict[str, object]]) -> str:
    lines: List[str] = [
        "# Benchmark validation summary",
        "",
        "| Check | Threshold | Observed | Status |",
        "| --- | --- | --- | --- |",
    ]
    for name, payload in results.items():
        status = "PASS" if payload["ok"] else "FAIL"
        lines.append(f"| {name} | {payload['threshold']} | {payload['observed']} | {status} |")
    lines += ["", "```json", json.dumps(results, indent=2, sort_keys=True), "```"]
    return "\n".join(lines)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("outdir", nargs="?", default="bench_out", help="Directory containing benchmark CSVs")
    parser.add_argument("--max-bins", type=int, default=2048, help="Bin limit the benchmark was run with")
    parser.add_argument("--summary", default="bench_summary.md", help="Filename for the generated markdown summary")
    args = parser.parse_args()

    outdir = Path(args.outdir)
    throughput = _load_csv(outdir / "update_throughput.csv")
    checks: List[Tuple[str, str, Callable[[], Tuple[bool, object]]]] = [
        ("Relative error / alpha", "<= 1.0", lambda: _check_accuracy(_load_csv(outdir / "accuracy.csv"))),
        ("Materialized bins", f"<= {args.max_bins}", lambda: _check_bins(throughput, args.max_bins)),
        ("Update throughput", f">= {THROUGHPUT_MIN_UPS} updates/sec", lambda: _check_throughput(throughput)),
        ("Query latency p95", f"<= {LATENCY_P95_MAX_US} µs", lambda: _check_latency(_load_csv(outdir / "query_latency.csv"))),
        ("Merge time", f"<= {MERGE_TIME_MAX_S} s", lambda: _check_merge(_load_csv(outdir / "merge.csv"))),
    ]

    summary: Dict[str, Dict[str, object]] = {}
    for name, threshold, check in checks:
        ok, observed = check()
        summary[name] = {"threshold": threshold, "observed": observed, "ok": ok}

    summary_path = outdir / args.summary
    summary_path.write_text(_summarise(summary), encoding="utf-8")
    print(summary_path.read_text(encoding="utf-8"))

    if not all(item["ok"] for item in summary.values()):
        raise SystemExit("Benchmark regression detected; see summary above.")


if __name__ == "__main__":
    main()

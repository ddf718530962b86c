#!/usr/bin/env python3
"""Benchmark suite for pybloomer filter creation and batch queries.

The workload mirrors the SQL test generator used against the database
extension: member *i* is ``[i, i+50, i+100, i+150] mod 256`` and the second
half of the query array uses ``[i+200, i+210, i+220, i+230] mod 256``.
Because the patterns are four bytes mod 256 they repeat every 256 items,
so a random-probe pass is run as well to measure the real false-positive
rate.
"""

import argparse
import asyncio
import json
import os
import random
import time
from pathlib import Path
from typing import Dict, List

import numpy as np
import plotly.graph_objects as go
from tqdm import tqdm

from pybloomer import DirectoryFilterStore, FilterRegistry, RegistryConfig


def member_item(i: int) -> bytes:
    return bytes([i % 256, (i + 50) % 256, (i + 100) % 256, (i + 150) % 256])


def probe_item(i: int) -> bytes:
    return bytes([(i + 200) % 256, (i + 210) % 256, (i + 220) % 256, (i + 230) % 256])


def query_items(array_size: int, query_size: int) -> List[bytes]:
    """First half hits (while members last), the rest use the probe pattern."""
    return [
        member_item(i) if i < query_size // 2 and i < array_size else probe_item(i)
        for i in range(query_size)
    ]


class Metrics:
    def __init__(self):
        self.create_latencies: List[float] = []
        self.query_latencies: List[float] = []
        self.stored_bytes: List[int] = []
        self.false_positive_rates: List[float] = []

    def to_dict(self) -> Dict:
        return {
            "create_latencies": {
                "p50": np.percentile(self.create_latencies, 50),
                "p95": np.percentile(self.create_latencies, 95),
                "p99": np.percentile(self.create_latencies, 99),
            },
            "query_latencies": {
                "p50": np.percentile(self.query_latencies, 50),
                "p95": np.percentile(self.query_latencies, 95),
                "p99": np.percentile(self.query_latencies, 99),
            },
            "stored_bytes_avg": float(np.mean(self.stored_bytes)),
            "false_positive_rate_avg": float(np.mean(self.false_positive_rates)),
        }

    def plot_latencies(self, title: str, output_path: Path):
        fig = go.Figure()

        fig.add_trace(go.Box(
            y=self.create_latencies,
            name="Create Latency",
            boxpoints="outliers"
        ))

        fig.add_trace(go.Box(
            y=self.query_latencies,
            name="Batch Query Latency",
            boxpoints="outliers"
        ))

        fig.update_layout(
            title=title,
            yaxis_title="Latency (ms)",
            boxmode="group"
        )

        fig.write_html(output_path)


class BenchmarkSuite:
    def __init__(self, data_path: Path, array_size: int, query_size: int, rounds: int,
                 rate: float, workers: int | None, seed: int):
        self.data_path = data_path
        self.array_size = array_size
        self.query_size = query_size
        self.rounds = rounds
        self.rate = rate
        self.workers = workers
        self.metrics = Metrics()
        self._members = [member_item(i) for i in range(array_size)]
        self._member_set = set(self._members)
        self._queries = query_items(array_size, query_size)
        rng = random.Random(seed)
        self._random_probes = [rng.randbytes(16) for _ in range(10_000)]

    async def run(self):
        store = DirectoryFilterStore(self.data_path / "filters")
        config = RegistryConfig(batch_workers=self.workers, cache_size=0)
        async with FilterRegistry(store, config) as reg:
            for _ in tqdm(range(self.rounds), desc="pybloomer"):
                start = time.perf_counter()
                fid = await reg.create(self.rate, self._members)
                self.metrics.create_latencies.append((time.perf_counter() - start) * 1000)
                self.metrics.stored_bytes.append(len(store.load(fid)))

                start = time.perf_counter()
                result = await reg.contains_batch(fid, self._queries)
                self.metrics.query_latencies.append((time.perf_counter() - start) * 1000)

                hits = len([q for q, r in zip(self._queries, result) if q in self._member_set and r])
                expected = len([q for q in self._queries if q in self._member_set])
                if hits != expected:
                    raise AssertionError(f"false negatives: {expected - hits}")

                probes = await reg.contains_batch(fid, self._random_probes)
                self.metrics.false_positive_rates.append(sum(probes) / len(probes))


async def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--size", type=int, default=10000, help="Number of items in each filter")
    parser.add_argument("--query-size", type=int, default=None, help="Query array length (default 2x size)")
    parser.add_argument("--rounds", type=int, default=20, help="Filters created and queried")
    parser.add_argument("--rate", type=float, default=0.01, help="Target false-positive rate")
    parser.add_argument("--workers", type=int, default=None, help="Threads for batch queries")
    parser.add_argument("--seed", type=int, default=int.from_bytes(os.urandom(4), "big"), help="Probe seed")
    parser.add_argument("--output", type=Path, default=Path("benchmark_results"), help="Output directory")
    args = parser.parse_args()

    args.output.mkdir(parents=True, exist_ok=True)
    print(f"Using seed: {args.seed}")

    suite = BenchmarkSuite(
        args.output,
        args.size,
        args.query_size or args.size * 2,
        args.rounds,
        args.rate,
        args.workers,
        args.seed,
    )
    await suite.run()

    suite.metrics.plot_latencies(
        "pybloomer Latency Distribution",
        args.output / "pybloomer_latencies.html"
    )

    with open(args.output / "metrics.json", "w") as f:
        json.dump({"pybloomer": suite.metrics.to_dict(), "seed": args.seed}, f, indent=2)

if __name__ == "__main__":
    asyncio.run(main())

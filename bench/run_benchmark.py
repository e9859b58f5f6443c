#!/usr/bin/env python3
"""
Time chunks.copy_ranges() over generated input files and write the raw
results consumed by results/analyze_results.py and generate_report.py.

Run after `pip install -e .[bench]`.
"""

import argparse
import os
import tempfile
import time

import numpy as np
import pandas as pd

import chunks

BENCH_DIR = os.path.dirname(os.path.abspath(__file__))
RESULTS_CSV = os.path.join(BENCH_DIR, "results", "benchmark_results.csv")

FILE_SIZES_MB = [1, 10, 50, 100]
BLOCK_SIZES = {
    "chunks-64K": 64 * 1024,
    "chunks-512K": chunks.BLOCK_SIZE,
    "chunks-4M": 4 * 1024 * 1024,
}

# Each scenario is a list of ranges, resolved against the input file size.
SCENARIOS = {
    "full_file": [":"],
    "small_start": ["0:+1M"],
    "large_chunk": ["0:+20M"],
    "tail": ["-1M:"],
    "chained": ["0:+64K"] + ["+64K:+64K"] * 255,
}


def make_input(directory, size_mb):
    path = os.path.join(directory, f"input_{size_mb}MB.bin")
    rng = np.random.default_rng(size_mb)
    with open(path, "wb") as f:
        for _ in range(size_mb):
            f.write(rng.integers(0, 256, size=1024 * 1024, dtype=np.uint8).tobytes())
    return path


def time_copy(path, descriptors, block_size, runs):
    """Return the wall times of `runs` copies of descriptors from path to /dev/null."""
    times = []
    with open(path, "rb") as in_file, open(os.devnull, "wb") as out_file:
        in_size = chunks.file_size(in_file)
        _, expected_size = chunks.plan_ranges(in_size, descriptors)
        for _ in range(runs):
            start = time.perf_counter()
            chunks.copy_ranges(in_file, out_file, in_size, descriptors, expected_size,
                               block_size=block_size)
            times.append(time.perf_counter() - start)
    return expected_size, times


def main():
    parser = argparse.ArgumentParser(description="Benchmark chunks block sizes.")
    parser.add_argument("--runs", type=int, default=5, help="Timed runs per measurement")
    parser.add_argument("--sizes", type=int, nargs="+", default=FILE_SIZES_MB,
                        help="Input file sizes in MB")
    args = parser.parse_args()

    rows = []
    with tempfile.TemporaryDirectory() as tmp:
        for size_mb in args.sizes:
            path = make_input(tmp, size_mb)
            for scenario, descriptors in SCENARIOS.items():
                for impl, block_size in BLOCK_SIZES.items():
                    slice_size, times = time_copy(path, descriptors, block_size, args.runs)
                    rows.append({
                        "impl": impl,
                        "scenario": scenario,
                        "file_size_MB": size_mb,
                        "slice_size": slice_size,
                        "avg_time": np.mean(times),
                        "min_time": np.min(times),
                        "max_time": np.max(times),
                        "stdev": np.std(times),
                    })
                    print(f"{impl:12} {scenario:12} {size_mb:4}MB  {np.mean(times):.6f}s")

    os.makedirs(os.path.dirname(RESULTS_CSV), exist_ok=True)
    pd.DataFrame(rows).to_csv(RESULTS_CSV, index=False)
    print(f"Results saved to {RESULTS_CSV}")
    return 0


if __name__ == "__main__":
    exit(main())

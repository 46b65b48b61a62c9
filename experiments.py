"""
Compressor benchmark: raw vs framed output on synthetic data

Runs every dataset generator for several seeds, compresses each dataset both
ways, decodes it again and records timings, sizes and code-length statistics.
All datasets are compressed binary-safe (no 0-byte terminator) since the
generators emit arbitrary byte values.

Outputs (in --outdir):
  - metrics.csv     (raw row per run per output format)
  - summary.csv     (grouped mean/stdev)
  - *.png           (charts)

How to run:
  python experiments.py --outdir results --runs 5
  python experiments.py --outdir results --runs 3 --size_kb 64 --generators zipf128,english_like
  python experiments.py --outdir results --no_plots
"""

from __future__ import annotations

import argparse
import csv
import math
import random
import statistics
import time
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Tuple

import matplotlib.pyplot as plt

from bitpack import encode_bytes, iter_bits
from compress import compress_bytes, decompress_bytes
from config import BINARY_SAFE
from huffman import build_huffman_tree, frequency_table_from_bytes, generate_huffman_codes, huffman_decode, tree_depth

FORMATS = ("raw", "framed")


# Utilities

def now_ns() -> int:
    return time.perf_counter_ns()

def ns_to_ms(ns: int) -> float:
    return ns / 1_000_000.0

def safe_mkdir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)

def shannon_entropy(frequency_table: Mapping[int, int]) -> float:
    """Bits per symbol lower bound for any prefix code on this distribution"""
    total = sum(frequency_table.values())
    if total == 0:
        return 0.0
    return -sum((c / total) * math.log2(c / total) for c in frequency_table.values() if c)

def mean_code_length(frequency_table: Mapping[int, int], code_table: Mapping[int, str]) -> float:
    total = sum(frequency_table.values())
    return sum(c * len(code_table[s]) for s, c in frequency_table.items()) / max(1, total)


# Synthetic dataset generators

def _sample_cdf(rng: random.Random, cdf: List[float]) -> int:
    r = rng.random()
    lo, hi = 0, len(cdf) - 1
    while lo < hi:
        mid = (lo + hi) // 2
        if r <= cdf[mid]:
            hi = mid
        else:
            lo = mid + 1
    return lo

def _cdf(weights: List[float]) -> List[float]:
    total = sum(weights)
    cdf = []
    acc = 0.0
    for w in weights:
        acc += w / total
        cdf.append(acc)
    cdf[-1] = 1.0 # guard against float drift
    return cdf

def gen_uniform(size: int, alphabet: int = 256, seed: int = 0) -> bytes:
    rng = random.Random(seed)
    return bytes(rng.randrange(0, alphabet) for _ in range(size))

def gen_repetitive(size: int, dominant: int = ord('A'), dom_frac: float = 0.90, seed: int = 0) -> bytes:
    rng = random.Random(seed)
    other_symbols = [i for i in range(256) if i != dominant]
    return bytes(dominant if rng.random() < dom_frac else rng.choice(other_symbols) for _ in range(size))

def gen_zipf_like(size: int, alphabet: int = 128, s: float = 1.2, seed: int = 0) -> bytes:
    rng = random.Random(seed)
    cdf = _cdf([1.0 / ((i + 1) ** s) for i in range(alphabet)])
    return bytes(_sample_cdf(rng, cdf) for _ in range(size))

def gen_english_like(size: int, seed: int = 0) -> bytes:
    rng = random.Random(seed)
    chars = " etaoinshrdlcumwfgypbvkjxqETAOINSHRDLCUMWFGYPBVKJXQ\n"
    weights = []
    for ch in chars:
        if ch == ' ':
            weights.append(13.0)
        elif ch == '\n':
            weights.append(1.5)
        elif ch.lower() in "etaoinshrdlu":
            weights.append(6.0)
        elif ch.lower() in "cmfwgypbvk":
            weights.append(2.5)
        else:
            weights.append(1.2)
    cdf = _cdf(weights)
    return bytes(ord(chars[_sample_cdf(rng, cdf)]) for _ in range(size))

GENERATOR_REGISTRY: Dict[str, Callable[[int, int], bytes]] = {
    "uniform256": lambda size, seed: gen_uniform(size, alphabet=256, seed=seed),
    "uniform16": lambda size, seed: gen_uniform(size, alphabet=16, seed=seed),
    "zipf128": lambda size, seed: gen_zipf_like(size, alphabet=128, s=1.2, seed=seed),
    "repetitive90": lambda size, seed: gen_repetitive(size, dominant=ord('A'), dom_frac=0.90, seed=seed),
    "repetitive99": lambda size, seed: gen_repetitive(size, dominant=ord('A'), dom_frac=0.99, seed=seed),
    "english_like": lambda size, seed: gen_english_like(size, seed=seed),
}

def generate_dataset(name: str, size_bytes: int, seed: int) -> bytes:
    fn = GENERATOR_REGISTRY.get(name)
    if fn is None:
        raise ValueError(f"unknown generator {name!r}, choose from {', '.join(sorted(GENERATOR_REGISTRY))}")
    return fn(size_bytes, seed)


# Experiment runner

@dataclass
class MetricRow:
    dataset_name: str
    file_size_bytes: int
    run_id: int
    output_format: str  # "raw" or "framed"
    unique_symbols: int
    tree_depth_bits: int

    build_ms: float
    encode_ms: float
    decode_ms: float
    total_ms: float

    compressed_bytes: int
    pad_bits: int
    compression_ratio: float

    mean_code_length: float
    entropy_bits: float
    correctness_ok: int  # 1 or 0


def run_one(data: bytes, output_format: str) -> MetricRow:
    if output_format not in FORMATS:
        raise ValueError(f"output_format must be one of {FORMATS}")

    # Frequency table + tree + codes
    t0 = now_ns()
    ft = frequency_table_from_bytes(data, BINARY_SAFE)
    root = build_huffman_tree(ft)
    code_map = generate_huffman_codes(root)
    t1 = now_ns()

    # encode
    if output_format == "raw":
        packed = encode_bytes(data, code_map, BINARY_SAFE)
    else:
        packed = compress_bytes(data, BINARY_SAFE, framed=True)
    t2 = now_ns()

    # decode: raw needs the tree out of band, framed carries its own counts
    total_bits = sum(c * len(code_map[s]) for s, c in ft.items())
    if output_format == "raw":
        decoded = huffman_decode(iter_bits(packed, total_bits), root)
    else:
        decoded = decompress_bytes(packed)
    t3 = now_ns()

    build_ms = ns_to_ms(t1 - t0)
    encode_ms = ns_to_ms(t2 - t1)
    decode_ms = ns_to_ms(t3 - t2)

    return MetricRow(
        dataset_name="",
        file_size_bytes=len(data),
        run_id=0,
        output_format=output_format,
        unique_symbols=len(ft),
        tree_depth_bits=tree_depth(root),
        build_ms=build_ms,
        encode_ms=encode_ms,
        decode_ms=decode_ms,
        total_ms=build_ms + encode_ms + decode_ms,
        compressed_bytes=len(packed),
        pad_bits=-total_bits % 8,
        compression_ratio=len(packed) / max(1, len(data)),
        mean_code_length=mean_code_length(ft, code_map),
        entropy_bits=shannon_entropy(ft),
        correctness_ok=1 if decoded == data else 0,
    )


def run_experiments(generators: List[str], size_bytes: int, runs: int, seed: int) -> List[MetricRow]:
    rows: List[MetricRow] = []
    for gen_name in generators:
        for run_id in range(1, runs + 1):
            data = generate_dataset(gen_name, size_bytes, seed + run_id)
            for output_format in FORMATS:
                row = run_one(data, output_format)
                row.dataset_name = gen_name
                row.run_id = run_id
                rows.append(row)
    return rows


def write_csv(path: Path, rows: List[MetricRow]) -> None:
    names = [f.name for f in fields(MetricRow)]
    with path.open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=names)
        w.writeheader()
        for r in rows:
            w.writerow({k: getattr(r, k) for k in names})


def mean_stdev(vals: List[float]) -> Tuple[float, float]:
    if len(vals) == 1:
        return vals[0], 0.0
    return statistics.mean(vals), statistics.stdev(vals)


def group_summary(rows: List[MetricRow], out_path: Path) -> None:
    """
    Group by dataset_name, file_size_bytes, output_format and compute mean/stdev
    """
    key_to: Dict[Tuple[str, int, str], List[MetricRow]] = {}
    for r in rows:
        key_to.setdefault((r.dataset_name, r.file_size_bytes, r.output_format), []).append(r)

    averaged = ["compression_ratio", "encode_ms", "decode_ms", "build_ms", "total_ms", "mean_code_length"]
    summary_fields = ["dataset_name", "file_size_bytes", "output_format", "n_runs", "entropy_bits_mean"]
    for name in averaged:
        summary_fields += [f"{name}_mean", f"{name}_stdev"]
    summary_fields.append("correctness_ok_rate")

    with out_path.open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=summary_fields)
        w.writeheader()
        for (dataset_name, size_b, output_format), items in sorted(key_to.items()):
            row = {
                "dataset_name": dataset_name,
                "file_size_bytes": size_b,
                "output_format": output_format,
                "n_runs": len(items),
                "entropy_bits_mean": statistics.mean(x.entropy_bits for x in items),
                "correctness_ok_rate": sum(x.correctness_ok for x in items) / len(items),
            }
            for name in averaged:
                m, s = mean_stdev([getattr(x, name) for x in items])
                row[f"{name}_mean"] = m
                row[f"{name}_stdev"] = s
            w.writerow(row)


# Plotting

def plot_results(rows: List[MetricRow], outdir: Path) -> List[Path]:
    if not rows:
        return []

    datasets = sorted(set(r.dataset_name for r in rows))
    x = list(range(len(datasets)))

    def mean_for(dataset: str, output_format: str, field: str) -> float:
        vals = [getattr(r, field) for r in rows if r.dataset_name == dataset and r.output_format == output_format]
        return statistics.mean(vals) if vals else float("nan")

    written = []

    plt.figure()
    for p in FORMATS:
        y = [mean_for(d, p, "compression_ratio") for d in datasets]
        plt.plot(x, y, marker="o", label=p)
    plt.xticks(x, datasets, rotation=20, ha="right")
    plt.ylabel("Compressed Bytes / Original Bytes")
    plt.title("Compression Ratio by Distribution")
    plt.legend()
    plt.tight_layout()
    written.append(outdir / "compression_ratio.png")
    plt.savefig(written[-1], dpi=200)
    plt.close()

    plt.figure()
    for p in FORMATS:
        y = [mean_for(d, p, "encode_ms") for d in datasets]
        plt.plot(x, y, marker="o", label=p)
    plt.xticks(x, datasets, rotation=20, ha="right")
    plt.ylabel("Encode Time (ms)")
    plt.title("Encode Time by Distribution")
    plt.legend()
    plt.tight_layout()
    written.append(outdir / "encode_time.png")
    plt.savefig(written[-1], dpi=200)
    plt.close()

    # Huffman is within one bit per symbol of the entropy bound
    plt.figure()
    plt.plot(x, [mean_for(d, "raw", "mean_code_length") for d in datasets], marker="o", label="mean code length")
    plt.plot(x, [mean_for(d, "raw", "entropy_bits") for d in datasets], marker="x", linestyle="--", label="entropy")
    plt.xticks(x, datasets, rotation=20, ha="right")
    plt.ylabel("Bits per Symbol")
    plt.title("Mean Code Length vs Entropy")
    plt.legend()
    plt.tight_layout()
    written.append(outdir / "code_length_vs_entropy.png")
    plt.savefig(written[-1], dpi=200)
    plt.close()

    return written


# Main

def parse_csv_list(s: str) -> List[str]:
    return [x.strip() for x in s.split(",") if x.strip()]

def main(argv=None) -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--outdir", type=str, default="results", help="Output directory for CSV and plots")
    ap.add_argument("--runs", type=int, default=5, help="Repetitions per dataset (>=3 recommended for timing)")
    ap.add_argument("--seed", type=int, default=123, help="Base random seed")
    ap.add_argument("--size_kb", type=int, default=256, help="Size of each generated dataset in KB")
    ap.add_argument("--generators", type=str, default="uniform256,zipf128,repetitive90,english_like",
                    help="Comma-separated dataset generator names")
    ap.add_argument("--no_plots", action="store_true", help="Skip chart generation")
    args = ap.parse_args(argv)

    gen_names = parse_csv_list(args.generators)
    unknown = [g for g in gen_names if g not in GENERATOR_REGISTRY]
    if unknown:
        ap.error(f"unknown generator(s): {', '.join(unknown)}")

    outdir = Path(args.outdir)
    safe_mkdir(outdir)

    rows = run_experiments(gen_names, max(1, args.size_kb) * 1024, max(1, args.runs), args.seed)

    metrics_csv = outdir / "metrics.csv"
    summary_csv = outdir / "summary.csv"
    write_csv(metrics_csv, rows)
    group_summary(rows, summary_csv)

    if not args.no_plots:
        plot_results(rows, outdir)

    ok_rate = sum(r.correctness_ok for r in rows) / max(1, len(rows))
    print(f"Wrote {len(rows)} rows to {metrics_csv}")
    print(f"Wrote grouped summary to {summary_csv}")
    print(f"Correctness rate across all runs: {ok_rate:.3f}")
    if not args.no_plots:
        print("Charts saved in:", outdir.resolve())
    return 0 if ok_rate == 1.0 else 1


if __name__ == "__main__":
    raise SystemExit(main())

"""
pipeline.py

Count k-mers for many files with a fixed-size pool of worker processes.

The input files are split round-robin into one batch per worker. Each batch
owns a single KmerCountTable and reuses it for all of its files via clear(),
so no counting state is ever shared. Results carry the index of their input
file and are put back in input order once every batch has finished; nothing
downstream depends on which worker finishes first.

Per file, a worker returns either a z-score profile (distances mode) or the
encoded count table; tables are written and the distance matrix is built only
after all workers are done.
"""

from __future__ import annotations

import os
import sys
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import numpy as np

from .codec import encode_table, write_payload
from .config import RunConfig
from .distance import correlation_matrix, write_distance_table
from .kmer import KmerCountTable
from .zscore import calc_zscores


@dataclass
class FileResult:
    index: int
    path: str
    profile: Optional[np.ndarray] = None
    payload: Optional[bytes] = None


@dataclass
class RunSummary:
    paths: List[str]
    outputs: List[str]
    matrix: Optional[np.ndarray] = None


def artifact_name(path: str, k: int, binary: bool, compress: bool = False) -> str:
    """Name of the per-file table: input basename + '.k<K>.bin' or '.k<K>.txt'."""
    name = f"{os.path.basename(path)}.k{k}.{'bin' if binary else 'txt'}"
    return name + ".gz" if compress else name


def _count_batch(batch: List[Tuple[int, str]], cfg: RunConfig) -> List[FileResult]:
    """Worker body: one private table, reused across the batch."""
    table = KmerCountTable(cfg.k)
    results: List[FileResult] = []
    for index, path in batch:
        table.add_file(path)
        if cfg.rc_collapse:
            table.rc_collapse()
        if cfg.distances:
            results.append(FileResult(index, path, profile=calc_zscores(table)))
        else:
            results.append(FileResult(index, path, payload=encode_table(table, emit_binary=cfg.binary)))
        table.clear()
    return results


def count_files(cfg: RunConfig) -> List[FileResult]:
    """Process every input of cfg and return the results in input order."""
    cfg.validate()
    items = list(enumerate(cfg.paths))
    n_workers = min(cfg.resolved_threads(), len(items))
    batches = [items[w::n_workers] for w in range(n_workers)]

    results: List[FileResult] = []
    if n_workers == 1:
        results.extend(_count_batch(batches[0], cfg))
    else:
        with ProcessPoolExecutor(max_workers=n_workers) as executor:
            futures = [executor.submit(_count_batch, batch, cfg) for batch in batches]
            # join barrier: wait for every batch, first failure propagates
            for future in futures:
                results.extend(future.result())

    results.sort(key=lambda r: r.index)
    return results


def run(cfg: RunConfig, report: Optional[Callable[[str], None]] = None) -> RunSummary:
    """
    Complete job: count all inputs, then either write one table per input
    into cfg.output_dir or write the pairwise distance table to cfg.out
    (standard output when cfg.out is None).
    """
    results = count_files(cfg)
    summary = RunSummary(paths=[r.path for r in results], outputs=[])

    if cfg.distances:
        summary.matrix = correlation_matrix([r.profile for r in results])
        if cfg.out is None:
            write_distance_table(summary.matrix, summary.paths, sys.stdout)
            sys.stdout.flush()
        else:
            out_path = Path(cfg.out)
            if out_path.parent != Path("."):
                out_path.parent.mkdir(parents=True, exist_ok=True)
            with out_path.open("w", encoding="utf-8") as fh:
                write_distance_table(summary.matrix, summary.paths, fh)
            summary.outputs.append(str(out_path))
            if report:
                report(f"[OK] Wrote distance table to {out_path}")
        return summary

    out_dir = Path(cfg.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    for r in results:
        out_path = out_dir / artifact_name(r.path, cfg.k, cfg.binary, cfg.compress)
        write_payload(r.payload, out_path, compress=cfg.compress)
        summary.outputs.append(str(out_path))
        if report:
            report(f"[OK] Wrote {out_path}")
    return summary

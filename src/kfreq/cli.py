#!/usr/bin/env python3
"""
kfreq command line.

Count k-mers of every length 1..K in each input genome and either write one
count table per input, or compare the genomes through their Markov z-score
profiles and write a pairwise correlation table.

Usage examples:

    # one text table per genome: a.fa.k5.txt, b.fa.k5.txt
    kfreq -k 5 genomes/a.fa genomes/b.fa

    # binary, gzipped tables into tables/, 4 worker processes
    kfreq -k 6 -b -z -p 4 --outdir tables genomes/*.fa.gz

    # reverse-complement collapsed z-score correlations, all cores
    kfreq -k 5 -d -r -p -1 -o results/dist.tsv genomes/*.fa

    # everything from a YAML file, flags override it
    kfreq --config experiments/viruses.yml -p 8
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from .alphabet import MAX_K
from .config import DEFAULT_K, RunConfig
from .errors import ConfigurationError, KfreqError
from .kmer import MIN_K
from .pipeline import run


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="kfreq",
        description="K-mer frequency tables and z-score genome correlations.",
    )
    ap.add_argument("paths", nargs="*", help="Input FASTA/FASTQ files (optionally gzipped).")
    ap.add_argument("-k", "--k", type=int, default=None,
                    help=f"Maximum k-mer length, in [{MIN_K}, {MAX_K}] (default: {DEFAULT_K}).")
    ap.add_argument("-b", "--binary", action="store_true", default=None,
                    help="Emit binary count tables instead of text.")
    ap.add_argument("-p", "--threads", type=int, default=None,
                    help="Number of worker processes (default: 1; negative: all hardware threads).")
    ap.add_argument("-d", "--distances", action="store_true", default=None,
                    help="Compute pairwise z-score correlations instead of writing count tables.")
    ap.add_argument("-r", "--rc-collapse", action="store_true", default=None,
                    help="Collapse reverse-complement k-mers before any output.")
    ap.add_argument("-o", "--out", type=str, default=None,
                    help="Distance table destination (default: standard output).")
    ap.add_argument("--outdir", dest="output_dir", type=str, default=None,
                    help="Directory for per-file count tables (default: current directory).")
    ap.add_argument("-z", "--gzip", dest="compress", action="store_true", default=None,
                    help="gzip-compress per-file count tables.")
    ap.add_argument("--config", type=str, default=None,
                    help="YAML file with run options; explicit flags override it.")
    ap.add_argument("-q", "--quiet", action="store_true", default=None,
                    help="Do not print progress lines.")
    return ap


def _info(msg: str) -> None:
    print(msg, file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    try:
        cfg = RunConfig.from_yaml(args.config) if args.config else RunConfig()
    except (KfreqError, OSError) as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 1

    cfg = cfg.with_overrides(
        paths=args.paths or None,
        k=args.k,
        binary=args.binary,
        threads=args.threads,
        distances=args.distances,
        rc_collapse=args.rc_collapse,
        out=args.out,
        output_dir=args.output_dir,
        compress=args.compress,
        quiet=args.quiet,
    )
    try:
        cfg.validate()
    except ConfigurationError as exc:
        ap.error(str(exc))

    report = None if cfg.quiet else _info
    if report:
        report("[INFO] Running kfreq:")
        report(f"       inputs  = {len(cfg.paths)}")
        report(f"       k       = {cfg.k}")
        report(f"       threads = {cfg.resolved_threads()}")
        mode = "distances" if cfg.distances else ("binary tables" if cfg.binary else "text tables")
        report(f"       mode    = {mode}")
        report(f"       rc      = {cfg.rc_collapse}")

    try:
        run(cfg, report=report)
    except (KfreqError, OSError) as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

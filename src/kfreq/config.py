"""
Run configuration for the kfreq command line.

A RunConfig can be built from CLI flags, from a YAML file, or both (flags
override the file). A YAML config looks like:

  paths:
    - genomes/a.fa
    - genomes/b.fa.gz
  k: 5                # optional, default 4
  threads: -1         # optional, negative = all hardware threads
  distances: true     # optional, default false
  rc_collapse: true   # optional, default false
  out: results/dist.tsv
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from .alphabet import MAX_K
from .errors import ConfigurationError
from .kmer import MIN_K

DEFAULT_K = 4


@dataclass
class RunConfig:
    """
    Options for one run.
    Attributes:
      paths: Input FASTA/FASTQ files (optionally gzipped).
      k: Longest k-mer length, in [2, 16].
      binary: Emit binary tables instead of text.
      threads: Worker pool size; negative means all hardware threads.
      distances: Compute z-score profiles and the distance table instead of
        writing one count table per input.
      rc_collapse: Merge reverse-complement counts before any output.
      out: Destination of the distance table; None means standard output.
      output_dir: Directory receiving the per-file tables.
      compress: gzip the per-file tables.
      quiet: Suppress progress lines.
    """
    paths: List[str] = field(default_factory=list)
    k: int = DEFAULT_K
    binary: bool = False
    threads: int = 1
    distances: bool = False
    rc_collapse: bool = False
    out: Optional[str] = None
    output_dir: str = "."
    compress: bool = False
    quiet: bool = False

    def validate(self) -> "RunConfig":
        """Raise ConfigurationError for unusable settings, else return self."""
        if not MIN_K <= self.k <= MAX_K:
            raise ConfigurationError(f"k: {self.k}. Max supported: {MAX_K}. Min: {MIN_K}")
        if not self.paths:
            raise ConfigurationError("no input paths given")
        if self.threads == 0:
            raise ConfigurationError("threads must be positive, or negative for all hardware threads")
        return self

    def resolved_threads(self) -> int:
        if self.threads < 0:
            return os.cpu_count() or 1
        return self.threads

    def with_overrides(self, **overrides: Any) -> "RunConfig":
        """Copy of this config with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], source: str = "<dict>") -> "RunConfig":
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise ConfigurationError(f"{source}: unknown config keys: {', '.join(unknown)}")
        values = dict(raw)
        paths = values.get("paths", [])
        if isinstance(paths, str):
            paths = [paths]
        if not isinstance(paths, list):
            raise ConfigurationError(f"{source}: 'paths' must be a list")
        values["paths"] = [str(p) for p in paths]
        try:
            for key in ("k", "threads"):
                if key in values:
                    values[key] = int(values[key])
        except (TypeError, ValueError):
            raise ConfigurationError(f"{source}: 'k' and 'threads' must be integers") from None
        return cls(**values)

    @classmethod
    def from_yaml(cls, path) -> "RunConfig":
        with open(path, "r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Top-level YAML in {path} must be a mapping")
        return cls.from_dict(raw, source=str(path))

# src/kfreq/distance.py
"""
Pairwise similarity between genomes from their z-score profiles.

Key ideas:
- Each genome is summarised by its k-mer z-score profile (see zscore.py).
- Two genomes are compared with the Pearson correlation of their profiles.
- All N(N+1)/2 pairs (diagonal included) are evaluated and mirrored into a
  symmetric N x N matrix.

Usage:

    from kfreq import distance

    D = distance.correlation_matrix([profile_a, profile_b, profile_c])
    with open("dist.tsv", "w") as fh:
        distance.write_distance_table(D, ["a.fa", "b.fa", "c.fa"], fh)
"""

from __future__ import annotations

from typing import List, Sequence, TextIO, Tuple

import numpy as np


def pearsonr(v1, v2) -> float:
    """
    Pearson correlation of two equally long vectors, clamped to [-1, 1].

    Two-pass definition: subtract each vector's mean, accumulate the sums of
    squares and the cross product, divide by the product of the two square
    roots. A vector with zero variance correlates as 0.0.
    """
    a = np.asarray(v1, dtype=np.float64)
    b = np.asarray(v2, dtype=np.float64)
    if a.shape != b.shape or a.ndim != 1:
        raise ValueError(f"pearsonr needs two 1-D vectors of equal length, got {a.shape} and {b.shape}")
    da = a - a.mean()
    db = b - b.mean()
    s1s = float(np.dot(da, da))
    s2s = float(np.dot(db, db))
    sd = float(np.dot(da, db))
    # two square roots for better floating-point accuracy
    rden = np.sqrt(s1s) * np.sqrt(s2s)
    if rden == 0.0:
        return 0.0
    return float(min(max(sd / rden, -1.0), 1.0))


def correlation_matrix(profiles: Sequence) -> np.ndarray:
    """
    Symmetric matrix of pairwise Pearson correlations.

    Parameters
    ----------
    profiles : sequence of 1-D arrays
        One profile per genome, all of the same length.

    Returns
    -------
    D : (n, n) ndarray
        D[i, j] == D[j, i] == pearsonr(profiles[i], profiles[j]).
        The diagonal is each profile's self-correlation: 1.0, except for a
        constant profile (e.g. an all-N genome, or one shorter than k), whose
        correlation is undefined and reported as 0.0 like any other pair.
    """
    vecs = [np.asarray(p, dtype=np.float64) for p in profiles]
    if not vecs:
        raise ValueError("correlation_matrix: 'profiles' is empty")
    length = vecs[0].shape
    for i, v in enumerate(vecs):
        if v.shape != length:
            raise ValueError(f"profile {i} has shape {v.shape}, expected {length}")

    n = len(vecs)
    D = np.empty((n, n), dtype=np.float64)
    for i in range(n):
        for j in range(i, n):
            D[i, j] = D[j, i] = pearsonr(vecs[i], vecs[j])
    return D


def write_distance_table(D: np.ndarray, names: Sequence[str], fh: TextIO) -> None:
    """Write the matrix as TSV: '#Path<TAB>name...' then one row per genome."""
    if D.shape != (len(names), len(names)):
        raise ValueError(f"matrix shape {D.shape} does not match {len(names)} names")
    fh.write("#Path\t" + "\t".join(names) + "\n")
    for name, row in zip(names, D):
        fh.write(name + "\t" + "\t".join(f"{r:.8f}" for r in row) + "\n")


def read_distance_table(fh: TextIO) -> Tuple[List[str], np.ndarray]:
    """Parse a table written by write_distance_table()."""
    header = fh.readline().rstrip("\n")
    if not header.startswith("#Path"):
        raise ValueError(f"distance table must start with '#Path', got {header[:20]!r}")
    names = header.split("\t")[1:]
    rows: List[List[float]] = []
    for line in fh:
        line = line.rstrip("\n")
        if not line:
            continue
        fields = line.split("\t")
        if len(fields) != len(names) + 1:
            raise ValueError(f"row for {fields[0]!r} has {len(fields) - 1} values, expected {len(names)}")
        rows.append([float(x) for x in fields[1:]])
    if len(rows) != len(names):
        raise ValueError(f"distance table has {len(rows)} rows for {len(names)} names")
    return names, np.array(rows, dtype=np.float64).reshape(len(names), len(names))

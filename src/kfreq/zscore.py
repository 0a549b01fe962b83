"""Markov-background z-scores for the longest k-mers of a count table.

For each K-mer w = x u y (x, y single bases, u the shared (K-2)-mer bridge),
the expected count under a maximal-order Markov chain is

    E[w] = N(xu) * N(uy) / N(u)

with a normal-approximation variance

    Var[w] = E[w] * (N(u) - N(xu)) * (N(u) - N(uy)) / N(u)^2

and the z-score is (N(w) - E[w]) / sqrt(Var[w]).

Degenerate cases follow a fixed policy:
  - N(u) == 0  (bridge never observed)            -> 0
  - Var[w] == 0 (a flank fills its whole context)  -> 1 / N(u)^2
  - Var[w] < 0  (only possible on rc-collapsed tables, where a canonical
    flank can outnumber its bridge)               -> 0

The last rule is a deliberate departure from the bare closed form, which
would take the square root of a negative number and yield NaN; such k-mers
are treated like an unobserved context instead.

For K == 2 the bridge is the empty word and N(u) is the total number of
1-mers, i.e. an order-0 background.
"""

import math

import numpy as np

from .alphabet import kmer_mask
from .errors import ConfigurationError
from .kmer import KmerCountTable

_BLOCK = 1 << 20


def zscore_from_counts(observed: float, left: float, right: float, mid: float) -> float:
    """z-score of a single k-mer from its count, flank counts and bridge count."""
    if mid == 0:
        return 0.0
    expected = left * right / mid
    variance = expected * (mid - left) * (mid - right) / (mid * mid)
    if variance == 0:
        return 1.0 / (mid * mid)
    if variance < 0:
        return 0.0
    return (observed - expected) / math.sqrt(variance)


def _bridge_counts(table: KmerCountTable, k: int) -> np.ndarray:
    if k >= 3:
        return table.subtable(k - 2).counts.astype(np.float64)
    # the empty word occurs once per valid base
    return np.array([float(table.subtable(1).total())])


def calc_zscores(table: KmerCountTable) -> np.ndarray:
    """
    One z-score per k-mer of length table.max_k, in packed-index order.

    Parameters
    ----------
    table : KmerCountTable
        A populated table holding lengths K, K-1 and K-2 (length 1 when K == 2).

    Returns
    -------
    profile : (4**K,) float64 ndarray, read-only
    """
    k = table.max_k
    required = [k, k - 1, k - 2 if k >= 3 else 1]
    missing = [n for n in required if n not in table.lengths]
    if missing:
        raise ConfigurationError(
            f"z-scores for k={k} need lengths {sorted(set(required))}; table lacks {missing}"
        )

    observed_all = table.subtable(k).counts
    flanks = table.subtable(k - 1).counts.astype(np.float64)
    bridges = _bridge_counts(table, k)
    mask_km1 = np.uint64(kmer_mask(k - 1))
    mask_km2 = np.uint64(kmer_mask(k - 2))

    size = observed_all.shape[0]
    out = np.empty(size, dtype=np.float64)
    for start in range(0, size, _BLOCK):
        idx = np.arange(start, min(size, start + _BLOCK), dtype=np.uint64)
        head = idx >> np.uint64(2)
        observed = observed_all[start:start + idx.shape[0]].astype(np.float64)
        mid = bridges[(head & mask_km2).astype(np.intp)]
        left = flanks[(idx & mask_km1).astype(np.intp)]
        right = flanks[(head & mask_km1).astype(np.intp)]

        with np.errstate(divide="ignore", invalid="ignore"):
            expected = left * right / mid
            variance = expected * (mid - left) * (mid - right) / (mid * mid)
            z = (observed - expected) / np.sqrt(variance)
            z = np.where(variance == 0, 1.0 / (mid * mid), z)
        z = np.where(variance < 0, 0.0, z)
        z = np.where(mid == 0, 0.0, z)
        out[start:start + idx.shape[0]] = z

    out.setflags(write=False)
    return out

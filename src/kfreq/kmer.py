"""K-mer count tables for DNA sequences.

A KmerCountTable holds one dense count array per k-mer length (1..K for the
full table, or a trailing window of lengths for the windowed variant). Each
array has 4^k slots indexed by the 2-bit packed k-mer (see alphabet.py).
Example:
  K = 2
  Sequence: "ACGTACGT"
  1-mers: A:2, C:2, G:2, T:2                        (8 = n)
  2-mers: AC:2, CG:2, GT:2, TA:1, everything else 0  (7 = n - k + 1)

Any byte that is not A/C/G/T (upper or lower case) breaks the sequence into
independent runs: no k-mer ever spans it.
  Sequence: "ACNGT", K = 2  ->  2-mers AC:1, GT:1  (total 2, not 4)
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Union

import numpy as np

from .alphabet import MAX_K, SYMBOL_LUT, encode_kmer, reverse_complement
from .errors import ConfigurationError

MIN_K = 2

# windows scanned per numpy pass; bounds the temporary arrays for long contigs
_CHUNK = 1 << 20
# above this many slots a bincount(minlength=4^k) would dwarf the data itself
_BINCOUNT_LIMIT = 1 << 22

BufferLike = Union[bytes, bytearray, memoryview, str]


def _as_codes(seq: BufferLike) -> np.ndarray:
    """Map a sequence buffer to an int8 array of 2-bit codes (-1 = invalid)."""
    if isinstance(seq, str):
        seq = seq.encode("ascii", errors="replace")
    raw = np.frombuffer(seq, dtype=np.uint8)
    return SYMBOL_LUT[raw]


class SubTable:
    """Counts for a single k-mer length plus the rolling window state."""

    def __init__(self, k: int, dtype=np.uint32) -> None:
        self.k = k
        self.counts = np.zeros(1 << (2 * k), dtype=dtype)
        self.window = 0
        self.filled = 0

    def clear_kmer(self) -> None:
        self.window = 0
        self.filled = 0

    def clear(self) -> None:
        self.clear_kmer()
        self.counts[:] = 0

    @property
    def size(self) -> int:
        return self.counts.shape[0]

    def total(self) -> int:
        return int(self.counts.sum(dtype=np.uint64))

    def tally(self, values: np.ndarray) -> None:
        """Add one observation for each packed k-mer in values."""
        if values.size == 0:
            return
        if self.size <= _BINCOUNT_LIMIT:
            inc = np.bincount(values, minlength=self.size)
            self.counts += inc.astype(self.counts.dtype)
        else:
            uniq, cnt = np.unique(values, return_counts=True)
            self.counts[uniq] += cnt.astype(self.counts.dtype)

    def rc_collapse(self) -> None:
        """
        Merge every k-mer's count with its reverse complement's.

        The pair {v, rc(v)} is visited once, from its smaller member: the sum
        lands on min(v, rc(v)) and the other slot is zeroed. Palindromes
        (v == rc(v)) are left alone.
        """
        for start in range(0, self.size, _CHUNK):
            idx = np.arange(start, min(self.size, start + _CHUNK), dtype=np.uint64)
            rc = reverse_complement(idx, self.k)
            lo = idx < rc
            v = idx[lo].astype(np.intp)
            r = rc[lo].astype(np.intp)
            self.counts[v] += self.counts[r]
            self.counts[r] = 0

    def __repr__(self) -> str:
        return f"SubTable(k={self.k}, total={self.total()})"


class KmerCountTable:
    """
    Dense k-mer counts for every length in [min_k, max_k].

    Parameters
    ----------
    max_k : int
        Longest k-mer length counted, in [2, 16].
    num_lengths : int or None, default=None
        None keeps every length 1..max_k. An integer n keeps only the trailing
        window of lengths max_k-n+1..max_k (the "windowed" table).
    dtype : numpy unsigned integer type, default=np.uint32
        Width of the counters. It must be able to represent 4^max_k - 1.

    The table is meant to be built once and reused across files with clear().
    """

    def __init__(self, max_k: int, num_lengths: Optional[int] = None, dtype=np.uint32) -> None:
        max_k = int(max_k)
        if not MIN_K <= max_k <= MAX_K:
            raise ConfigurationError(f"k must be in [{MIN_K}, {MAX_K}], got {max_k}")
        dtype = np.dtype(dtype)
        if not np.issubdtype(dtype, np.unsignedinteger):
            raise ConfigurationError(f"count dtype must be an unsigned integer type, got {dtype}")
        if np.iinfo(dtype).max < (1 << (2 * max_k)) - 1:
            raise ConfigurationError(
                f"count dtype with width {dtype.itemsize * 8} is not long enough for k = {max_k}"
            )
        if num_lengths is not None:
            num_lengths = int(num_lengths)
            if not 1 <= num_lengths <= max_k:
                raise ConfigurationError(
                    f"number of lengths must be in [1, {max_k}], got {num_lengths}"
                )

        self._max_k = max_k
        self._num_lengths = num_lengths
        self._dtype = dtype
        self._tables: List[SubTable] = [SubTable(k, dtype) for k in self.lengths]

    # -- shape ---------------------------------------------------------------

    @property
    def max_k(self) -> int:
        return self._max_k

    @property
    def windowed(self) -> bool:
        return self._num_lengths is not None

    @property
    def num_lengths(self) -> int:
        return self._max_k if self._num_lengths is None else self._num_lengths

    @property
    def min_k(self) -> int:
        return self._max_k - self.num_lengths + 1

    @property
    def lengths(self) -> range:
        return range(self.min_k, self._max_k + 1)

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def tables(self) -> List[SubTable]:
        return self._tables

    def subtable(self, k: int) -> SubTable:
        if k not in self.lengths:
            raise KeyError(f"length {k} is not stored (lengths {self.min_k}..{self.max_k})")
        return self._tables[k - self.min_k]

    # -- counting ------------------------------------------------------------

    def clear_kmers(self) -> None:
        for sub in self._tables:
            sub.clear_kmer()

    def clear(self) -> None:
        """Zero every count and reset the window state."""
        for sub in self._tables:
            sub.clear()

    def process(self, seq: BufferLike) -> None:
        """
        Count every k-mer of every stored length in one sequence buffer.

        Window state from a previous call never carries over. An invalid symbol
        resets every window, so each run of m consecutive valid symbols gives
        exactly max(0, m - k + 1) observations to the length-k table.
        """
        self.clear_kmers()
        codes = _as_codes(seq)
        n = codes.shape[0]
        if n == 0:
            return
        # a window is owned by the chunk its first symbol falls in
        for start in range(0, n, _CHUNK):
            stop = min(n, start + _CHUNK + self._max_k - 1)
            self._scan(codes[start:stop], min(_CHUNK, n - start))
        self._set_tail_state(codes)

    def _scan(self, codes: np.ndarray, n_starts: int) -> None:
        invalid = codes < 0
        packed = np.where(invalid, 0, codes).astype(np.uint32)
        # bad[i] = number of invalid symbols in codes[:i]
        bad = np.concatenate(([0], np.cumsum(invalid, dtype=np.int64)))
        values = packed
        for k in range(1, self._max_k + 1):
            m = min(n_starts, codes.shape[0] - k + 1)
            if m <= 0:
                break
            # values[i] = packed k-mer starting at codes[i], for the m owned starts
            if k == 1:
                values = packed[:m]
            else:
                values = (values[:m] << np.uint32(2)) | packed[k - 1:k - 1 + m]
            if k < self.min_k:
                continue
            ok = (bad[k:k + m] - bad[:m]) == 0
            self._tables[k - self.min_k].tally(values[ok])

    def _set_tail_state(self, codes: np.ndarray) -> None:
        # leave each window as a byte-by-byte scan would: holding the trailing run
        bad_pos = np.flatnonzero(codes < 0)
        run = codes.shape[0] - (int(bad_pos[-1]) + 1 if bad_pos.size else 0)
        for sub in self._tables:
            if sub.k == 1:
                continue
            window = 0
            for code in codes[codes.shape[0] - min(run, sub.k):]:
                window = (window << 2) | int(code)
            sub.window = window
            sub.filled = min(run, sub.k - 1)

    def add(self, source: Iterable[BufferLike]) -> None:
        """Process every sequence buffer yielded by a sequence source."""
        for seq in source:
            self.process(seq)

    def add_file(self, path) -> None:
        """Count all records of a FASTA/FASTQ file (optionally gzipped)."""
        from .sequences import FastxSource

        self.add(FastxSource(path))

    def rc_collapse(self) -> None:
        """Collapse reverse complements in every stored length."""
        for sub in self._tables:
            sub.rc_collapse()

    # -- lookups -------------------------------------------------------------

    def count(self, kmer: Union[str, int], value: Optional[int] = None) -> int:
        """
        Count of a k-mer, given either as a string or as (length, packed value).

          table.count("ACG")
          table.count(3, 6)
        """
        if value is None:
            if not isinstance(kmer, str):
                raise TypeError("count() takes a k-mer string or (k, value)")
            k, value = len(kmer), encode_kmer(kmer)
        else:
            k = int(kmer)
        sub = self.subtable(k)
        if not 0 <= value < sub.size:
            raise IndexError(f"value {value} out of range for k={k}")
        return int(sub.counts[value])

    def totals(self) -> Dict[int, int]:
        """Total number of observations per stored length."""
        return {sub.k: sub.total() for sub in self._tables}

    # -- persistence ---------------------------------------------------------

    def write(self, path, emit_binary: bool = False, compress: bool = False) -> None:
        from .codec import write_table

        write_table(self, path, emit_binary=emit_binary, compress=compress)

    @classmethod
    def load(cls, path, dtype=np.uint32) -> "KmerCountTable":
        from .codec import read_table

        return read_table(path, dtype=dtype)

    # -- dunder --------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KmerCountTable):
            return NotImplemented
        return (
            self.max_k == other.max_k
            and self.lengths == other.lengths
            and all(np.array_equal(a.counts, b.counts) for a, b in zip(self._tables, other._tables))
        )

    __hash__ = None

    def __repr__(self) -> str:
        kind = f"windowed, num_lengths={self.num_lengths}" if self.windowed else "full"
        return f"KmerCountTable(max_k={self.max_k}, {kind}, dtype={self.dtype.name})"


def rc_collapse(table: KmerCountTable) -> KmerCountTable:
    """Collapse reverse complements in place and return the table."""
    table.rc_collapse()
    return table

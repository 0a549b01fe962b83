"""Nucleotide alphabet and 2-bit k-mer packing.

Each base is encoded on two bits (A=0, C=1, G=2, T=3) and a k-mer is packed
with its first base in the most significant bits, so that:

  "AC"  -> 0b0001 = 1
  "TA"  -> 0b1100 = 12
  "ACG" -> 0b000110 = 6

With this layout the lexicographic order of k-mer strings (A < C < G < T)
is exactly the numeric order of their packed values.
"""

from itertools import product
from typing import Dict, List

import numpy as np

ALPHABET = ("A", "C", "G", "T")
MAX_K = 16
INVALID = -1

# byte -> 2-bit code, INVALID for anything that is not A/C/G/T (any case)
SYMBOL_LUT = np.full(256, INVALID, dtype=np.int8)
for _code, _base in enumerate(ALPHABET):
    SYMBOL_LUT[ord(_base)] = _code
    SYMBOL_LUT[ord(_base.lower())] = _code
SYMBOL_LUT.setflags(write=False)


def symbol_code(byte: int) -> int:
    """2-bit code of a single byte, or INVALID."""
    return int(SYMBOL_LUT[byte & 0xFF])


def kmer_mask(k: int) -> int:
    """Mask selecting the low 2k bits (0 for the empty word)."""
    return (1 << (2 * k)) - 1


def all_kmers(k: int) -> List[str]:
    """Lexicographic A/C/G/T k-mers, i.e. in packed-index order."""
    return ["".join(p) for p in product(ALPHABET, repeat=k)]


def kmer_index(k: int) -> Dict[str, int]:
    """Map each k-mer to its packed index [0..4^k-1]."""
    return {kmer: i for i, kmer in enumerate(all_kmers(k))}


def encode_kmer(kmer: str) -> int:
    """Packed index of a k-mer string. Raises ValueError on illegal characters."""
    if not kmer:
        raise ValueError("Cannot encode an empty k-mer")
    if len(kmer) > MAX_K:
        raise ValueError(f"k-mer {kmer!r} is longer than {MAX_K}")
    value = 0
    for ch in kmer:
        code = SYMBOL_LUT[ord(ch)] if ord(ch) < 256 else INVALID
        if code == INVALID:
            raise ValueError(f"Illegal character {ch!r} in k-mer {kmer!r}")
        value = (value << 2) | int(code)
    return value


def decode_kmer(value: int, k: int) -> str:
    """Inverse of encode_kmer for a k-mer of length k."""
    if value < 0 or value > kmer_mask(k):
        raise ValueError(f"value {value} out of range for k={k}")
    bases = []
    for _ in range(k):
        bases.append(ALPHABET[value & 3])
        value >>= 2
    return "".join(reversed(bases))


def reverse_complement(value, k: int):
    """
    Reverse complement of a packed k-mer (or of a numpy array of them).

    The bit pairs of the 32-bit word are reversed, the word is complemented
    (A<->T and C<->G are bitwise complements on two bits) and shifted right so
    that only the 2k valid bits remain.
    """
    if not 1 <= k <= MAX_K:
        raise ValueError(f"k must be in [1, {MAX_K}], got {k}")
    if isinstance(value, np.ndarray):
        v = value.astype(np.uint64)
        full = np.uint64(0xFFFFFFFF)
        u = np.uint64
    else:
        v = int(value)
        full = 0xFFFFFFFF
        u = int
    v = ((v >> u(2)) & u(0x33333333)) | ((v & u(0x33333333)) << u(2))
    v = ((v >> u(4)) & u(0x0F0F0F0F)) | ((v & u(0x0F0F0F0F)) << u(4))
    v = ((v >> u(8)) & u(0x00FF00FF)) | ((v & u(0x00FF00FF)) << u(8))
    v = ((v >> u(16)) | (v << u(16))) & full
    return (full - v) >> u(32 - 2 * k)


def canonical(value, k: int):
    """Numerically smaller of a packed k-mer and its reverse complement."""
    rc = reverse_complement(value, k)
    if isinstance(rc, np.ndarray):
        return np.minimum(np.asarray(value, dtype=np.uint64), rc)
    return min(int(value), rc)

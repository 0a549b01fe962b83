"""Tests for the Markov-background z-score model.
"""

import math

import numpy as np
import pytest

from kfreq.alphabet import all_kmers, encode_kmer
from kfreq.errors import ConfigurationError
from kfreq.kmer import KmerCountTable
from kfreq.zscore import calc_zscores, zscore_from_counts


def _set(table, kmer, n):
    table.subtable(len(kmer)).counts[encode_kmer(kmer)] = n


def test_scalar_policy():
    """Test the three degenerate cases and the closed form."""
    assert zscore_from_counts(7, 3, 4, 0) == 0.0
    # left == mid
    assert zscore_from_counts(1, 5, 2, 5) == pytest.approx(1 / 25)
    # right == mid
    assert zscore_from_counts(1, 2, 5, 5) == pytest.approx(1 / 25)
    expected = 4 * 5 / 10
    std = math.sqrt(expected * 6 * 5 / 100)
    assert zscore_from_counts(3, 4, 5, 10) == pytest.approx((3 - expected) / std)


def test_special_cases_in_table():
    t = KmerCountTable(3)
    # ACG: bridge C, suffix CG (left), prefix AC (right)
    _set(t, "C", 5)
    _set(t, "CG", 5)
    _set(t, "AC", 2)
    _set(t, "ACG", 1)
    # TGA: bridge G, general case
    _set(t, "G", 10)
    _set(t, "GA", 4)
    _set(t, "TG", 5)
    _set(t, "TGA", 3)
    z = calc_zscores(t)
    assert z.shape == (64,)
    assert z[encode_kmer("ACG")] == pytest.approx(1 / 25)
    expected = 4 * 5 / 10
    assert z[encode_kmer("TGA")] == pytest.approx((3 - expected) / math.sqrt(expected * 6 * 5 / 100))
    # bridge A never observed
    assert z[encode_kmer("CAT")] == 0.0


def test_negative_variance_is_zero():
    t = KmerCountTable(3)
    _set(t, "C", 2)
    _set(t, "CG", 5)
    _set(t, "AC", 1)
    z = calc_zscores(t)
    assert z[encode_kmer("ACG")] == 0.0


def test_empty_table_gives_zero_profile():
    z = calc_zscores(KmerCountTable(4))
    assert z.shape == (256,)
    assert np.all(z == 0.0)


def test_matches_scalar_on_real_counts():
    rng = np.random.default_rng(11)
    seq = "".join(rng.choice(list("AACGTTTN"), size=5000))
    t = KmerCountTable(4)
    t.process(seq.encode())
    z = calc_zscores(t)
    for i, kmer in enumerate(all_kmers(4)):
        ref = zscore_from_counts(t.count(kmer), t.count(kmer[1:]), t.count(kmer[:-1]), t.count(kmer[1:-1]))
        assert z[i] == pytest.approx(ref)
    assert np.all(np.isfinite(z))


def test_k2_uses_total_as_bridge():
    t = KmerCountTable(2)
    t.process(b"ACGTACGT")
    z = calc_zscores(t)
    expected = 2 * 2 / 8
    std = math.sqrt(expected * 6 * 6 / 64)
    assert z[encode_kmer("AC")] == pytest.approx((2 - expected) / std)
    assert z[encode_kmer("AA")] == pytest.approx((0 - expected) / std)


def test_windowed_table_with_three_lengths():
    full = KmerCountTable(5)
    win = KmerCountTable(5, num_lengths=3)
    seq = b"ACGTTGCAAGGCTTAACGNNACGTAGGCTAGCTAGGATCGA"
    full.process(seq)
    win.process(seq)
    assert np.array_equal(calc_zscores(full), calc_zscores(win))


def test_missing_lengths_rejected():
    with pytest.raises(ConfigurationError):
        calc_zscores(KmerCountTable(5, num_lengths=2))


def test_profile_is_read_only():
    z = calc_zscores(KmerCountTable(3))
    with pytest.raises(ValueError):
        z[0] = 1.0

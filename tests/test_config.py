"""Tests for run configuration handling.
"""

import os

import pytest

from kfreq.config import DEFAULT_K, RunConfig
from kfreq.errors import ConfigurationError


def test_defaults():
    cfg = RunConfig(paths=["a.fa"]).validate()
    assert cfg.k == DEFAULT_K
    assert cfg.threads == 1
    assert not cfg.binary and not cfg.distances and not cfg.rc_collapse
    assert cfg.out is None


@pytest.mark.parametrize("k", [1, 17])
def test_k_bounds(k):
    with pytest.raises(ConfigurationError):
        RunConfig(paths=["a.fa"], k=k).validate()


def test_requires_paths_and_nonzero_threads():
    with pytest.raises(ConfigurationError):
        RunConfig().validate()
    with pytest.raises(ConfigurationError):
        RunConfig(paths=["a.fa"], threads=0).validate()


def test_negative_threads_means_all_cores():
    assert RunConfig(threads=-1).resolved_threads() == (os.cpu_count() or 1)
    assert RunConfig(threads=3).resolved_threads() == 3


def test_from_yaml_and_overrides(tmp_path):
    path = tmp_path / "run.yml"
    path.write_text("paths: genome.fa\nk: 6\ndistances: true\nthreads: -1\n")
    cfg = RunConfig.from_yaml(path)
    assert cfg.paths == ["genome.fa"]
    assert cfg.k == 6 and cfg.distances and cfg.threads == -1
    cfg2 = cfg.with_overrides(k=3, binary=None, paths=None)
    assert cfg2.k == 3
    assert cfg2.paths == ["genome.fa"]
    assert cfg.k == 6


@pytest.mark.parametrize("text", ["- a\n- b\n", "paths: [a.fa]\nbogus: 1\n", "k: five\n"])
def test_bad_yaml(tmp_path, text):
    path = tmp_path / "bad.yml"
    path.write_text(text)
    with pytest.raises(ConfigurationError):
        RunConfig.from_yaml(path)

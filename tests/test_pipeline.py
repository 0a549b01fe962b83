"""Tests for the worker-pool driver and the command line front end.
"""

import numpy as np
import pytest

from kfreq import cli
from kfreq.codec import read_table
from kfreq.config import RunConfig
from kfreq.distance import read_distance_table
from kfreq.kmer import KmerCountTable
from kfreq.pipeline import artifact_name, count_files, run
from kfreq.zscore import calc_zscores

GENOMES = {
    "g1.fa": {"c1": "ACGTTGCAAGGCTTAACGNNACGTAGGCTAGCTAGGATCGATTTACG" * 3},
    "g2.fa": {"c1": "TTTTACGATCGATCGGGCTAGCATCGACTAGCATCAGCATTACGACT" * 2, "c2": "ACGTACGT"},
    "g3.fa": {"c1": "GGGCCCATATATCGCGATATGCGCGATTATACCGCGCGATATA" * 4},
}


@pytest.fixture
def genome_paths(write_fasta):
    return [str(write_fasta(name, recs)) for name, recs in GENOMES.items()]


def _expected_table(path, k, rc=False):
    t = KmerCountTable(k)
    t.add_file(path)
    if rc:
        t.rc_collapse()
    return t


def test_artifact_name():
    assert artifact_name("/data/genomes/a.fa", 5, True) == "a.fa.k5.bin"
    assert artifact_name("a.fa.gz", 4, False) == "a.fa.gz.k4.txt"
    assert artifact_name("dir/a.fa", 4, False, compress=True) == "a.fa.k4.txt.gz"


def test_count_files_keeps_input_order(genome_paths):
    cfg = RunConfig(paths=genome_paths, k=3, distances=True)
    results = count_files(cfg)
    assert [r.index for r in results] == [0, 1, 2]
    assert [r.path for r in results] == genome_paths
    for r in results:
        assert np.array_equal(r.profile, calc_zscores(_expected_table(r.path, 3)))


def test_pool_matches_single_worker(genome_paths):
    single = count_files(RunConfig(paths=genome_paths, k=4, threads=1, rc_collapse=True))
    pooled = count_files(RunConfig(paths=genome_paths, k=4, threads=2, rc_collapse=True))
    assert [r.path for r in pooled] == genome_paths
    assert [r.payload for r in pooled] == [r.payload for r in single]


def test_run_writes_tables(genome_paths, tmp_path):
    out_dir = tmp_path / "tables"
    cfg = RunConfig(paths=genome_paths, k=3, binary=True, output_dir=str(out_dir), compress=True)
    summary = run(cfg)
    assert len(summary.outputs) == 3
    for path in genome_paths:
        written = out_dir / artifact_name(path, 3, True, True)
        assert read_table(written) == _expected_table(path, 3)


def test_run_distances_to_file(genome_paths, tmp_path):
    out = tmp_path / "res" / "dist.tsv"
    summary = run(RunConfig(paths=genome_paths, k=3, distances=True, out=str(out)))
    with open(out) as fh:
        names, D = read_distance_table(fh)
    assert names == genome_paths
    assert np.allclose(D, summary.matrix, atol=1e-8)
    assert np.allclose(np.diag(D), 1.0)
    assert np.allclose(D, D.T)


def test_missing_input_aborts(genome_paths, tmp_path):
    cfg = RunConfig(paths=genome_paths + [str(tmp_path / "missing.fa")], k=3, output_dir=str(tmp_path))
    with pytest.raises(OSError):
        run(cfg)


def test_cli_tables(genome_paths, tmp_path):
    rc = cli.main(["-k", "3", "-r", "-q", "--outdir", str(tmp_path / "out")] + genome_paths)
    assert rc == 0
    written = tmp_path / "out" / "g1.fa.k3.txt"
    assert read_table(written) == _expected_table(genome_paths[0], 3, rc=True)


def test_cli_distances_to_stdout(genome_paths, capsys):
    rc = cli.main(["-k", "3", "-d"] + genome_paths)
    assert rc == 0
    captured = capsys.readouterr()
    assert captured.out.startswith("#Path\t" + genome_paths[0])
    assert len(captured.out.splitlines()) == 4
    assert "[INFO]" in captured.err


def test_cli_rejects_bad_k(genome_paths, capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main(["-k", "17"] + genome_paths)
    assert exc.value.code == 2
    assert "usage" in capsys.readouterr().err


def test_cli_reports_missing_file(tmp_path, capsys):
    rc = cli.main(["-q", "--outdir", str(tmp_path), str(tmp_path / "missing.fa")])
    assert rc == 1
    err = capsys.readouterr().err
    assert "[ERROR]" in err and "missing.fa" in err


def test_cli_config_file(genome_paths, tmp_path):
    cfg = tmp_path / "run.yml"
    cfg.write_text(
        "paths:\n" + "".join(f"  - {p}\n" for p in genome_paths)
        + f"k: 5\ndistances: true\nout: {tmp_path / 'dist.tsv'}\n"
    )
    assert cli.main(["--config", str(cfg), "-k", "3", "-q"]) == 0
    with open(tmp_path / "dist.tsv") as fh:
        names, D = read_distance_table(fh)
    assert names == genome_paths
    assert D.shape == (3, 3)

"""Pytest configuration file to set up import paths and shared fixtures.
This ensures that the src/ directory is on sys.path when running tests,
so the kfreq modules can be imported without installing the package."""

import os
import sys

import pytest

# Ensure project's src/ is on sys.path for imports during tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)


@pytest.fixture
def write_fasta(tmp_path):
    """Write {name: sequence} records to a FASTA file and return its path."""
    def _write(filename, records, line_width=60):
        path = tmp_path / filename
        with open(path, "w") as fh:
            for name, seq in records.items():
                fh.write(f">{name}\n")
                for i in range(0, len(seq), line_width):
                    fh.write(seq[i:i + line_width] + "\n")
        return path
    return _write

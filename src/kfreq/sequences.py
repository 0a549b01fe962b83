"""
sequences.py

Sequence sources feeding KmerCountTable.add().

A source is anything iterable that yields one sequence buffer (bytes) per
record; a plain list of bytes objects is a valid source. FastxSource reads
FASTA or FASTQ files, multi-line records included, and transparently handles
gzip-compressed input (detected from the leading magic bytes, not from the
file extension).
"""

from __future__ import annotations

import gzip
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Protocol

from .errors import FormatError

GZIP_MAGIC = b"\x1f\x8b"


class SequenceSource(Protocol):
    def __iter__(self) -> Iterator[bytes]: ...


def open_input(path) -> BinaryIO:
    """Open a file for binary reading, decompressing it if it is gzipped."""
    path = Path(path)
    with path.open("rb") as fh:
        magic = fh.read(2)
    if magic == GZIP_MAGIC:
        return gzip.open(path, "rb")
    return path.open("rb")


@dataclass
class FastxRecord:
    name: str
    seq: bytes
    qual: Optional[bytes] = None

    def __len__(self) -> int:
        return len(self.seq)


def _is_header(line: bytes) -> bool:
    return line.startswith(b">") or line.startswith(b"@")


def _record_name(header: bytes) -> str:
    fields = header[1:].strip().split(maxsplit=1)
    return fields[0].decode("utf-8", errors="replace") if fields else ""


def parse_fastx(fh: BinaryIO, path: str = "<stream>") -> Iterator[FastxRecord]:
    """
    Parse FASTA/FASTQ records from a binary stream.

    Anything before the first header line is ignored. A sequence ends at the
    next line starting with '>', '@' or '+'; after a '+' line the quality
    string is read until it is as long as the sequence.
    """
    line = fh.readline()
    while line and not _is_header(line):
        line = fh.readline()

    while line:
        name = _record_name(line)
        chunks = []
        line = fh.readline()
        while line and not _is_header(line) and not line.startswith(b"+"):
            chunks.append(line.rstrip(b"\r\n"))
            line = fh.readline()
        seq = b"".join(chunks)

        if not line.startswith(b"+"):
            yield FastxRecord(name=name, seq=seq)
            continue

        qual_chunks = []
        qlen = 0
        while qlen < len(seq):
            line = fh.readline()
            if not line:
                raise FormatError(f"{path}: truncated quality string for record '{name}'")
            chunk = line.rstrip(b"\r\n")
            qual_chunks.append(chunk)
            qlen += len(chunk)
        if qlen != len(seq):
            raise FormatError(
                f"{path}: quality length {qlen} does not match sequence length {len(seq)} "
                f"for record '{name}'"
            )
        yield FastxRecord(name=name, seq=seq, qual=b"".join(qual_chunks))

        line = fh.readline()
        while line and not _is_header(line):
            line = fh.readline()


class FastxSource:
    """
    Iterate over the sequences of one FASTA/FASTQ file.

    Iterating yields the raw sequence bytes of each record; records() yields
    full FastxRecord objects. The file is reopened on every iteration.
    """

    def __init__(self, path) -> None:
        self.path = Path(path)

    def records(self) -> Iterator[FastxRecord]:
        with open_input(self.path) as fh:
            yield from parse_fastx(fh, str(self.path))

    def __iter__(self) -> Iterator[bytes]:
        for rec in self.records():
            yield rec.seq

    def __repr__(self) -> str:
        return f"FastxSource({str(self.path)!r})"

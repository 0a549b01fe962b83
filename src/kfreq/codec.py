"""
codec.py

Binary and text persistence for KmerCountTable.

Every file starts with a magic tag terminated by a newline:

  #kfbin\\n    full table (lengths 1..K), binary
  #kftxt\\n    full table, text
  #kflbin\\n   windowed table (trailing lengths only), binary
  #kfltxt\\n   windowed table, text

Binary layout (native byte order):

  magic
  max_k (uint32)                  or   max_k, num_lengths (uint16, uint16)
  counts[4^k] for each stored k in ascending order, raw, in the table dtype

Text layout:

  magic
  #Max k: <K>
  #nk: <n>                        windowed tables only
  <k>: [<c0>|<c1>|...|<c_{4^k-1}>]   one line per stored length

Files may be gzip-compressed; decoding detects this from the content.
"""

from __future__ import annotations

import gzip
import re
from pathlib import Path
from typing import List, Tuple

import numpy as np

from .alphabet import MAX_K
from .errors import ConfigurationError, FormatError
from .kmer import MIN_K, KmerCountTable
from .sequences import open_input

KF_BIN = b"#kfbin\n"
KF_TEXT = b"#kftxt\n"
KFL_BIN = b"#kflbin\n"
KFL_TEXT = b"#kfltxt\n"
MAGICS = (KF_BIN, KF_TEXT, KFL_BIN, KFL_TEXT)
_MAX_MAGIC = max(len(m) for m in MAGICS)

_MAXK_RE = re.compile(r"^#Max k:\s*(\d+)\s*$")
_NK_RE = re.compile(r"^#nk:\s*(\d+)\s*$")
_RECORD_RE = re.compile(r"^(\d+):\s*\[(.*)\]\s*$")


def _magic_for(table: KmerCountTable, emit_binary: bool) -> bytes:
    if table.windowed:
        return KFL_BIN if emit_binary else KFL_TEXT
    return KF_BIN if emit_binary else KF_TEXT


def encode_table(table: KmerCountTable, emit_binary: bool = False) -> bytes:
    """Serialize a table to bytes (binary or text layout)."""
    parts: List[bytes] = [_magic_for(table, emit_binary)]
    if emit_binary:
        if table.windowed:
            parts.append(np.array([table.max_k, table.num_lengths], dtype=np.uint16).tobytes())
        else:
            parts.append(np.array([table.max_k], dtype=np.uint32).tobytes())
        parts.extend(sub.counts.tobytes() for sub in table.tables)
    else:
        header = f"#Max k: {table.max_k}\n"
        if table.windowed:
            header += f"#nk: {table.num_lengths}\n"
        parts.append(header.encode("ascii"))
        for sub in table.tables:
            body = "|".join(map(str, sub.counts.tolist()))
            parts.append(f"{sub.k}: [{body}]\n".encode("ascii"))
    return b"".join(parts)


def write_payload(data: bytes, path, compress: bool = False) -> None:
    """Write an already encoded table to path, gzip-compressed if compress is set."""
    opener = gzip.open if compress else open
    with opener(Path(path), "wb") as fh:
        fh.write(data)


def write_table(table: KmerCountTable, path, emit_binary: bool = False, compress: bool = False) -> None:
    """Write a table to path, gzip-compressed if compress is set."""
    write_payload(encode_table(table, emit_binary=emit_binary), path, compress=compress)


def _split_magic(data: bytes) -> Tuple[bytes, bytes]:
    nl = data.find(b"\n", 0, _MAX_MAGIC)
    magic = data[:nl + 1] if nl >= 0 else data[:_MAX_MAGIC]
    if magic not in MAGICS:
        raise FormatError(f"Unexpected magic string: {magic!r}")
    return magic, data[len(magic):]


def _check_shape(max_k: int, num_lengths=None) -> None:
    if not MIN_K <= max_k <= MAX_K:
        raise FormatError(f"stored max k {max_k} is outside [{MIN_K}, {MAX_K}]")
    if num_lengths is not None and not 1 <= num_lengths <= max_k:
        raise FormatError(f"stored number of lengths {num_lengths} is outside [1, {max_k}]")


def _new_table(max_k: int, num_lengths, dtype) -> KmerCountTable:
    try:
        return KmerCountTable(max_k, num_lengths=num_lengths, dtype=dtype)
    except ConfigurationError as exc:
        raise FormatError(f"stored table cannot be decoded as {np.dtype(dtype)}: {exc}") from exc


def _decode_binary(body: bytes, windowed: bool, dtype) -> KmerCountTable:
    header_dtype, n_fields = (np.uint16, 2) if windowed else (np.uint32, 1)
    header_size = np.dtype(header_dtype).itemsize * n_fields
    if len(body) < header_size:
        raise FormatError("binary table is truncated inside its header")
    fields = np.frombuffer(body, dtype=header_dtype, count=n_fields)
    max_k = int(fields[0])
    num_lengths = int(fields[1]) if windowed else None
    _check_shape(max_k, num_lengths)

    # size the payload before allocating anything
    n_stored = max_k if num_lengths is None else num_lengths
    n_counts = sum(1 << (2 * k) for k in range(max_k - n_stored + 1, max_k + 1))
    itemsize = np.dtype(dtype).itemsize
    expected = header_size + n_counts * itemsize
    if len(body) != expected:
        raise FormatError(
            f"binary table holds {len(body) - header_size} bytes of counts, "
            f"expected {expected - header_size} for max k {max_k}"
        )

    table = _new_table(max_k, num_lengths, dtype)
    offset = header_size
    for sub in table.tables:
        sub.counts[:] = np.frombuffer(body, dtype=table.dtype, count=sub.size, offset=offset)
        offset += sub.size * itemsize
    return table


def _parse_counts(k: int, field: str, size: int, limit: int) -> List[int]:
    items = field.split("|")
    if len(items) != size:
        raise FormatError(f"record for k={k} has {len(items)} counts, expected {size}")
    try:
        values = [int(x) for x in items]
    except ValueError:
        raise FormatError(f"record for k={k} contains a non-integer count") from None
    if any(v < 0 or v > limit for v in values):
        raise FormatError(f"record for k={k} contains a count outside [0, {limit}]")
    return values


def _decode_text(body: bytes, windowed: bool, dtype) -> KmerCountTable:
    try:
        text = body.decode("ascii")
    except UnicodeDecodeError:
        raise FormatError("text table contains non-ASCII bytes") from None
    lines = text.split("\n")
    while lines and not lines[-1].strip():
        lines.pop()

    n_header = 2 if windowed else 1
    if len(lines) < n_header:
        raise FormatError("text table is missing its header lines")
    m = _MAXK_RE.match(lines[0])
    if m is None:
        raise FormatError(f"malformed max k line: {lines[0]!r}")
    max_k = int(m.group(1))
    num_lengths = None
    if windowed:
        m = _NK_RE.match(lines[1])
        if m is None:
            raise FormatError(f"malformed number-of-lengths line: {lines[1]!r}")
        num_lengths = int(m.group(1))
    _check_shape(max_k, num_lengths)

    records = lines[n_header:]
    n_stored = max_k if num_lengths is None else num_lengths
    if len(records) != n_stored:
        raise FormatError(f"text table has {len(records)} records, expected {n_stored}")
    table = _new_table(max_k, num_lengths, dtype)
    limit = int(np.iinfo(table.dtype).max)
    for sub, line in zip(table.tables, records):
        m = _RECORD_RE.match(line)
        if m is None:
            raise FormatError(f"malformed record line for k={sub.k}")
        if int(m.group(1)) != sub.k:
            raise FormatError(f"record for k={m.group(1)} found where k={sub.k} was expected")
        sub.counts[:] = _parse_counts(sub.k, m.group(2), sub.size, limit)
    return table


def decode_table(data: bytes, dtype=np.uint32) -> KmerCountTable:
    """
    Rebuild a table from bytes produced by encode_table().

    The layout is chosen from the magic tag. Any deviation from the layout
    raises FormatError; no partially filled table is ever returned.
    """
    magic, body = _split_magic(data)
    windowed = magic in (KFL_BIN, KFL_TEXT)
    if magic in (KF_BIN, KFL_BIN):
        return _decode_binary(body, windowed, dtype)
    return _decode_text(body, windowed, dtype)


def read_table(path, dtype=np.uint32) -> KmerCountTable:
    """Read a table written by write_table() (plain or gzipped)."""
    with open_input(path) as fh:
        data = fh.read()
    return decode_table(data, dtype=dtype)

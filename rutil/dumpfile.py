"""Binary transfer file (``.rdmp``).

Layout, all integers little-endian::

    header:  record count           u64
    record:  key length             u64
             key bytes
             remaining ttl in ms    i64   (-1 = no expiry)
             payload length         u64
             payload bytes                (raw DUMP output)

The header is written once with a provisional count and rewritten in place
after the last record, so the writer needs a seekable stream. Readers only
read forward and work on pipes.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO, Iterator

from rutil.errors import DumpFormatError
from rutil.resp import key_text, to_bytes

_U64 = struct.Struct("<Q")
_I64 = struct.Struct("<q")

# Length fields come from the file; never ask read() for more than this at once.
READ_CHUNK = 1 << 20

HEADER_SIZE = _U64.size
NO_EXPIRY = -1


@dataclass(frozen=True)
class KeyDump:
    key: str
    ttl_ms: int
    payload: bytes


@dataclass(frozen=True)
class DumpHeader:
    record_count: int


def write_header(stream: BinaryIO, count: int) -> int:
    stream.write(_U64.pack(count))
    return HEADER_SIZE


def write_record(stream: BinaryIO, kd: KeyDump) -> int:
    key = to_bytes(kd.key)
    buf = b"".join(
        [
            _U64.pack(len(key)),
            key,
            _I64.pack(kd.ttl_ms),
            _U64.pack(len(kd.payload)),
            kd.payload,
        ]
    )
    stream.write(buf)
    return len(buf)


def _read(stream: BinaryIO, n: int, what: str) -> bytes:
    buf = bytearray()
    while len(buf) < n:
        chunk = stream.read(min(n - len(buf), READ_CHUNK))
        if not chunk:
            raise DumpFormatError(f"truncated dump: wanted {n} bytes of {what}, got {len(buf)}")
        buf.extend(chunk)
    return bytes(buf)


def read_header(stream: BinaryIO) -> DumpHeader:
    (count,) = _U64.unpack(_read(stream, HEADER_SIZE, "header"))
    return DumpHeader(count)


def read_record(stream: BinaryIO) -> KeyDump:
    (key_len,) = _U64.unpack(_read(stream, _U64.size, "key length"))
    key = _read(stream, key_len, "key")
    (ttl,) = _I64.unpack(_read(stream, _I64.size, "ttl"))
    (payload_len,) = _U64.unpack(_read(stream, _U64.size, "payload length"))
    payload = _read(stream, payload_len, "payload")
    return KeyDump(key_text(key), ttl, payload)


def iter_records(stream: BinaryIO) -> Iterator[KeyDump]:
    header = read_header(stream)
    for _ in range(header.record_count):
        yield read_record(stream)

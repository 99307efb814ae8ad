from __future__ import annotations

import io
from dataclasses import dataclass
from typing import BinaryIO, Iterable

import redis

from rutil.dumpfile import KeyDump, write_header, write_record
from rutil.errors import CommandError, TransferError
from rutil.resp import to_bytes

# PTTL replies: -2 missing key, -1 key without expiry.
PTTL_MISSING = -2


@dataclass
class DumpStats:
    records: int = 0
    expired: int = 0
    bytes: int = 0


def capture_key(client, key: str) -> KeyDump | None:
    """DUMP and PTTL one key; ``None`` if it vanished after enumeration."""
    raw = to_bytes(key)
    try:
        payload = client.dump(raw)
    except redis.exceptions.RedisError as e:
        raise CommandError(str(e), op="DUMP", key=key) from e
    if not payload:
        return None
    try:
        ttl = client.pttl(raw)
    except redis.exceptions.RedisError as e:
        raise CommandError(str(e), op="PTTL", key=key) from e
    if ttl == PTTL_MISSING:
        return None
    return KeyDump(key, int(ttl), bytes(payload))


def _require_seekable(stream: BinaryIO) -> None:
    try:
        ok = stream.seekable()
    except (AttributeError, ValueError):
        ok = False
    if not ok:
        raise TransferError("dump target must be seekable (header is rewritten after capture)")


def dump_keys(client, keys: Iterable[str], stream: BinaryIO) -> DumpStats:
    """Capture ``keys`` into ``stream`` and fix up the header count.

    The final header holds the number of records written, which is lower
    than ``len(keys)`` by the number of keys that expired in between.
    """
    _require_seekable(stream)
    keys = list(keys)
    stats = DumpStats()
    start = stream.tell()
    stats.bytes = write_header(stream, len(keys))
    try:
        for k in keys:
            kd = capture_key(client, k)
            if kd is None:
                stats.expired += 1
                continue
            stats.bytes += write_record(stream, kd)
            stats.records += 1
    finally:
        # Also on failure, so a partial file still reads back cleanly.
        stream.seek(start, io.SEEK_SET)
        write_header(stream, stats.records)
        stream.seek(0, io.SEEK_END)
    return stats

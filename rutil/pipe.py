"""RESTORE frames for ``redis-cli --pipe``.

Each captured key becomes one request array::

    *4\r\n$7\r\nRESTORE\r\n$<n>\r\n<key>\r\n$<n>\r\n<ttl>\r\n$<n>\r\n<payload>\r\n
"""
from __future__ import annotations

from typing import BinaryIO, Iterable

from rutil.capture import DumpStats, capture_key
from rutil.dumpfile import KeyDump
from rutil.resp import encode_command, to_bytes


def restore_ttl(ttl_ms: int) -> int:
    # RESTORE spells "no expiry" as 0 and rejects negative values.
    return ttl_ms if ttl_ms > 0 else 0


def encode_restore(kd: KeyDump) -> bytes:
    return encode_command(["RESTORE", to_bytes(kd.key), restore_ttl(kd.ttl_ms), kd.payload])


def pipe_keys(client, keys: Iterable[str], out: BinaryIO) -> DumpStats:
    stats = DumpStats()
    for k in keys:
        kd = capture_key(client, k)
        if kd is None:
            stats.expired += 1
            continue
        frame = encode_restore(kd)
        out.write(frame)
        stats.bytes += len(frame)
        stats.records += 1
    out.flush()
    return stats

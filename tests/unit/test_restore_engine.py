#!/usr/bin/env python3
import io
import struct

from _fake_redis import FakeRedis

from rutil.dumpfile import KeyDump, write_header, write_record
from rutil.errors import CommandError, ConfigError, DumpFormatError
from rutil.restore import RestoreEngine, RestoreOptions

RECORDS = [
    KeyDump("a", -1, b"\x00a"),
    KeyDump("b", 60000, b"\x00b"),
    KeyDump("c", -1, b"\x00c"),
]


def _dump(records=RECORDS) -> io.BytesIO:
    buf = io.BytesIO()
    write_header(buf, len(records))
    for r in records:
        write_record(buf, r)
    buf.seek(0)
    return buf


def test_restores_every_record():
    r = FakeRedis()
    out = RestoreEngine(r, RestoreOptions()).run(_dump())
    assert out.ok and (out.total, out.processed, out.restored, out.conflicts) == (3, 3, 3, 0)
    assert r.data[b"a"] == {"payload": b"\x00a", "ttl": -1, "kind": "string", "value": None}
    assert r.data[b"b"]["ttl"] == 60000
    assert ("RESTORE", b"a", 0, b"\x00a") in r.calls


def test_conflict_is_fatal_without_ignore():
    r = FakeRedis()
    r.put("b", b"old")
    out = RestoreEngine(r, RestoreOptions()).run(_dump())
    assert isinstance(out.error, CommandError)
    assert out.error.op == "RESTORE" and out.error.key == "b"
    assert "BUSYKEY" in str(out.error)
    assert out.restored == 1
    assert b"c" not in r.data
    assert r.data[b"b"]["payload"] == b"old"


def test_conflict_ignored_is_not_counted():
    r = FakeRedis()
    r.put("b", b"old")
    out = RestoreEngine(r, RestoreOptions(ignore_conflict=True)).run(_dump())
    assert out.ok
    assert (out.restored, out.conflicts) == (2, 1)
    assert r.data[b"b"]["payload"] == b"old"


def test_other_errors_fatal_even_when_ignoring_conflicts():
    r = FakeRedis()
    stream = _dump([KeyDump("x", -1, b"corrupt"), KeyDump("y", -1, b"\x00y")])
    out = RestoreEngine(r, RestoreOptions(ignore_conflict=True)).run(stream)
    assert isinstance(out.error, CommandError) and out.error.key == "x"
    assert "checksum" in str(out.error)
    assert (out.processed, out.restored) == (1, 0)


def test_delete_before_each_replaces_existing():
    r = FakeRedis()
    r.put("a", b"old")
    out = RestoreEngine(r, RestoreOptions(delete_before_each=True)).run(_dump())
    assert out.ok and out.restored == 3
    assert r.data[b"a"]["payload"] == b"\x00a"
    names = [c[0] for c in r.calls]
    assert names == ["DEL", "RESTORE"] * 3


def test_flush_before_all():
    r = FakeRedis()
    r.put("stale", b"s")
    out = RestoreEngine(r, RestoreOptions(flush_before_all=True)).run(_dump())
    assert out.ok and out.restored == 3
    assert r.calls[0] == ("FLUSHDB",)
    assert b"stale" not in r.data


def test_flush_failure_is_fatal():
    r = FakeRedis()
    r.fail["FLUSHDB"] = "NOPERM"
    out = RestoreEngine(r, RestoreOptions(flush_before_all=True)).run(_dump())
    assert isinstance(out.error, CommandError) and out.error.op == "FLUSHDB"
    assert out.processed == 0
    assert r.mutating_calls() == [("FLUSHDB",)]


def test_dry_run_is_neutral_and_consumes_stream():
    r = FakeRedis()
    stream = _dump()
    stream.seek(0, io.SEEK_END)
    stream.write(b"trailing")
    stream.seek(0)
    opts = RestoreOptions(dry_run=True, flush_before_all=True, ignore_conflict=True)
    out = RestoreEngine(r, opts).run(stream)
    assert out.ok and (out.processed, out.restored) == (3, 0)
    assert r.calls == []
    assert stream.read() == b"trailing"


def test_flush_and_delete_rejected_up_front():
    r = FakeRedis()
    try:
        RestoreEngine(r, RestoreOptions(flush_before_all=True, delete_before_each=True))
    except ConfigError:
        pass
    else:
        raise AssertionError("flush + delete accepted")
    assert r.calls == []


def test_truncated_dump_stops_restore():
    r = FakeRedis()
    whole = _dump().getvalue()
    out = RestoreEngine(r, RestoreOptions()).run(io.BytesIO(whole[:-1]))
    assert isinstance(out.error, DumpFormatError)
    assert (out.processed, out.restored) == (2, 2)


def test_corrupt_payload_length_reported_in_outcome():
    r = FakeRedis()
    good = _dump(RECORDS[:1]).getvalue()[8:]
    stream = io.BytesIO(struct.pack("<Q", 2) + good + struct.pack("<Q", 1) + b"k" + struct.pack("<qQ", -1, 2**63))
    out = RestoreEngine(r, RestoreOptions()).run(stream)
    assert isinstance(out.error, DumpFormatError)
    assert (out.total, out.processed, out.restored) == (2, 1, 1)


def main() -> int:
    test_restores_every_record()
    test_conflict_is_fatal_without_ignore()
    test_conflict_ignored_is_not_counted()
    test_other_errors_fatal_even_when_ignoring_conflicts()
    test_delete_before_each_replaces_existing()
    test_flush_before_all()
    test_flush_failure_is_fatal()
    test_dry_run_is_neutral_and_consumes_stream()
    test_flush_and_delete_rejected_up_front()
    test_truncated_dump_stops_restore()
    test_corrupt_payload_length_reported_in_outcome()
    print("restore engine tests passed")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

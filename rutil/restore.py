"""Replay a dump file into a live instance.

One header read, then ``record_count`` iterations, strictly in order: a
record's DEL (if any) and RESTORE complete before the next record is read.
A fatal error stops the loop; whatever was restored before it stays.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO

import redis

from rutil.dumpfile import KeyDump, read_header, read_record
from rutil.errors import CommandError, ConfigError, TransferError
from rutil.pipe import restore_ttl
from rutil.resp import to_bytes


@dataclass(frozen=True)
class RestoreOptions:
    dry_run: bool = False
    flush_before_all: bool = False
    delete_before_each: bool = False
    ignore_conflict: bool = False

    def validate(self) -> None:
        if self.flush_before_all and self.delete_before_each:
            raise ConfigError("flush or delete? --flushdb and --delete are mutually exclusive")


@dataclass
class RestoreOutcome:
    total: int = 0
    processed: int = 0
    restored: int = 0
    conflicts: int = 0
    error: TransferError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def is_conflict(err: Exception) -> bool:
    return isinstance(err, redis.exceptions.ResponseError) and str(err).startswith("BUSYKEY")


class RestoreEngine:
    def __init__(self, client, options: RestoreOptions):
        options.validate()
        self.client = client
        self.options = options

    def run(self, stream: BinaryIO) -> RestoreOutcome:
        outcome = RestoreOutcome()
        try:
            self._run(stream, outcome)
        except TransferError as e:
            outcome.error = e
        except OSError as e:
            outcome.error = TransferError(f"read failed: {e}")
        return outcome

    def _run(self, stream: BinaryIO, outcome: RestoreOutcome) -> None:
        header = read_header(stream)
        outcome.total = header.record_count
        if self.options.flush_before_all and not self.options.dry_run:
            try:
                self.client.flushdb()
            except redis.exceptions.RedisError as e:
                raise CommandError(str(e), op="FLUSHDB") from e

        for _ in range(header.record_count):
            kd = read_record(stream)
            outcome.processed += 1
            if self.options.dry_run:
                continue
            if self.restore_key(kd):
                outcome.restored += 1
            else:
                outcome.conflicts += 1

    def restore_key(self, kd: KeyDump) -> bool:
        """Restore one record. False means a conflict was ignored."""
        key = to_bytes(kd.key)
        if self.options.delete_before_each:
            try:
                # 0 deleted is fine: the key simply was not there.
                self.client.delete(key)
            except redis.exceptions.RedisError as e:
                raise CommandError(str(e), op="DEL", key=kd.key) from e
        try:
            self.client.restore(key, restore_ttl(kd.ttl_ms), kd.payload)
        except redis.exceptions.RedisError as e:
            if is_conflict(e) and self.options.ignore_conflict:
                return False
            raise CommandError(str(e), op="RESTORE", key=kd.key) from e
        return True

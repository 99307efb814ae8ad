from __future__ import annotations

import json
import sys
from typing import Iterable, TextIO

import redis

from rutil.errors import CommandError, ConfigError
from rutil.resp import key_text, to_bytes


def validate_query(pattern: str, delete: bool, show: bool, as_json: bool, fields: list[str]) -> None:
    if not pattern:
        raise ConfigError("missing --keys pattern")
    if delete and show:
        raise ConfigError("can't use --delete and --print together")
    if (delete or not show) and (as_json or fields):
        raise ConfigError("use --json and --field with --print")


def _text(v) -> str:
    if isinstance(v, bytes):
        return v.decode("utf-8", errors="replace")
    return str(v)


def _pretty(s: str, as_json: bool) -> str:
    if not as_json:
        return s
    try:
        return json.dumps(json.loads(s), indent=2, ensure_ascii=False)
    except ValueError:
        return s


def print_key(client, key: str, fields: list[str] | None = None, as_json: bool = False, out: TextIO | None = None) -> None:
    out = out or sys.stdout
    raw = to_bytes(key)
    try:
        t = _text(client.type(raw))
        print(f"{key} ({t})", file=out)
        if t == "string":
            print(_pretty(_text(client.get(raw)), as_json), file=out)
        elif t == "hash":
            if fields:
                vals = client.hmget(raw, [to_bytes(f) for f in fields])
                pairs = list(zip(fields, vals))
            else:
                pairs = [(key_text(f), v) for f, v in sorted(client.hgetall(raw).items())]
            for f, v in pairs:
                val = "(nil)" if v is None else _pretty(_text(v), as_json)
                print(f"  {f}: {val}", file=out)
        elif t == "list":
            for i, v in enumerate(client.lrange(raw, 0, -1)):
                print(f"  {i}: {_pretty(_text(v), as_json)}", file=out)
        elif t == "set":
            for v in sorted(client.smembers(raw)):
                print(f"  {_pretty(_text(v), as_json)}", file=out)
        elif t == "zset":
            for member, score in client.zrange(raw, 0, -1, withscores=True):
                print(f"  {score:g}: {_pretty(_text(member), as_json)}", file=out)
        elif t == "none":
            print("  (expired)", file=out)
        else:
            print(f"  (unsupported type {t})", file=out)
    except redis.exceptions.RedisError as e:
        raise CommandError(str(e), op="PRINT", key=key) from e


def query_keys(client, keys: Iterable[str], delete: bool = False, out: TextIO | None = None) -> int:
    """List keys as ``N: key``, deleting each one if asked. Returns the count."""
    out = out or sys.stdout
    n = 0
    for n, k in enumerate(keys, 1):
        print(f"{n}: {k}", file=out)
        if delete:
            try:
                client.delete(to_bytes(k))
            except redis.exceptions.RedisError as e:
                raise CommandError(str(e), op="DEL", key=k) from e
    return n

from __future__ import annotations

import re
from typing import Pattern

import redis

from rutil.errors import CommandError, ConfigError
from rutil.resp import key_text, to_bytes


def compile_filter(regex: str) -> Pattern[str] | None:
    if not regex:
        return None
    try:
        return re.compile(regex)
    except re.error as e:
        raise ConfigError(f"invalid --match regexp {regex!r}: {e}") from e


def keep(name: str, rx: Pattern[str] | None, invert: bool) -> bool:
    if rx is None:
        return True
    return (rx.search(name) is not None) != invert


def select(client, pattern: str, regex: str = "", invert: bool = False) -> list[str]:
    """Return key names matching the glob ``pattern``, filtered by ``regex``.

    Order is whatever KEYS returned. The regexp is compiled first so a bad
    one fails before the store is touched.
    """
    rx = compile_filter(regex)
    try:
        raw = client.keys(to_bytes(pattern)) or []
    except redis.exceptions.RedisError as e:
        raise CommandError(str(e), op="KEYS", key=pattern) from e
    names = [key_text(k) for k in raw]
    return [k for k in names if keep(k, rx, invert)]

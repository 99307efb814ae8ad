from __future__ import annotations

from typing import BinaryIO, Iterator, Union

Arg = Union[str, bytes, int]


def to_bytes(a: Arg) -> bytes:
    if isinstance(a, bytes):
        return a
    return str(a).encode("utf-8", errors="surrogateescape")


def key_text(raw: str | bytes) -> str:
    """Decode a key name so that ``to_bytes(key_text(raw)) == raw``."""
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="surrogateescape")
    return raw


def encode_command(args: list[Arg]) -> bytes:
    out = [f"*{len(args)}\r\n".encode()]
    for a in args:
        b = to_bytes(a)
        out.append(f"${len(b)}\r\n".encode())
        out.append(b + b"\r\n")
    return b"".join(out)


def _read_exact(stream: BinaryIO, n: int) -> bytes:
    buf = bytearray()
    while len(buf) < n:
        chunk = stream.read(min(n - len(buf), 1 << 20))
        if not chunk:
            raise EOFError(f"stream ended after {len(buf)} of {n} bytes")
        buf.extend(chunk)
    return bytes(buf)


def _read_line(stream: BinaryIO) -> bytes:
    buf = bytearray()
    while True:
        buf.extend(_read_exact(stream, 1))
        if len(buf) >= 2 and buf[-2:] == b"\r\n":
            return bytes(buf[:-2])


def read_resp(stream: BinaryIO):
    """Read one bulk string or array. Bulk strings stay ``bytes`` so DUMP payloads survive."""
    prefix = _read_exact(stream, 1)
    if prefix == b"$":
        n = int(_read_line(stream).decode())
        if n == -1:
            return None
        data = _read_exact(stream, n)
        if _read_exact(stream, 2) != b"\r\n":
            raise ValueError("bulk string not terminated by CRLF")
        return data
    if prefix == b"*":
        n = int(_read_line(stream).decode())
        if n == -1:
            return None
        return [read_resp(stream) for _ in range(n)]
    raise ValueError(f"Unsupported RESP prefix: {prefix!r}")


def iter_commands(stream: BinaryIO) -> Iterator[list[bytes]]:
    """Yield request arrays from a ``redis-cli --pipe`` style stream until EOF."""
    while True:
        head = stream.read(1)
        if not head:
            return
        if head != b"*":
            raise ValueError(f"expected request array, got {head!r}")
        n = int(_read_line(stream).decode())
        args = []
        for _ in range(n):
            v = read_resp(stream)
            if not isinstance(v, bytes):
                raise ValueError(f"request argument is not a bulk string: {v!r}")
            args.append(v)
        yield args

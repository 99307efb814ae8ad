from __future__ import annotations


class RutilError(Exception):
    """Base class for every error raised by rutil."""


class ConfigError(RutilError):
    """Conflicting or invalid options; raised before any I/O happens."""


class TransferError(RutilError):
    def __init__(self, message: str, op: str | None = None, key: str | None = None):
        self.op = op
        self.key = key
        super().__init__(message)

    def __str__(self) -> str:
        msg = super().__str__()
        if self.op and self.key is not None:
            return f"{self.op} {self.key!r}: {msg}"
        if self.op:
            return f"{self.op}: {msg}"
        return msg


class DumpFormatError(TransferError):
    """The dump stream is truncated or corrupt."""


class CommandError(TransferError):
    """The store rejected a command."""

"""rutil -- a collection of command line Redis utilities.

Dump keys (native DUMP payload plus remaining TTL) into a portable file,
restore that file into another instance, or stream the same data as
RESTORE commands for ``redis-cli --pipe``.
"""
from __future__ import annotations

__version__ = "0.2.0"

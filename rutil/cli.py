"""rutil -- command line Redis utilities.

Subcommands
    dump      Dump keys (DUMP payload + PTTL) to a ``.rdmp`` file.
    pipe      Write the same keys to stdout as RESTORE commands, for
              ``rutil pipe | redis-cli --pipe``.
    restore   Replay a ``.rdmp`` file (or stdin) into an instance.
    query     List, print or delete keys matching a pattern.

How to run

    rutil -s 10.0.0.5 -p 6379 dump -k 'user:*' users.rdmp
    rutil -p 6380 restore --ignore users.rdmp
    rutil pipe -k 'session:*' | redis-cli -p 6380 --pipe

Configuration (env vars)
    REDISCLI_AUTH   Password used when --auth is not given.

Exit codes
    0   Success.
    1   Store, file or configuration error (reported on stderr as FAIL: ...).
    2   Bad command line usage.
"""
from __future__ import annotations

import argparse
import sys
import time

import redis

from rutil import __version__
from rutil.capture import dump_keys
from rutil.client import ClientConfig, connect
from rutil.errors import ConfigError, RutilError
from rutil.keys import compile_filter, select
from rutil.pipe import pipe_keys
from rutil.query import print_key, query_keys, validate_query
from rutil.restore import RestoreEngine, RestoreOptions


def auto_file_name(now: float | None = None) -> str:
    return time.strftime("redis%Y%m%d%H%M%S.rdmp", time.localtime(now))


def _client_config(args: argparse.Namespace) -> ClientConfig:
    return ClientConfig(host=args.host, port=args.port, password=args.auth, cluster=args.cluster, db=args.db)


def _add_key_flags(p: argparse.ArgumentParser, pattern_default: str | None = "*") -> None:
    p.add_argument("-k", "--keys", default=pattern_default, help="keys pattern (passed to redis 'keys' command)")
    p.add_argument("-m", "--match", default="", help="regexp filter for key names")
    p.add_argument("-v", "--invert", action="store_true", help="invert match regexp")


def cmd_dump(args: argparse.Namespace) -> int:
    if not args.file and not args.auto:
        raise ConfigError("provide a file name or --auto")
    if args.file and args.auto:
        raise ConfigError("you can't provide a name and use --auto at the same time")
    compile_filter(args.match)
    file_name = args.file or auto_file_name()

    with connect(_client_config(args)) as client:
        keys = select(client, args.keys, args.match, args.invert)
        with open(file_name, "wb") as f:
            stats = dump_keys(client, keys, f)
    print(f"file: {file_name}, keys: {stats.records}, expired: {stats.expired}, bytes: {stats.bytes}")
    return 0


def cmd_pipe(args: argparse.Namespace) -> int:
    if sys.stdout.isatty():
        raise ConfigError("stdout is a terminal; redirect it to a file or to redis-cli --pipe")
    compile_filter(args.match)
    with connect(_client_config(args)) as client:
        keys = select(client, args.keys, args.match, args.invert)
        stats = pipe_keys(client, keys, sys.stdout.buffer)
    print(f"keys: {stats.records}, expired: {stats.expired}, bytes: {stats.bytes}", file=sys.stderr)
    return 0


def cmd_restore(args: argparse.Namespace) -> int:
    options = RestoreOptions(
        dry_run=args.dry_run,
        flush_before_all=args.flushdb,
        delete_before_each=args.delete,
        ignore_conflict=args.ignore,
    )
    options.validate()
    if not args.file and not args.stdin:
        raise ConfigError("no file name provided")
    if args.file and args.stdin:
        raise ConfigError("can't use --stdin with filename")

    with connect(_client_config(args)) as client:
        engine = RestoreEngine(client, options)
        if args.stdin:
            file_name = "STDIN"
            outcome = engine.run(sys.stdin.buffer)
        else:
            file_name = args.file
            with open(file_name, "rb") as f:
                outcome = engine.run(f)

    summary = f"file: {file_name}, keys: {outcome.restored}"
    if outcome.conflicts:
        summary += f", skipped (BUSYKEY): {outcome.conflicts}"
    if args.dry_run:
        summary += f", dry-run records: {outcome.processed}"
    print(summary)
    if outcome.error is not None:
        print(f"FAIL: record {outcome.processed} of {outcome.total}: {outcome.error}", file=sys.stderr)
        return 1
    return 0


def cmd_query(args: argparse.Namespace) -> int:
    validate_query(args.keys, args.delete, args.show, args.json, args.field)
    compile_filter(args.match)
    with connect(_client_config(args)) as client:
        keys = select(client, args.keys, args.match, args.invert)
        if args.show:
            for k in keys:
                print_key(client, k, args.field, args.json)
        else:
            query_keys(client, keys, delete=args.delete)
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="rutil", description="a collection of command line redis utils")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    ap.add_argument("-s", "--host", default="127.0.0.1", help="redis host")
    ap.add_argument("-p", "--port", type=int, default=6379, help="redis port")
    ap.add_argument("-a", "--auth", default=None, help="authentication password (default: $REDISCLI_AUTH)")
    ap.add_argument("-c", "--cluster", action="store_true", help="redis cluster connection")
    ap.add_argument("-n", "--db", type=int, default=0, help="database number")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("dump", help="dump redis database to a file")
    _add_key_flags(p)
    p.add_argument("-a", "--auto", action="store_true", help="make up a file name for the dump - redisYYYYMMDDHHMMSS.rdmp")
    p.add_argument("file", nargs="?")
    p.set_defaults(func=cmd_dump)

    p = sub.add_parser("pipe", help="dump a redis database to stdout in a format compatible with | redis-cli --pipe")
    _add_key_flags(p)
    p.set_defaults(func=cmd_pipe)

    p = sub.add_parser("restore", help="restore redis database from a file")
    p.add_argument("-r", "--dry-run", action="store_true", help="pretend to restore")
    p.add_argument("-f", "--flushdb", action="store_true", help="flush the database before restoring")
    p.add_argument("-d", "--delete", action="store_true", help="delete key before restoring")
    p.add_argument("-g", "--ignore", action="store_true", help="ignore BUSYKEY restore errors")
    p.add_argument("-i", "--stdin", action="store_true", help="read dump from STDIN")
    p.add_argument("file", nargs="?")
    p.set_defaults(func=cmd_restore)

    p = sub.add_parser("query", aliases=["q"], help="query keys matching the pattern provided by --keys")
    _add_key_flags(p, pattern_default="")
    p.add_argument("--delete", action="store_true", help="delete keys")
    p.add_argument("-p", "--print", dest="show", action="store_true", help="print key values")
    p.add_argument("-f", "--field", action="append", default=[], help="hash fields to print (default all)")
    p.add_argument("-j", "--json", action="store_true", help="attempt to parse and pretty print strings as json")
    p.set_defaults(func=cmd_query)
    return ap


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except RutilError as e:
        print(f"FAIL: {e}", file=sys.stderr)
        return 1
    except redis.exceptions.RedisError as e:
        print(f"FAIL: redis {args.host}:{args.port}: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"FAIL: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

#!/usr/bin/env python3
"""
kt-client Command Line Interface

Runs a single command against a TSV-RPC server, or starts an interactive
prompt when no command is given.

Usage:
    kt-client GET mykey                          # One-shot command
    kt-client --server kt1:1978 --server kt2:1978  # Interactive, with failover
    kt-client --db users.kch --colenc U KEYS user:
    kt-client --debug                            # Enable debug logging

Environment Variables:
    KT_HOST, KT_PORT        - Default server
    KT_COLENC               - Request column encoding (B or U)
    KT_SERIALIZER           - Value serializer (default, json, msgpack)
    KT_DEBUG                - Enable debug mode (true/false)
"""

import argparse
import logging
import shlex
import sys
from typing import List, Optional

from .client import KyotoClient
from .config.settings import settings
from .errors import KyotoError

# Enable command history with arrow keys (works on Unix systems)
try:
    import readline  # noqa: F401
except ImportError:
    pass  # readline not available on Windows by default

HELP = """
kt-client Commands:
-------------------
  GET <key>                  Retrieve the value for a key
  SET <key> <value> [xt]     Store a value (optional expiration in seconds)
  ADD <key> <value> [xt]     Store only if the key does not exist
  REPLACE <key> <value> [xt] Store only if the key exists
  APPEND <key> <value> [xt]  Append to the existing value
  REMOVE <key> [key...]      Remove keys
  INCR <key> [num]           Increment an integer value
  DECR <key> [num]           Decrement an integer value
  CAS <key> <old> <new>      Compare and swap
  KEYS [prefix]              List keys (optionally by prefix)
  MATCH <regex>              List keys matching a regular expression
  REPORT                     Show the server report
  STATUS                     Show the database status
  CLEAR                      Remove every record
  VACUUM                     Scan the database and eliminate garbage

Client Commands:
----------------
  help                       Show this help message
  servers                    Show the candidate servers
  exit                       Exit the client
"""


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="kt-client",
        description="kt-client: TSV-RPC key-value client",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--server",
        action="append",
        dest="servers",
        metavar="HOST:PORT",
        help=f"Server address, repeat for failover (default: {settings.HOST}:{settings.PORT})",
    )

    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Logical database name",
    )

    parser.add_argument(
        "--colenc",
        type=str,
        default=settings.COLENC,
        help="Request column encoding (B or U)",
    )

    parser.add_argument(
        "--serializer",
        type=str,
        default=settings.SERIALIZER,
        help="Value serializer (default, json, msgpack)",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.TIMEOUT,
        help="Request timeout in seconds",
    )

    parser.add_argument(
        "--connect-timeout",
        type=float,
        default=settings.CONNECT_TIMEOUT,
        help="Health-check timeout in seconds",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="Command to run once (interactive prompt if omitted)",
    )

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stderr),
        ]
    )


def format_result(result) -> str:
    """Render a command result for the terminal."""
    if result is None:
        return "(nil)"
    if isinstance(result, bool):
        return "OK" if result else "FAILED"
    if isinstance(result, dict):
        return "\n".join(f"{k}\t{v}" for k, v in result.items()) or "(empty)"
    if isinstance(result, list):
        return "\n".join(str(item) for item in result) or "(empty)"
    return str(result)


def _xt(parts: List[str], index: int) -> Optional[int]:
    return int(parts[index]) if len(parts) > index else None


def execute_command(client: KyotoClient, line: str) -> str:
    """
    Run one command line against the client.

    Args:
        client: Connected KyotoClient
        line: Raw command, e.g. "SET key value 60"

    Returns:
        Text to print; errors are rendered as "ERROR <message>"
    """
    try:
        parts = shlex.split(line)
    except ValueError as e:
        return f"ERROR {e}"
    if not parts:
        return ""

    name, args = parts[0].upper(), parts[1:]
    try:
        if name == "GET" and len(args) == 1:
            result = client.get(args[0])
        elif name == "SET" and len(args) in (2, 3):
            client.set(args[0], args[1], _xt(args, 2))
            result = True
        elif name == "ADD" and len(args) in (2, 3):
            result = client.add(args[0], args[1], _xt(args, 2))
        elif name == "REPLACE" and len(args) in (2, 3):
            result = client.replace(args[0], args[1], _xt(args, 2))
        elif name == "APPEND" and len(args) in (2, 3):
            client.append(args[0], args[1], _xt(args, 2))
            result = True
        elif name in ("REMOVE", "DELETE") and args:
            result = client.remove(args)
        elif name in ("INCR", "DECR") and len(args) in (1, 2):
            num = int(args[1]) if len(args) == 2 else 1
            result = client.increment(args[0], num if name == "INCR" else -num)
        elif name == "CAS" and len(args) == 3:
            result = client.cas(args[0], args[1], args[2])
        elif name == "KEYS" and len(args) <= 1:
            result = client.match_prefix(args[0] if args else "")
        elif name == "MATCH" and len(args) == 1:
            result = client.match_regex(args[0])
        elif name == "REPORT" and not args:
            result = client.report()
        elif name == "STATUS" and not args:
            result = client.status()
        elif name == "CLEAR" and not args:
            client.clear()
            result = True
        elif name == "VACUUM" and not args:
            client.vacuum()
            result = True
        else:
            return f"ERROR unknown command: {line.strip()}"
    except ValueError as e:
        return f"ERROR invalid argument: {e}"
    except KyotoError as e:
        return f"ERROR {e}"

    return format_result(result)


def repl(client: KyotoClient) -> None:
    """Interactive prompt."""
    print("Type 'help' for commands.\n")
    while True:
        try:
            line = input("kt> ").strip()
        except EOFError:
            print("\nGoodbye!")
            break
        except KeyboardInterrupt:
            print("\n\nInterrupted. Goodbye!")
            break

        if not line:
            continue

        lower_cmd = line.lower()
        if lower_cmd == "help":
            print(HELP)
            continue
        if lower_cmd in ("exit", "quit"):
            print("Goodbye!")
            break
        if lower_cmd == "servers":
            print(format_result([str(s) for s in client.servers]))
            continue

        print(execute_command(client, line))


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the command line client."""
    args = parse_args(argv)
    setup_logging(debug=args.debug)
    logger = logging.getLogger(__name__)

    try:
        client = KyotoClient(
            servers=args.servers or [f"{settings.HOST}:{settings.PORT}"],
            db=args.db,
            colenc=args.colenc,
            connect_timeout=args.connect_timeout,
            timeout=args.timeout,
            serializer=args.serializer,
        )
    except KyotoError as e:
        print(f"ERROR {e}", file=sys.stderr)
        return 2

    logger.debug(f"Using {client!r}")

    with client:
        if args.command:
            output = execute_command(client, shlex.join(args.command))
            print(output)
            return 1 if output.startswith("ERROR") else 0
        repl(client)
    return 0


if __name__ == "__main__":
    sys.exit(main())

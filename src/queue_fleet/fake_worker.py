"""Stand-in queue worker for local runs and integration tests.

Accepts the same trailing arguments as ``php artisan queue:listen``, prints a
few lines (with blank lines in between, which the supervisor drops) and then
blocks until it is signalled.
"""

from __future__ import annotations

import argparse
import sys
import time


def main(argv: list[str] | None = None) -> int:
    """Print ``--lines`` job lines, then block unless ``--exit`` is given."""

    parser = argparse.ArgumentParser()
    parser.add_argument("command", nargs="?", default="queue:listen")
    parser.add_argument("--queue", default="default")
    parser.add_argument("--timeout", type=int, default=60)
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--lines", type=int, default=2)
    parser.add_argument("--exit", dest="exit_code", type=int, default=None)
    args = parser.parse_args(argv)

    for index in range(1, args.lines + 1):
        print("", flush=True)
        print(f"{args.command} {args.queue} job {index} processed", flush=True)
        if args.verbose:
            print(f"  timeout={args.timeout}", flush=True)

    if args.exit_code is not None:
        return args.exit_code

    while True:
        time.sleep(1)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())

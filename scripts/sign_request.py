#!/usr/bin/env python3
"""
Print signed-request headers for a JSON body.

Useful for exercising the write API with curl:

    python scripts/sign_request.py --body post.json --curl http://127.0.0.1:8001/api/blogs

The secret and token default to BLOGTRAFFIC_SECRET_KEY / BLOGTRAFFIC_API_TOKEN.
"""

import argparse
import os
import shlex
import sys
from pathlib import Path

from datasette_blogtraffic.signing import signed_headers


def main() -> int:
    parser = argparse.ArgumentParser(description="Sign a blogtraffic API request body")
    parser.add_argument(
        "--body",
        type=Path,
        help="File with the exact request body (default: read stdin)",
    )
    parser.add_argument("--secret", default=os.environ.get("BLOGTRAFFIC_SECRET_KEY"))
    parser.add_argument("--token", default=os.environ.get("BLOGTRAFFIC_API_TOKEN"))
    parser.add_argument(
        "--timestamp",
        type=int,
        help="Timestamp in epoch milliseconds (default: now)",
    )
    parser.add_argument(
        "--method",
        default="POST",
        help="HTTP method for --curl output (default: POST)",
    )
    parser.add_argument("--curl", metavar="URL", help="Print a complete curl command")
    args = parser.parse_args()

    if not args.secret or not args.token:
        print("A secret and an API token are required.", file=sys.stderr)
        return 1

    body = args.body.read_bytes() if args.body else sys.stdin.buffer.read()
    headers = signed_headers(args.secret, args.token, body, args.timestamp)

    if not args.curl:
        for name, value in headers.items():
            print(f"{name}: {value}")
        return 0

    parts = ["curl", "-X", args.method, args.curl, "-H", "Content-Type: application/json"]
    for name, value in headers.items():
        parts += ["-H", f"{name}: {value}"]
    parts += ["--data-binary", f"@{args.body}" if args.body else body.decode("utf-8")]
    print(" ".join(shlex.quote(part) for part in parts))
    return 0


if __name__ == "__main__":
    sys.exit(main())

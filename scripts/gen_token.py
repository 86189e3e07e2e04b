#!/usr/bin/env python3
"""Mint a bearer token for calling the task-list API.

Usage:
    # Secret from the environment:
    JWT_SECRET=change-me python scripts/gen_token.py --tenant-id acme --user-id alice

    # Or explicitly, with a custom lifetime in seconds:
    python scripts/gen_token.py --secret change-me --tenant-id acme --user-id alice --exp 600

Environment Variables:
    JWT_SECRET: HMAC secret shared with the running service
"""
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

# Add project root to path for imports
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from tasklist.config import SUPPORTED_JWT_ALGORITHMS  # noqa: E402
from tasklist.service.auth import TokenAuthenticator  # noqa: E402


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate a signed bearer token for the task-list service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--secret",
        default=os.environ.get("JWT_SECRET"),
        help="Signing secret (or set JWT_SECRET env var)",
    )
    parser.add_argument("--tenant-id", required=True, help="Tenant claim")
    parser.add_argument("--user-id", required=True, help="User claim")
    parser.add_argument(
        "--exp",
        type=int,
        default=3600,
        help="Token lifetime in seconds (default: 3600)",
    )
    parser.add_argument(
        "--algorithm",
        default="HS256",
        choices=SUPPORTED_JWT_ALGORITHMS,
        help="HMAC algorithm (default: HS256)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    if not args.secret:
        print("Error: --secret or JWT_SECRET environment variable required", file=sys.stderr)
        sys.exit(1)

    if args.exp <= 0:
        print("Error: --exp must be a positive number of seconds", file=sys.stderr)
        sys.exit(1)

    authenticator = TokenAuthenticator(args.secret, algorithms=[args.algorithm])
    print(authenticator.encode_token(args.tenant_id, args.user_id, args.exp))


if __name__ == "__main__":
    main()

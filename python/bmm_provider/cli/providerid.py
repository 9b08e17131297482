#!/usr/bin/env python3
"""
bmm_provider/cli/providerid.py

CLI for provider IDs:
  - parse  : decode an nvidia-bmm:// identifier and print it as JSON
  - format : build the four-segment identifier from its parts
"""

from __future__ import annotations

import argparse
import json
import sys
import uuid
from typing import List, Optional

from bmm_provider.errors import InputError
from bmm_provider.models.provider_id import encode_provider_id, parse_provider_id


def run_parse(args: argparse.Namespace) -> None:
    """Print the parsed provider ID. Raises SystemExit(1) on invalid input."""
    try:
        pid = parse_provider_id(args.provider_id)
    except InputError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps(pid.model_dump(mode="json"), indent=2))


def run_format(args: argparse.Namespace) -> None:
    """Print the encoded provider ID. Raises SystemExit(1) on a bad instance ID."""
    try:
        instance_id = uuid.UUID(args.instance_id)
    except ValueError:
        print(f"Error: instance ID {args.instance_id!r} is not a UUID", file=sys.stderr)
        sys.exit(1)
    print(encode_provider_id(args.org, args.tenant, args.site, instance_id))


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Parse or build nvidia-bmm provider IDs.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    parse_parser = subparsers.add_parser("parse", help="Decode a provider ID.")
    parse_parser.add_argument("provider_id", help="e.g. nvidia-bmm://org/tenant/site/<uuid>")
    parse_parser.set_defaults(func=run_parse)

    format_parser = subparsers.add_parser("format", help="Build a provider ID.")
    format_parser.add_argument("--org", required=True)
    format_parser.add_argument("--tenant", default="")
    format_parser.add_argument("--site", required=True)
    format_parser.add_argument("--instance-id", required=True)
    format_parser.set_defaults(func=run_format)

    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()

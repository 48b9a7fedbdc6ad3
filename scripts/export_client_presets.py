#!/usr/bin/env python3
"""
Export the preset email clients as JSON seed data.

Usage:
    python scripts/export_client_presets.py > clients.json
    python scripts/export_client_presets.py --only gmail-web apple-mail --indent 0
"""

import argparse
import json
import sys
from typing import Optional

from render_testing.domain.presets import EmailClientFactory


def export_presets(only: Optional[list[str]] = None, summary: bool = False) -> list[dict]:
    """Persisted layouts (or display summaries) of the preset clients."""
    clients = EmailClientFactory.all_presets()
    if only:
        wanted = set(only)
        unknown = wanted - {c.id for c in clients}
        if unknown:
            raise ValueError(f"Unknown preset client(s): {', '.join(sorted(unknown))}")
        clients = [c for c in clients if c.id in wanted]
    if summary:
        return [c.get_summary() for c in clients]
    return [c.to_data() for c in clients]


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Export preset email clients as JSON seed data",
    )
    parser.add_argument("--only", nargs="+", metavar="CLIENT_ID", help="Export only these client IDs")
    parser.add_argument(
        "--summary",
        action="store_true",
        help="Export display summaries instead of full client records",
    )
    parser.add_argument("--indent", type=int, default=2, help="JSON indent (0 for compact)")
    args = parser.parse_args(argv)

    try:
        data = export_presets(only=args.only, summary=args.summary)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    json.dump(data, sys.stdout, indent=args.indent or None, ensure_ascii=False)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())

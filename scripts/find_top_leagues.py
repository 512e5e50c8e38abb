"""
find_top_leagues.py — Pick the top football leagues out of a BetsAPI league dump.

Reads a ``league.json`` file (``{"leagues": [{"id": ..., "name": ...}, ...]}``)
and prints the best-ranked leagues by tier, followed by their ids in a form
that can be pasted into ``TOP_LEAGUES``.

Usage
-----
  python scripts/find_top_leagues.py                     # ./league.json, top 20
  python scripts/find_top_leagues.py path/to/league.json --limit 30
"""

import argparse
import json
import sys
from pathlib import Path

# Ensure the project root (one level up from scripts/) is on sys.path so that
# `from ev_backend.xxx import ...` resolves when the script is run directly.
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

TIER_STARS = {1: "***", 2: "**"}


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Find the top football leagues in a BetsAPI league dump."
    )
    parser.add_argument(
        "path",
        nargs="?",
        default="league.json",
        help="League dump to read (default: ./league.json).",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Number of leagues to keep (default: 20).",
    )
    args = parser.parse_args()

    from ev_backend.services.leagues import match_top_leagues

    try:
        data = json.loads(Path(args.path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        print(f"ERROR: cannot read {args.path}: {exc}")
        sys.exit(1)

    leagues = data.get("leagues") or []
    top = match_top_leagues(leagues, limit=args.limit)

    print(f"\nTOP {args.limit} FOOTBALL LEAGUES FOUND")
    print("=" * 64)
    for i, league in enumerate(top, start=1):
        stars = TIER_STARS.get(league["tier"], "*")
        print(f"{i:2d}. {league['name']:<40} {stars:<3} [{league['region']}] ID: {league['id']}")

    print(f"\nReturning {len(top)} of {len(leagues)} leagues in dump")
    print("League IDs:", json.dumps([league["id"] for league in top]))


if __name__ == "__main__":
    main()

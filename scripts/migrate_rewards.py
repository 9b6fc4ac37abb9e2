#!/usr/bin/env python3
"""
Reward Import Script
====================
Load an exported rewards collection (JSON list of documents) into the EcoSort
database, renaming the legacy ``pointCost``/``stockQuantity`` fields to
``cost``/``stock``.

Usage:
    python scripts/migrate_rewards.py --input rewards_export.json
    python scripts/migrate_rewards.py --input rewards_export.json --db data/ecosort.db --dry-run
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from ecosort.config import settings
from ecosort.db import Database
from ecosort.repository.rewards import RewardRepo, prepare_reward_documents


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Import reward documents and normalize legacy field names",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Input format:
  [{"id": "abc", "name": "Tote Bag", "description": "...", "pointCost": 150, "stockQuantity": 10}, ...]

Documents are upserted by id, so the import can be re-run safely.
""",
    )
    parser.add_argument("--input", type=Path, required=True, help="Exported rewards JSON file")
    parser.add_argument(
        "--db",
        type=Path,
        default=settings.db_path,
        help=f"Target SQLite database (default: {settings.db_path})",
    )
    parser.add_argument("--dry-run", action="store_true", help="Validate and count without writing")

    args = parser.parse_args(argv)

    if not args.input.exists():
        print(f"Error: Input file not found: {args.input}")
        return 1

    try:
        docs = json.loads(args.input.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON in {args.input}: {e}")
        return 1
    if not isinstance(docs, list):
        print("Error: Expected a JSON list of reward documents")
        return 1

    print(f"Found {len(docs)} reward documents.")
    if args.dry_run:
        # Validation only; the target database is not opened or created
        _, counts = prepare_reward_documents(docs)
    else:
        counts = RewardRepo(Database(args.db)).import_documents(docs)

    label = "Dry run" if args.dry_run else "Migration"
    print(f"\n✅ {label} completed")
    print(f"   Created:    {counts['created']}")
    print(f"   Updated:    {counts['updated']}")
    print(f"   Normalized: {counts['normalized']}")
    print(f"   Skipped:    {counts['skipped']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

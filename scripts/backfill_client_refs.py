"""
backfill_client_refs.py — Assign client references to clients that lack one.

Runs the same allocation path as client creation, so it can run against a
live database. Each assignment is committed immediately; an interrupted run
can simply be started again.

Usage:
    python scripts/backfill_client_refs.py --dry-run
    python scripts/backfill_client_refs.py --portfolio 3
    python scripts/backfill_client_refs.py --queue      # hand off to Celery
"""

import sys
import os
import json
import argparse

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))

from app import create_app
from tasks.backfill import run_backfill, backfill_client_refs
from utils.errors import AllocationError


def main(argv=None):
    parser = argparse.ArgumentParser(description="Assign client references to legacy clients.")
    parser.add_argument("--portfolio", type=int, default=None, help="Only clients in this portfolio")
    parser.add_argument("--dry-run", action="store_true", help="Report what would be assigned")
    parser.add_argument("--queue", action="store_true", help="Queue the Celery task instead of running inline")
    args = parser.parse_args(argv)

    if args.queue:
        result = backfill_client_refs.delay(portfolio_code=args.portfolio, dry_run=args.dry_run)
        print(f"[BACKFILL] Queued task {result.id}")
        return 0

    app = create_app()
    with app.app_context():
        try:
            summary = run_backfill(portfolio_code=args.portfolio, dry_run=args.dry_run)
        except AllocationError as e:
            print(f"[BACKFILL] Aborted: {e}")
            return 1

    if args.dry_run:
        print(f"[BACKFILL] Dry run — {summary['total']} client(s) need a reference:")
        print(json.dumps(summary["planned"], indent=2))
        return 0

    for row in summary["assigned"]:
        print(f"[BACKFILL] {row['client_id']} → {row['client_ref']}")
    for row in summary["failed"]:
        print(f"[BACKFILL] FAILED {row['client_id']} (portfolio {row['portfolio_code']}): {row['error']}")
    print(f"[BACKFILL] {len(summary['assigned'])}/{summary['total']} assigned.")
    return 1 if summary["failed"] else 0


if __name__ == "__main__":
    sys.exit(main())

"""
Seed script for the Emergency Report Hub mock DB or Firestore.

Usage:
  - Dry run (default): python scripts/seed_db.py
  - Apply to configured DB: python scripts/seed_db.py --apply
  - Force mock DB even if FIREBASE configured: python scripts/seed_db.py --apply --force-mock

Behavior:
  - Loads `db_seed.json` from repo root ({"devices": {...}, "reports": {...}}).
  - Timestamps in the seed are offsets in seconds before "now", so seeded
    devices are never stuck on cooldown.
  - Writes each top-level collection/document to the DB.
"""

import argparse
import json
import logging
import os
from typing import Any

from app.config.firebase import get_db
from app.core.settings import settings
from app.utils.time import now_ms

logger = logging.getLogger("seed_db")

TIME_FIELDS = ("timestamp", "last_report_time", "cooldown_until", "blocked_at")


def load_seed(path: str = "./db_seed.json") -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def resolve_times(data: dict, now: int) -> dict:
    resolved = dict(data)
    for field in TIME_FIELDS:
        if field in resolved and resolved[field] is not None:
            resolved[field] = now - int(resolved[field] * 1000)
    return resolved


def write_to_db(db: Any, seed: dict, apply: bool = False):
    now = now_ms()
    for collection, docs in seed.items():
        for doc_id, data in docs.items():
            logger.info(f"Preparing: {collection}/{doc_id}")
            if not apply:
                continue
            try:
                db.collection(collection).document(doc_id).set(resolve_times(data, now))
                logger.info(f"Wrote: {collection}/{doc_id}")
            except Exception as e:
                logger.error(f"Failed to write {collection}/{doc_id}: {e}")


def main():
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    parser = argparse.ArgumentParser()
    parser.add_argument("--apply", action="store_true", help="Write seed to the DB instead of dry-run")
    parser.add_argument("--force-mock", action="store_true", help="Force use of mock DB even if FIREBASE configured")
    parser.add_argument("--seed", default=os.path.join(os.getcwd(), "db_seed.json"), help="Seed file path")
    args = parser.parse_args()

    if not os.path.exists(args.seed):
        logger.error(f"Seed file not found: {args.seed}")
        return

    seed = load_seed(args.seed)

    if args.force_mock:
        logger.info("Forcing mock DB usage for this run.")
        settings.USE_MOCK_DB = True

    db = get_db()

    write_to_db(db, seed, apply=args.apply)

    if args.apply:
        logger.info("Seeding completed.")
    else:
        logger.info("Dry run complete. Re-run with --apply to write to DB.")


if __name__ == "__main__":
    main()

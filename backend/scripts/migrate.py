"""Create the database tables and report how many places are stored.

Usage:
    cd backend && python -m scripts.migrate [--from-local-cache]

With `--from-local-cache`, places saved in the JSON local cache (for example
while the database was unreachable) are copied into the database, skipping
ones already present. Cached places outside the configured region are left
behind.
"""

from __future__ import annotations

import argparse
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from db import SessionLocal, init_db
from repositories import PlacesRepository
from storage.local_cache import LocalCache

LOG = logging.getLogger("migrate")


def migrate(from_local_cache: bool = False, cache_path: str | None = None) -> int:
    """Run the migration and return the number of stored places."""
    init_db()
    LOG.info("Database tables are up to date")
    repo = PlacesRepository()
    with SessionLocal() as session:
        if from_local_cache:
            cached = LocalCache(cache_path).list_places()
            in_region = [p for p in cached if repo.bbox.contains(p.coords)]
            if len(in_region) < len(cached):
                LOG.warning(
                    "Leaving %d local cache places outside the configured region", len(cached) - len(in_region)
                )
            result = repo.create_many(session, in_region)
            LOG.info(
                "Copied %d places from local cache (%d already present)", len(result.added), result.skipped
            )
        return repo.count(session)


def main():
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description="Create tables and report the stored place count")
    parser.add_argument("--from-local-cache", action="store_true", help="Copy local cache places into the database")
    parser.add_argument("--cache-path", default=None, help="Local cache JSON file (defaults to LOCAL_CACHE_PATH)")
    args = parser.parse_args()

    try:
        count = migrate(from_local_cache=args.from_local_cache, cache_path=args.cache_path)
    except SQLAlchemyError as exc:
        LOG.error("Migration failed: %s", exc)
        sys.exit(1)

    if count == 0:
        print("No existing places found. Database is ready for new data.")
    else:
        print(f"Found {count} existing places in database.")


if __name__ == "__main__":
    main()

"""Import places from a CSV file on disk.

Usage:
    cd backend && python -m scripts.import_csv path/to/list.csv [--dry-run]

Accepts map list exports (Title, Note, URL), licensing registers
(licensee_name, premises_address) or any CSV with name/address/url-like
columns. Without `--dry-run` resolved places are saved to the database.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from db import SessionLocal, init_db
from domain.errors import ValidationError
from domain.models import ImportReport
from repositories import PlacesRepository, SqlPlaceStore
from services.csv_rows import read_csv_rows
from services.geocode_cache import get_default_geocode_cache
from services.geocoding import AddressGeocoder
from services.import_pipeline import ImportPipeline
from services.page_fetcher import get_default_page_fetcher
from services.tracker_state import TrackerState
from services.url_extractor import UrlLocationExtractor

LOG = logging.getLogger("import_csv")


def run_import(csv_path: Path, dry_run: bool = False, batch_size: int | None = None) -> ImportReport:
    rows = read_csv_rows(csv_path.read_bytes())
    extractor = UrlLocationExtractor(fetcher=get_default_page_fetcher())
    geocoder = AddressGeocoder(cache=get_default_geocode_cache())

    if dry_run:
        pipeline = ImportPipeline(extractor, geocoder, batch_size=batch_size)
        return asyncio.run(pipeline.import_rows(rows))

    init_db()
    with SessionLocal() as session:
        store = SqlPlaceStore(session, PlacesRepository())
        pipeline = ImportPipeline(extractor, geocoder, store=store, batch_size=batch_size)
        return asyncio.run(pipeline.import_rows(rows))


def print_summary(report: ImportReport, state: TrackerState) -> None:
    summary = report.summary()
    print(f"Rows: {summary['total_rows']}")
    print(f"Resolved: {summary['resolved']}  Added: {summary['added']}  Skipped: {summary['skipped']}")
    print(f"Geocoding failures: {summary['geocoding_failures']}  Failed rows: {summary['failed_rows']}")
    if report.flush_error:
        print(f"Save failed: {report.flush_error}")
    for failure in report.geocoding_failures[:10]:
        print(f"  could not locate {failure.name!r} ({failure.address}) after {', '.join(failure.attempts)}")
    print(f"Places in this session: {len(state.places)}")


def main():
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description="Import places from a CSV file")
    parser.add_argument("csv_path", type=Path, help="CSV file to import")
    parser.add_argument("--dry-run", action="store_true", help="Resolve locations without saving")
    parser.add_argument("--batch-size", type=int, default=None, help="Rows resolved concurrently per batch")
    args = parser.parse_args()

    if not args.csv_path.exists():
        LOG.error("File not found: %s", args.csv_path)
        sys.exit(1)
    try:
        report = run_import(args.csv_path, dry_run=args.dry_run, batch_size=args.batch_size)
    except ValidationError as exc:
        LOG.error("Invalid CSV: %s", exc)
        sys.exit(1)

    state = TrackerState()
    state.apply_import(report)
    print_summary(report, state)


if __name__ == "__main__":
    main()

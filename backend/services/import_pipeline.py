"""
Bulk CSV import: resolve each row to a Place and flush the results to a store.

Per row:
1. Detect the column layout (known exports first, then column-name heuristics).
2. Read map links with the UrlLocationExtractor; direct coordinates skip geocoding.
3. Geocode the address, then cascade through fallback tiers (name, name + region,
   trailing location of the name + region, name + each known subarea + region).
4. Record missing data and unexpected errors per row without stopping the import.

Rows run concurrently inside fixed-size batches; batches run in input order
with a pause between them to stay under the geocoding provider's rate limit.
"""
from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional

from domain.errors import PermanentResolutionFailure
from domain.models import (
    Coordinates,
    GeocodingFailure,
    ImportFailure,
    ImportReport,
    Place,
    PlaceSource,
    PlaceStore,
    PLACEHOLDER_ADDRESS,
    ResultType,
    fallback_source,
)
from services.geocoding import AddressGeocoder
from services.strategy_chain import ChainOutcome, Strategy, run_chain
from services.url_extractor import UrlLocationExtractor, split_trailing_location
from settings import settings

logger = logging.getLogger(__name__)

MISSING_NAME_OR_ADDRESS = "missing_name_or_address"
PROCESSING_ERROR = "processing_error"

NAME_TOKENS = ("name", "title", "restaurant")
ADDRESS_TOKENS = ("address", "location")
URL_TOKENS = ("url", "link")


class RowLayout(str, Enum):
    GOOGLE_MAPS_LIST = "google_maps_list"  # Title, Note, URL
    LICENSE_REGISTER = "license_register"  # licensee_name, premises_address
    HEURISTIC = "heuristic"


@dataclass
class RowSchema:
    layout: RowLayout
    name_key: Optional[str] = None
    address_key: Optional[str] = None
    url_key: Optional[str] = None


def _find_key(row: Dict[str, str], tokens: Iterable[str]) -> Optional[str]:
    for key in row:
        lower = key.lower()
        if any(token in lower for token in tokens):
            return key
    return None


def detect_schema(row: Dict[str, str]) -> RowSchema:
    if row.get("Title") and row.get("URL"):
        return RowSchema(RowLayout.GOOGLE_MAPS_LIST, name_key="Title", url_key="URL")
    if row.get("licensee_name") and row.get("premises_address"):
        return RowSchema(RowLayout.LICENSE_REGISTER, name_key="licensee_name", address_key="premises_address")
    return RowSchema(
        RowLayout.HEURISTIC,
        name_key=_find_key(row, NAME_TOKENS),
        address_key=_find_key(row, ADDRESS_TOKENS),
        url_key=_find_key(row, URL_TOKENS),
    )


def _value(row: Dict[str, str], key: Optional[str]) -> Optional[str]:
    if not key:
        return None
    value = row.get(key)
    if value is None:
        return None
    return str(value).strip() or None


@dataclass
class RowOutcome:
    place: Optional[Place] = None
    failure: Optional[ImportFailure] = None
    geocoding_failure: Optional[GeocodingFailure] = None


class ImportPipeline:
    def __init__(
        self,
        extractor: UrlLocationExtractor,
        geocoder: AddressGeocoder,
        store: Optional[PlaceStore] = None,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
        default_region: Optional[str] = None,
        subareas: Optional[List[str]] = None,
    ):
        self.extractor = extractor
        self.geocoder = geocoder
        self.store = store
        self.batch_size = max(1, batch_size or settings.IMPORT_BATCH_SIZE)
        self.batch_delay = settings.IMPORT_BATCH_DELAY if batch_delay is None else batch_delay
        self.default_region = default_region or settings.DEFAULT_REGION
        self.subareas = list(subareas) if subareas is not None else list(settings.REGION_SUBAREAS)

    def _place(self, name: str, address: str, coords: Coordinates, source: str) -> Place:
        now = datetime.utcnow()
        return Place(name=name, address=address, coords=coords, source=source, created_at=now, updated_at=now)

    def fallback_strategies(self, name: str, address: str) -> List[Strategy[Coordinates]]:
        """Geocoding tiers for a row, primary address first."""
        geocode = self.geocoder.geocode
        region = self.default_region
        strategies: List[Strategy[Coordinates]] = [
            Strategy("address", lambda: geocode(address)),
            Strategy("name", lambda: geocode(name)),
            Strategy("name_region", lambda: geocode(f"{name}, {region}")),
        ]
        location = split_trailing_location(name)
        if location:
            strategies.append(Strategy("name_location", lambda: geocode(f"{location}, {region}")))
        for area in self.subareas:
            strategies.append(
                Strategy(f"subarea:{area}", lambda a=area: geocode(f"{name}, {a}, {region}"))
            )
        return strategies

    def resolve_coordinates(self, name: str, address: str) -> ChainOutcome[Coordinates]:
        """Run the fallback tiers; raises PermanentResolutionFailure when all come back empty."""
        outcome = run_chain(self.fallback_strategies(name, address), label=name)
        if not outcome.succeeded:
            raise PermanentResolutionFailure(name, address, outcome.attempts)
        return outcome

    def _resolve_row(self, row: Dict[str, str]) -> RowOutcome:
        schema = detect_schema(row)
        name = _value(row, schema.name_key)
        address = _value(row, schema.address_key)
        source = PlaceSource.UNKNOWN

        if schema.layout is RowLayout.LICENSE_REGISTER:
            source = PlaceSource.DIRECT_ADDRESS
        elif schema.layout is RowLayout.GOOGLE_MAPS_LIST or (schema.url_key and not address):
            location = self.extractor.extract(_value(row, schema.url_key))
            if location and location.type is ResultType.COORDINATES and name:
                logger.info("Added with coordinates from map link: %s", name)
                return RowOutcome(
                    place=self._place(
                        name, PLACEHOLDER_ADDRESS, location.data, PlaceSource.GOOGLE_MAPS_COORDINATES.value
                    )
                )
            if location and location.type is ResultType.ADDRESS:
                address = location.data
                source = (
                    PlaceSource.GOOGLE_MAPS_URL
                    if schema.layout is RowLayout.GOOGLE_MAPS_LIST
                    else PlaceSource.URL_EXTRACTION
                )
            elif schema.layout is RowLayout.GOOGLE_MAPS_LIST:
                address = name
                source = PlaceSource.PLACE_NAME_FALLBACK
        elif address:
            source = PlaceSource.ADDRESS_COLUMN

        if not name or not address:
            logger.info("Missing data for row: name=%r address=%r", name, address)
            return RowOutcome(failure=ImportFailure(row=row, reason=MISSING_NAME_OR_ADDRESS))

        try:
            outcome = self.resolve_coordinates(name, address)
        except PermanentResolutionFailure as exc:
            logger.info("Failed to geocode both address and name: %s - %s", name, address)
            return RowOutcome(
                geocoding_failure=GeocodingFailure(
                    name=exc.name, address=exc.address, source=source.value, attempts=exc.attempts
                )
            )

        tag = source.value if outcome.strategy == "address" else fallback_source(source)
        logger.info("Resolved %s via %s (%s)", name, outcome.strategy, tag)
        return RowOutcome(place=self._place(name, address, outcome.value, tag))

    def process_row(self, row: Dict[str, str]) -> RowOutcome:
        try:
            return self._resolve_row(row)
        except Exception as exc:
            logger.exception("Error processing row %r", row)
            return RowOutcome(failure=ImportFailure(row=row, reason=PROCESSING_ERROR, error=str(exc)))

    async def import_rows(self, rows: Iterable[Dict[str, str]]) -> ImportReport:
        rows = list(rows)
        report = ImportReport(total_rows=len(rows))
        total_batches = math.ceil(len(rows) / self.batch_size)
        logger.info("Starting import of %d rows in %d batches", len(rows), total_batches)

        for batch_no, start in enumerate(range(0, len(rows), self.batch_size), start=1):
            batch = rows[start:start + self.batch_size]
            logger.info(
                "Processing batch %d/%d (rows %d-%d)", batch_no, total_batches, start + 1, start + len(batch)
            )
            outcomes = await asyncio.gather(
                *(asyncio.to_thread(self.process_row, row) for row in batch)
            )
            for outcome in outcomes:
                if outcome.place:
                    report.resolved.append(outcome.place)
                if outcome.failure:
                    report.failed.append(outcome.failure)
                if outcome.geocoding_failure:
                    report.geocoding_failures.append(outcome.geocoding_failure)
            if batch_no < total_batches and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)

        self._flush(report)
        logger.info(
            "Import complete: %d resolved, %d added, %d skipped, %d geocoding failures, %d failed rows",
            len(report.resolved),
            len(report.added),
            report.skipped,
            len(report.geocoding_failures),
            len(report.failed),
        )
        if report.geocoding_failures:
            logger.info("Geocoding failures: %s", [f.name for f in report.geocoding_failures[:5]])
        return report

    def _flush(self, report: ImportReport) -> None:
        if self.store is None:
            report.added = list(report.resolved)
            return
        if not report.resolved:
            return
        try:
            result = self.store.create_many(report.resolved)
        except Exception as exc:
            logger.exception("Failed to save imported places")
            report.flush_error = str(exc)
            return
        report.added = result.added
        report.skipped = result.skipped

"""
Re-geocode stored places whose coordinates fall outside the bounding box.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from domain.models import BoundingBox, Coordinates, Place, PlaceSource, PLACEHOLDER_ADDRESS
from services.geocoding import AddressGeocoder
from services.strategy_chain import Strategy, run_chain
from settings import settings

logger = logging.getLogger(__name__)


@dataclass
class RepairReport:
    checked: int = 0
    fixed: List[Place] = field(default_factory=list)
    unfixed: List[Place] = field(default_factory=list)


def find_invalid_places(places: List[Place], bbox: BoundingBox) -> List[Place]:
    return [p for p in places if p.coords is None or not bbox.contains(p.coords)]


def _repair_strategies(
    place: Place, geocoder: AddressGeocoder, region: str, subareas: List[str]
) -> List[Strategy[Coordinates]]:
    strategies = [Strategy("name", lambda: geocoder.geocode(place.name))]
    if place.address and place.address != PLACEHOLDER_ADDRESS:
        strategies.append(Strategy("address", lambda: geocoder.geocode(place.address)))
    for area in subareas:
        strategies.append(
            Strategy(f"subarea:{area}", lambda a=area: geocoder.geocode(f"{place.name}, {a}, {region}"))
        )
    return strategies


def repair_invalid_coordinates(
    places: List[Place],
    geocoder: AddressGeocoder,
    delay: float = 0.5,
    default_region: Optional[str] = None,
    subareas: Optional[List[str]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RepairReport:
    """
    Try to fix places with out-of-range coordinates.

    Fixed places get new coords and source `fixed_coordinates`; the caller is
    responsible for persisting them.
    """
    region = default_region or settings.DEFAULT_REGION
    areas = list(subareas) if subareas is not None else list(settings.REGION_SUBAREAS)
    invalid = find_invalid_places(places, geocoder.bbox)
    report = RepairReport(checked=len(places))
    logger.info("Found %d places with invalid coordinates", len(invalid))

    for i, place in enumerate(invalid):
        outcome = run_chain(_repair_strategies(place, geocoder, region, areas), label=place.name)
        if outcome.succeeded:
            place.coords = outcome.value
            place.source = PlaceSource.FIXED_COORDINATES.value
            report.fixed.append(place)
            logger.info("Fixed coordinates for %s: %s, %s", place.name, place.coords.lat, place.coords.lng)
        else:
            report.unfixed.append(place)
            logger.info("Could not fix coordinates for %s", place.name)
        if delay > 0 and i < len(invalid) - 1:
            sleep(delay)
    return report

"""Forward geocoding helpers using the OneMap address search API.

`search_address` is the raw provider call (rate-limited, raises
TransientNetworkError on any transport/HTTP/JSON problem). `AddressGeocoder`
wraps it with retry, backoff, address shortening and a bounding-box check, and
never raises to its caller.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, List, Optional, Sequence

import requests

from domain.errors import TransientNetworkError
from domain.models import BoundingBox, Coordinates
from services.geocode_cache import GeocodeCache
from services.places_types import GeoCandidate
from settings import settings

ONEMAP_SEARCH_URL = settings.ONEMAP_SEARCH_URL
logger = logging.getLogger(__name__)
_session = requests.Session()
_last_request_ts: float = 0.0
_lock = threading.Lock()
_MIN_INTERVAL_SEC = settings.ONEMAP_MIN_INTERVAL

ONEMAP_HEADERS = {
    "User-Agent": settings.ONEMAP_USER_AGENT,
    "Accept": "application/json",
}

GeoProvider = Callable[[str], List[GeoCandidate]]


def _throttled_get(
    url: str,
    *,
    params: dict[str, Any],
    headers: dict[str, str],
    timeout: float,
) -> requests.Response:
    """Perform a GET request with a simple global rate limit."""
    global _last_request_ts
    with _lock:
        now = time.time()
        delta = now - _last_request_ts
        if delta < _MIN_INTERVAL_SEC:
            time.sleep(_MIN_INTERVAL_SEC - delta)
        _last_request_ts = time.time()
    return _session.get(url, params=params, headers=headers, timeout=timeout)


def _parse_candidate(item: dict) -> Optional[GeoCandidate]:
    try:
        lat = float(item["LATITUDE"])
        lng = float(item["LONGITUDE"])
    except (KeyError, TypeError, ValueError):
        return None
    return GeoCandidate(
        provider="onemap",
        lat=lat,
        lng=lng,
        address=item.get("ADDRESS"),
        label=item.get("SEARCHVAL") or item.get("BUILDING"),
        raw=item,
    )


def search_address(query: str, timeout: float = 10.0) -> List[GeoCandidate]:
    """Query OneMap for a free-text address. An empty list means zero results."""
    params = {
        "searchVal": query,
        "returnGeom": "Y",
        "getAddrDetails": "Y",
        "pageNum": "1",
    }
    try:
        resp = _throttled_get(ONEMAP_SEARCH_URL, params=params, headers=ONEMAP_HEADERS, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as exc:
        status = getattr(getattr(exc, "response", None), "status_code", None)
        raise TransientNetworkError(f"OneMap search failed for {query!r}: {exc}", status_code=status) from exc

    try:
        data = resp.json()
    except ValueError as exc:
        raise TransientNetworkError(f"OneMap returned invalid JSON for {query!r}") from exc

    found = int(data.get("found") or 0)
    logger.debug("OneMap response for %r: found %d results", query, found)
    if found <= 0:
        return []
    candidates = [_parse_candidate(item) for item in data.get("results") or []]
    return [c for c in candidates if c is not None]


class AddressGeocoder:
    """Resolve free-text addresses to coordinates inside a bounding box."""

    def __init__(
        self,
        provider: GeoProvider = search_address,
        bbox: Optional[BoundingBox] = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        cache: Optional[GeocodeCache] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.provider = provider
        self.bbox = bbox or BoundingBox.from_settings(settings)
        self.max_retries = max_retries if max_retries is not None else settings.GEOCODE_MAX_RETRIES
        self.base_delay = base_delay if base_delay is not None else settings.GEOCODE_RETRY_DELAY
        self.cache = cache
        self.sleep = sleep

    def _first_valid(self, query: str, candidates: Sequence[GeoCandidate]) -> Optional[Coordinates]:
        if not candidates:
            logger.info("No results found for %r", query)
            return None
        first = candidates[0]
        coords = Coordinates(lat=first.lat, lng=first.lng)
        if not self.bbox.contains(coords):
            logger.warning("Invalid coordinates from geocoding %r: %s, %s", query, coords.lat, coords.lng)
            return None
        return coords

    def geocode(self, address: Optional[str], max_retries: Optional[int] = None) -> Optional[Coordinates]:
        """
        Geocode an address, returning None on permanent failure.

        Transport errors are retried after `attempt * base_delay` seconds. A
        query with no usable result is retried once per remaining attempt with
        its last comma-separated segment dropped.
        """
        clean = (address or "").strip()
        if not clean:
            logger.debug("Empty address provided for geocoding")
            return None
        retries = max_retries if max_retries is not None else self.max_retries

        if self.cache is not None:
            cached = self.cache.get(clean)
            if cached and self.bbox.contains(cached):
                return cached

        logger.debug("Geocoding %r", clean)
        for attempt in range(1, retries + 1):
            try:
                candidates = self.provider(clean)
            except TransientNetworkError as exc:
                logger.warning("Geocoding error for %r on attempt %d/%d: %s", clean, attempt, retries, exc)
                if attempt < retries:
                    self.sleep(self.base_delay * attempt)
                continue

            coords = self._first_valid(clean, candidates)
            if coords:
                logger.info("Geocoding successful: %r -> %s, %s", clean, coords.lat, coords.lng)
                if self.cache is not None:
                    self.cache.put(clean, coords)
                return coords

            if attempt < retries and "," in clean:
                shorter = ",".join(clean.split(",")[:-1]).strip()
                logger.info("Trying shorter address %r", shorter)
                return self.geocode(shorter, retries - attempt)
            break

        logger.info("Failed to geocode after %d attempts: %r", retries, clean)
        return None

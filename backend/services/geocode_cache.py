"""
SQLite-backed cache for forward geocoding results (address text -> coordinates).
"""
from __future__ import annotations

import logging
import os
import sqlite3
import threading
import time
from typing import Optional

from domain.models import Coordinates
from settings import settings

logger = logging.getLogger(__name__)


def _normalize_query(query: str) -> str:
    """Collapse whitespace and case so trivially different queries share a key."""
    return " ".join(query.lower().split())


class GeocodeCache:
    def __init__(self, db_path: Optional[str] = None, default_ttl_seconds: Optional[int] = None):
        self.db_path = db_path or settings.GEOCODE_CACHE_PATH
        self.default_ttl_seconds = (
            default_ttl_seconds if default_ttl_seconds is not None else settings.GEOCODE_CACHE_TTL_SECONDS
        )
        os.makedirs(os.path.dirname(os.path.abspath(self.db_path)), exist_ok=True)
        # import batches call in from worker threads
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._init_schema()

    def _init_schema(self) -> None:
        with self._lock:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS geocode_cache (
                    query TEXT PRIMARY KEY,
                    lat REAL NOT NULL,
                    lng REAL NOT NULL,
                    created_at INTEGER NOT NULL,
                    ttl_seconds INTEGER NOT NULL
                )
                """
            )
            self._conn.commit()

    def get(self, query: str) -> Optional[Coordinates]:
        """Return cached coordinates for the query if a non-expired entry exists."""
        key = _normalize_query(query)
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT lat, lng, created_at, ttl_seconds FROM geocode_cache WHERE query=?",
                    (key,),
                ).fetchone()
        except sqlite3.Error as exc:
            logger.warning("Geocode cache read failed for %r: %s", key, exc)
            return None
        if not row:
            logger.debug("Geocode cache miss %r", key)
            return None
        lat, lng, created_at, ttl_seconds = row
        if ttl_seconds > 0 and (time.time() - created_at) > ttl_seconds:
            logger.debug("Geocode cache expired %r", key)
            return None
        logger.debug("Geocode cache hit %r", key)
        return Coordinates(lat=lat, lng=lng)

    def put(self, query: str, coords: Coordinates, ttl_seconds: Optional[int] = None) -> None:
        """Upsert coordinates for the query."""
        key = _normalize_query(query)
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds
        try:
            with self._lock:
                self._conn.execute(
                    "INSERT OR REPLACE INTO geocode_cache (query, lat, lng, created_at, ttl_seconds) VALUES (?, ?, ?, ?, ?)",
                    (key, coords.lat, coords.lng, int(time.time()), ttl),
                )
                self._conn.commit()
        except sqlite3.Error as exc:
            logger.warning("Geocode cache write failed for %r: %s", key, exc)


_default_geocode_cache: Optional[GeocodeCache] = None


def get_default_geocode_cache() -> GeocodeCache:
    global _default_geocode_cache
    if _default_geocode_cache is None:
        _default_geocode_cache = GeocodeCache()
    return _default_geocode_cache

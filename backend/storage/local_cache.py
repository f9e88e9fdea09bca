"""
JSON-file local cache.

Implements the same place-store interface as the SQL store so callers can
fall back to it when the database is unreachable. The file looks like:

    {
        "places": [ {place dict}, ... ],
        "preferences": {"visited": [ids], "wantToVisit": [ids]}
    }
"""
import json
import logging
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from domain.errors import ConflictError, NotFoundError
from domain.models import BatchResult, BoundingBox, Place
from settings import settings

logger = logging.getLogger(__name__)


class LocalCache:
    """
    Local JSON storage for places and preferences.

    Writes go to a temporary file that replaces the cache file, so a crash
    mid-write leaves the previous contents intact. Places written through
    the store interface must lie inside `bbox`; `replace_places` mirrors the
    database as is.
    """

    def __init__(self, path: Optional[str] = None, bbox: Optional[BoundingBox] = None):
        self.path = Path(path or settings.LOCAL_CACHE_PATH)
        self.bbox = bbox or BoundingBox.from_settings(settings)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"places": [], "preferences": {"visited": [], "wantToVisit": []}}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Error reading %s: %s", self.path, exc)
            return {"places": [], "preferences": {"visited": [], "wantToVisit": []}}
        data.setdefault("places", [])
        data.setdefault("preferences", {"visited": [], "wantToVisit": []})
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.path)

    @staticmethod
    def _next_id(places: List[Dict[str, Any]]) -> int:
        ids = [p["id"] for p in places if isinstance(p.get("id"), int)]
        return (max(ids) + 1) if ids else 1

    def list_places(self) -> List[Place]:
        with self._lock:
            places = [Place.from_dict(p) for p in self._read()["places"]]
        return sorted(places, key=lambda p: (p.created_at or datetime.min, p.id or 0), reverse=True)

    def create_place(self, place: Place) -> Place:
        place.validate()
        place.check_region(self.bbox)
        with self._lock:
            data = self._read()
            keys = {Place.from_dict(p).dedupe_key for p in data["places"]}
            if place.dedupe_key in keys:
                raise ConflictError("Place already exists")
            stored = self._stamp(place, self._next_id(data["places"]))
            data["places"].append(stored.to_dict())
            self._write(data)
        return stored

    def update_place(self, place_id: int, place: Place) -> Place:
        place.validate()
        place.check_region(self.bbox)
        with self._lock:
            data = self._read()
            index = next((i for i, p in enumerate(data["places"]) if p.get("id") == place_id), None)
            if index is None:
                raise NotFoundError(f"Place {place_id} not found")
            for p in data["places"]:
                if p.get("id") != place_id and Place.from_dict(p).dedupe_key == place.dedupe_key:
                    raise ConflictError("Another place already uses this name and address")
            previous = Place.from_dict(data["places"][index])
            place.id = place_id
            place.created_at = previous.created_at
            place.updated_at = datetime.utcnow()
            data["places"][index] = place.to_dict()
            self._write(data)
        return place

    def delete_place(self, place_id: int) -> None:
        with self._lock:
            data = self._read()
            remaining = [p for p in data["places"] if p.get("id") != place_id]
            if len(remaining) == len(data["places"]):
                raise NotFoundError(f"Place {place_id} not found")
            data["places"] = remaining
            self._write(data)

    def create_many(self, places: List[Place]) -> BatchResult:
        result = BatchResult()
        for place in places:
            place.validate()
            place.check_region(self.bbox)
        with self._lock:
            data = self._read()
            keys = {Place.from_dict(p).dedupe_key for p in data["places"]}
            next_id = self._next_id(data["places"])
            for place in places:
                if place.dedupe_key in keys:
                    result.skipped += 1
                    continue
                keys.add(place.dedupe_key)
                stored = self._stamp(place, next_id)
                next_id += 1
                data["places"].append(stored.to_dict())
                result.added.append(stored)
            if result.added:
                self._write(data)
        return result

    def replace_places(self, places: List[Place]) -> None:
        """Overwrite the cached places with a snapshot from the primary store."""
        with self._lock:
            data = self._read()
            data["places"] = [p.to_dict() for p in places]
            self._write(data)

    def load_preferences(self) -> Dict[str, List[int]]:
        with self._lock:
            prefs = self._read()["preferences"]
        return {"visited": list(prefs.get("visited") or []), "wantToVisit": list(prefs.get("wantToVisit") or [])}

    def save_preferences(self, visited: List[int], want_to_visit: List[int]) -> None:
        with self._lock:
            data = self._read()
            data["preferences"] = {"visited": sorted(set(visited)), "wantToVisit": sorted(set(want_to_visit))}
            self._write(data)

    @staticmethod
    def _stamp(place: Place, place_id: int) -> Place:
        now = datetime.utcnow()
        return Place(
            id=place_id,
            name=place.name,
            address=place.address,
            coords=place.coords,
            description=place.description,
            cuisine_type=place.cuisine_type,
            price_range=place.price_range,
            rating=place.rating,
            source=place.source,
            created_at=place.created_at or now,
            updated_at=now,
        )


_default_local_cache: Optional[LocalCache] = None


def get_default_local_cache() -> LocalCache:
    global _default_local_cache
    if _default_local_cache is None:
        _default_local_cache = LocalCache()
    return _default_local_cache

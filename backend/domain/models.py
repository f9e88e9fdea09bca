"""
Core domain models for the places tracker.
These are framework-agnostic and can be used across all services.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union

from domain.errors import ValidationError


# Address stored for places whose coordinates came straight from a map link.
PLACEHOLDER_ADDRESS = "Location from Google Maps"


class PlaceSource(str, Enum):
    """Which resolution strategy produced a place's coordinates."""
    MANUAL = "manual"
    GOOGLE_MAPS_COORDINATES = "google_maps_coordinates"
    GOOGLE_MAPS_URL = "google_maps_url"
    PLACE_NAME_FALLBACK = "place_name_fallback"
    DIRECT_ADDRESS = "direct_address"
    URL_EXTRACTION = "url_extraction"
    ADDRESS_COLUMN = "address_column"
    FIXED_COORDINATES = "fixed_coordinates"
    UNKNOWN = "unknown"


def fallback_source(source: Union[PlaceSource, str]) -> str:
    """Tag for a place resolved by a fallback tier rather than its own address."""
    value = source.value if isinstance(source, PlaceSource) else str(source)
    return f"{value}_fallback"


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Coordinates":
        try:
            return cls(lat=float(data["lat"]), lng=float(data["lng"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid coords: {data!r}") from exc


@dataclass(frozen=True)
class BoundingBox:
    """Lat/lng rectangle used to sanity-check resolved coordinates (edges inclusive)."""
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, coords: Coordinates) -> bool:
        return (
            self.min_lat <= coords.lat <= self.max_lat
            and self.min_lng <= coords.lng <= self.max_lng
        )

    @classmethod
    def from_settings(cls, settings) -> "BoundingBox":
        return cls(
            min_lat=settings.BBOX_MIN_LAT,
            max_lat=settings.BBOX_MAX_LAT,
            min_lng=settings.BBOX_MIN_LNG,
            max_lng=settings.BBOX_MAX_LNG,
        )


class ResultType(str, Enum):
    COORDINATES = "coordinates"
    ADDRESS = "address"


@dataclass(frozen=True)
class ResolutionResult:
    """
    Outcome of reading a map link.

    - type=coordinates: data is a Coordinates
    - type=address: data is a free-text address still to be geocoded
    """
    type: ResultType
    data: Union[Coordinates, str]

    @classmethod
    def from_coordinates(cls, coords: Coordinates) -> "ResolutionResult":
        return cls(type=ResultType.COORDINATES, data=coords)

    @classmethod
    def from_address(cls, address: str) -> "ResolutionResult":
        return cls(type=ResultType.ADDRESS, data=address)

    def to_dict(self) -> Dict[str, Any]:
        data = self.data.to_dict() if isinstance(self.data, Coordinates) else self.data
        return {"type": self.type.value, "data": data}


def _pick(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) not in (None, ""):
            return data[key]
    return None


def _parse_timestamp(value: Any, label: str) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid {label}: {value!r}") from exc


@dataclass
class Place:
    """
    A tracked restaurant or venue.

    (name, address) is unique under case-insensitive comparison; stores use
    `dedupe_key` to enforce it.
    """
    name: str
    address: str
    coords: Coordinates
    id: Optional[int] = None
    description: Optional[str] = None
    cuisine_type: Optional[str] = None
    price_range: Optional[str] = None
    rating: Optional[float] = None
    source: str = PlaceSource.MANUAL.value
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def dedupe_key(self) -> Tuple[str, str]:
        return (self.name.strip().lower(), self.address.strip().lower())

    def validate(self) -> None:
        if not self.name or not self.name.strip():
            raise ValidationError("Place name is required")
        if not self.address or not self.address.strip():
            raise ValidationError("Place address is required")
        if self.coords is None:
            raise ValidationError("Place coords are required")

    def check_region(self, bbox: BoundingBox) -> None:
        if not bbox.contains(self.coords):
            raise ValidationError(
                f"Coordinates {self.coords.lat}, {self.coords.lng} are outside the configured region"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "coords": self.coords.to_dict(),
            "description": self.description,
            "cuisine_type": self.cuisine_type,
            "price_range": self.price_range,
            "rating": self.rating,
            "source": self.source,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Place":
        """Build a Place from an API/JSON payload, accepting camelCase aliases."""
        if not data.get("name") or not data.get("address") or not data.get("coords"):
            raise ValidationError("Missing required fields: name, address, coords")
        try:
            rating = float(data["rating"]) if data.get("rating") not in (None, "") else None
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid rating: {data.get('rating')!r}") from exc
        place = cls(
            id=data.get("id") if isinstance(data.get("id"), int) else None,
            name=str(data["name"]).strip(),
            address=str(data["address"]).strip(),
            coords=Coordinates.from_dict(data["coords"]),
            description=data.get("description"),
            cuisine_type=_pick(data, "cuisine_type", "cuisineType"),
            price_range=_pick(data, "price_range", "priceRange", "tier"),
            rating=rating,
            source=data.get("source") or PlaceSource.MANUAL.value,
            created_at=_parse_timestamp(data.get("created_at"), "created_at"),
            updated_at=_parse_timestamp(data.get("updated_at"), "updated_at"),
        )
        place.validate()
        return place


@dataclass
class Preference:
    """Per-place flags for the (single) user. visited/want_to_visit are exclusive by convention."""
    place_id: int
    user_id: str
    visited: bool = False
    want_to_visit: bool = False
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "place_id": self.place_id,
            "user_id": self.user_id,
            "visited": self.visited,
            "want_to_visit": self.want_to_visit,
            "notes": self.notes,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


# Import pipeline results


@dataclass
class ImportFailure:
    """A row that could not be processed (missing data or unexpected error)."""
    row: Dict[str, str]
    reason: str  # "missing_name_or_address" | "processing_error"
    error: Optional[str] = None


@dataclass
class GeocodingFailure:
    """A row with name and address whose every resolution tier came back empty."""
    name: str
    address: str
    source: str
    attempts: List[str] = field(default_factory=list)


@dataclass
class BatchResult:
    added: List[Place] = field(default_factory=list)
    skipped: int = 0


@dataclass
class ImportReport:
    """
    Result of one CSV import.

    `resolved` holds every place the pipeline located; `added` the ones the
    store accepted (equal to `resolved` when no store is attached) and
    `skipped` the duplicates it rejected.
    """
    total_rows: int = 0
    resolved: List[Place] = field(default_factory=list)
    added: List[Place] = field(default_factory=list)
    failed: List[ImportFailure] = field(default_factory=list)
    geocoding_failures: List[GeocodingFailure] = field(default_factory=list)
    skipped: int = 0
    flush_error: Optional[str] = None

    def summary(self) -> Dict[str, Any]:
        return {
            "total_rows": self.total_rows,
            "resolved": len(self.resolved),
            "added": len(self.added),
            "skipped": self.skipped,
            "geocoding_failures": len(self.geocoding_failures),
            "failed_rows": len(self.failed),
            "flush_error": self.flush_error,
        }


class PlaceStore(Protocol):
    """Persistence contract shared by the SQL store and the local JSON cache."""

    def list_places(self) -> List[Place]: ...

    def create_place(self, place: Place) -> Place: ...

    def update_place(self, place_id: int, place: Place) -> Place: ...

    def delete_place(self, place_id: int) -> None: ...

    def create_many(self, places: List[Place]) -> BatchResult: ...

"""
Places API routes.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, File, HTTPException, UploadFile
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError

from db import SessionLocal
from domain.errors import ConflictError, NotFoundError, ValidationError
from domain.models import ImportReport, Place
from repositories import PlacesRepository, SqlPlaceStore
from services.coordinate_repair import repair_invalid_coordinates
from services.csv_rows import read_csv_rows
from services.geocode_cache import get_default_geocode_cache
from services.geocoding import AddressGeocoder
from services.import_pipeline import ImportPipeline
from services.page_fetcher import get_default_page_fetcher
from services.tracker_state import filter_places
from services.url_extractor import UrlLocationExtractor
from settings import settings
from storage.local_cache import get_default_local_cache

router = APIRouter()
places_repo = PlacesRepository()
logger = logging.getLogger(__name__)


class CoordsSchema(BaseModel):
    lat: float
    lng: float


class PlaceCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Optional here so missing fields come back as 400 from domain validation
    name: Optional[str] = None
    address: Optional[str] = None
    coords: Optional[CoordsSchema] = None
    description: Optional[str] = None
    cuisine_type: Optional[str] = Field(default=None, alias="cuisineType")
    price_range: Optional[str] = Field(default=None, alias="priceRange")
    rating: Optional[float] = None
    source: Optional[str] = None


class PlaceResponse(BaseModel):
    id: Optional[int] = None
    name: str
    address: str
    coords: CoordsSchema
    description: Optional[str] = None
    cuisine_type: Optional[str] = None
    price_range: Optional[str] = None
    rating: Optional[float] = None
    source: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class PlaceMutationResponse(BaseModel):
    message: str
    place: PlaceResponse


class BatchCreate(BaseModel):
    places: Any = None


class BatchResponse(BaseModel):
    message: str
    total: int
    added: int
    skipped: int


class ImportFailureResponse(BaseModel):
    row: Dict[str, str]
    reason: str
    error: Optional[str] = None


class GeocodingFailureResponse(BaseModel):
    name: str
    address: str
    source: str
    attempts: List[str] = Field(default_factory=list)


class ImportResponse(BaseModel):
    summary: Dict[str, Any]
    added: List[PlaceResponse]
    failed: List[ImportFailureResponse]
    geocoding_failures: List[GeocodingFailureResponse]


class RepairResponse(BaseModel):
    checked: int
    fixed: List[str]
    unfixed: List[str]


def place_to_response(place: Place) -> PlaceResponse:
    """Convert domain Place to API response."""
    return PlaceResponse(**place.to_dict())


def _place_from_payload(data: PlaceCreate) -> Place:
    try:
        return Place.from_dict(data.model_dump(exclude_none=True))
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


def report_to_response(report: ImportReport) -> ImportResponse:
    return ImportResponse(
        summary=report.summary(),
        added=[place_to_response(p) for p in report.added],
        failed=[
            ImportFailureResponse(row=f.row, reason=f.reason, error=f.error) for f in report.failed
        ],
        geocoding_failures=[
            GeocodingFailureResponse(name=f.name, address=f.address, source=f.source, attempts=f.attempts)
            for f in report.geocoding_failures
        ],
    )


def build_geocoder() -> AddressGeocoder:
    return AddressGeocoder(cache=get_default_geocode_cache())


def build_import_pipeline(store) -> ImportPipeline:
    extractor = UrlLocationExtractor(fetcher=get_default_page_fetcher())
    return ImportPipeline(extractor=extractor, geocoder=build_geocoder(), store=store)


def _mirror_to_local_cache(places: List[Place]) -> None:
    if not settings.LOCAL_CACHE_ENABLED:
        return
    try:
        get_default_local_cache().replace_places(places)
    except OSError as exc:
        logger.warning("Could not refresh local cache: %s", exc)


@router.get("", response_model=List[PlaceResponse])
async def list_places(q: Optional[str] = None):
    """List places (newest first), optionally filtered by name/address substring."""
    try:
        with SessionLocal() as session:
            places = places_repo.list_places(session, q)
    except SQLAlchemyError as exc:
        if not settings.LOCAL_CACHE_ENABLED:
            raise HTTPException(status_code=503, detail="Database unavailable")
        logger.warning("Database unavailable, serving places from local cache: %s", exc)
        places = filter_places(get_default_local_cache().list_places(), q or "")
        return [place_to_response(p) for p in places]

    if not q:
        _mirror_to_local_cache(places)
    return [place_to_response(p) for p in places]


@router.post("", response_model=PlaceMutationResponse)
async def create_place(data: PlaceCreate):
    """Add a single place. Duplicate (name, address) pairs are rejected with 409."""
    place = _place_from_payload(data)
    with SessionLocal() as session:
        try:
            created = places_repo.create_place(session, place)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        except ConflictError:
            raise HTTPException(status_code=409, detail="Place already exists")
    return PlaceMutationResponse(message="Place added successfully", place=place_to_response(created))


@router.put("/{place_id}", response_model=PlaceMutationResponse)
async def update_place(place_id: int, data: PlaceCreate):
    """Replace a place's fields."""
    place = _place_from_payload(data)
    with SessionLocal() as session:
        try:
            updated = places_repo.update_place(session, place_id, place)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        except NotFoundError:
            raise HTTPException(status_code=404, detail="Place not found")
        except ConflictError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
    return PlaceMutationResponse(message="Place updated successfully", place=place_to_response(updated))


@router.delete("/{place_id}")
async def delete_place(place_id: int):
    with SessionLocal() as session:
        try:
            places_repo.delete_place(session, place_id)
        except NotFoundError:
            raise HTTPException(status_code=404, detail="Place not found")
    return {"message": "Place deleted successfully"}


@router.post("/batch", response_model=BatchResponse)
async def create_places_batch(data: BatchCreate):
    """Save several places at once, skipping ones already stored."""
    if not isinstance(data.places, list):
        raise HTTPException(status_code=400, detail="Places must be an array")
    places: List[Place] = []
    for index, item in enumerate(data.places):
        if not isinstance(item, dict):
            raise HTTPException(status_code=400, detail=f"Place at index {index} is not an object")
        try:
            place = Place.from_dict(item)
            place.check_region(places_repo.bbox)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=f"Place at index {index}: {exc}")
        places.append(place)

    with SessionLocal() as session:
        result = places_repo.create_many(session, places)
        total = places_repo.count(session)
    return BatchResponse(
        message=f"Added {len(result.added)} new places",
        total=total,
        added=len(result.added),
        skipped=result.skipped,
    )


@router.post("/import", response_model=ImportResponse)
async def import_places_csv(file: UploadFile = File(...)):
    """Import places from an uploaded CSV (map list export, licensing register, or any name/address/url columns)."""
    content = await file.read()
    try:
        rows = read_csv_rows(content)
    except (ValidationError, UnicodeDecodeError) as exc:
        raise HTTPException(status_code=400, detail=f"Invalid CSV: {exc}")
    if not rows:
        raise HTTPException(status_code=400, detail="No data found in CSV file")

    logger.info("Importing %d CSV rows from %s", len(rows), file.filename)
    with SessionLocal() as session:
        pipeline = build_import_pipeline(SqlPlaceStore(session, places_repo))
        report = await pipeline.import_rows(rows)
    return report_to_response(report)


@router.post("/repair-coordinates", response_model=RepairResponse)
def repair_coordinates():
    """Re-geocode places whose coordinates fall outside the configured bounding box."""
    with SessionLocal() as session:
        places = places_repo.list_places(session)
        report = repair_invalid_coordinates(places, build_geocoder())
        fixed: List[str] = []
        unfixed = [p.name for p in report.unfixed]
        for place in report.fixed:
            try:
                places_repo.update_place(session, place.id, place)
                fixed.append(place.name)
            except (NotFoundError, ConflictError) as exc:
                logger.warning("Could not save fixed coordinates for %s: %s", place.name, exc)
                unfixed.append(place.name)
    return RepairResponse(checked=report.checked, fixed=fixed, unfixed=unfixed)

"""
Preferences API routes (visited / want-to-visit flags and notes for the single user).
"""
import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError

from db import SessionLocal
from domain.errors import NotFoundError
from domain.models import Preference
from repositories import PreferencesRepository
from settings import settings
from storage.local_cache import get_default_local_cache

router = APIRouter()
preferences_repo = PreferencesRepository()
logger = logging.getLogger(__name__)


class PreferencesPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    visited: List[int] = Field(default_factory=list)
    want_to_visit: List[int] = Field(default_factory=list, alias="wantToVisit")


class PreferencesResponse(BaseModel):
    visited: List[int]
    wantToVisit: List[int]
    notes: Dict[int, str] = Field(default_factory=dict)


class PreferenceUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    visited: Optional[bool] = None
    want_to_visit: Optional[bool] = Field(default=None, alias="wantToVisit")
    notes: Optional[str] = None


class PreferenceResponse(BaseModel):
    place_id: int
    user_id: str
    visited: bool
    want_to_visit: bool
    notes: Optional[str] = None
    updated_at: Optional[str] = None


def preferences_to_response(preferences: List[Preference]) -> PreferencesResponse:
    return PreferencesResponse(
        visited=[p.place_id for p in preferences if p.visited],
        wantToVisit=[p.place_id for p in preferences if p.want_to_visit and not p.visited],
        notes={p.place_id: p.notes for p in preferences if p.notes},
    )


@router.get("", response_model=PreferencesResponse)
async def get_preferences():
    try:
        with SessionLocal() as session:
            preferences = preferences_repo.list_for_user(session, settings.DEFAULT_USER_ID)
    except SQLAlchemyError as exc:
        if not settings.LOCAL_CACHE_ENABLED:
            raise HTTPException(status_code=503, detail="Database unavailable")
        logger.warning("Database unavailable, serving preferences from local cache: %s", exc)
        cached = get_default_local_cache().load_preferences()
        return PreferencesResponse(visited=cached["visited"], wantToVisit=cached["wantToVisit"])
    return preferences_to_response(preferences)


@router.post("")
async def save_preferences(data: PreferencesPayload):
    """
    Replace the visited / want-to-visit sets.

    The sets are written to the local cache first, so they survive a database
    outage; ids that do not match a stored place are ignored by the database.
    """
    if settings.LOCAL_CACHE_ENABLED:
        get_default_local_cache().save_preferences(data.visited, data.want_to_visit)
    try:
        with SessionLocal() as session:
            preferences_repo.replace_flags(
                session, settings.DEFAULT_USER_ID, data.visited, data.want_to_visit
            )
    except SQLAlchemyError as exc:
        if not settings.LOCAL_CACHE_ENABLED:
            raise HTTPException(status_code=503, detail="Database unavailable")
        logger.warning("Database unavailable, preferences kept in local cache only: %s", exc)
        return {"message": "Preferences saved to local cache"}
    return {"message": "Preferences saved successfully"}


@router.put("/{place_id}", response_model=PreferenceResponse)
async def update_preference(place_id: int, data: PreferenceUpdate):
    """Upsert one place's preference. Marking visited clears want-to-visit and vice versa."""
    visited = data.visited
    want_to_visit = data.want_to_visit
    if visited and want_to_visit is None:
        want_to_visit = False
    elif want_to_visit and visited is None:
        visited = False

    with SessionLocal() as session:
        try:
            preference = preferences_repo.upsert(
                session,
                place_id,
                settings.DEFAULT_USER_ID,
                visited=visited,
                want_to_visit=want_to_visit,
                notes=data.notes,
            )
        except NotFoundError:
            raise HTTPException(status_code=404, detail="Place not found")
    return PreferenceResponse(**preference.to_dict())

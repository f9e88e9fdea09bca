"""
Place repository backed by SQLAlchemy/SQLite.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from domain.errors import ConflictError, NotFoundError
from domain.models import BatchResult, BoundingBox, Coordinates, Place
from repositories.models import PlaceORM
from settings import settings


def _place_from_orm(orm: PlaceORM) -> Place:
    return Place(
        id=orm.id,
        name=orm.name,
        address=orm.address,
        coords=Coordinates(lat=orm.lat, lng=orm.lng),
        description=orm.description,
        cuisine_type=orm.cuisine_type,
        price_range=orm.price_range,
        rating=orm.rating,
        source=orm.source,
        created_at=orm.created_at,
        updated_at=orm.updated_at,
    )


def _update_orm_from_place(orm: PlaceORM, place: Place) -> None:
    name_key, address_key = place.dedupe_key
    orm.name = place.name
    orm.address = place.address
    orm.name_key = name_key
    orm.address_key = address_key
    orm.lat = place.coords.lat
    orm.lng = place.coords.lng
    orm.description = place.description
    orm.cuisine_type = place.cuisine_type
    orm.price_range = place.price_range
    orm.rating = place.rating
    orm.source = place.source


class PlacesRepository:
    """CRUD operations for places. New and edited places must lie inside `bbox`."""

    def __init__(self, bbox: Optional[BoundingBox] = None):
        self.bbox = bbox or BoundingBox.from_settings(settings)

    def list_places(self, session: Session, query: Optional[str] = None) -> List[Place]:
        q = session.query(PlaceORM)
        if query:
            like = f"%{query.lower()}%"
            q = q.filter(or_(PlaceORM.name_key.like(like), PlaceORM.address_key.like(like)))
        places = q.order_by(PlaceORM.created_at.desc(), PlaceORM.id.desc()).all()
        return [_place_from_orm(p) for p in places]

    def find_duplicate(self, session: Session, place: Place) -> Optional[PlaceORM]:
        name_key, address_key = place.dedupe_key
        return (
            session.query(PlaceORM)
            .filter(PlaceORM.name_key == name_key, PlaceORM.address_key == address_key)
            .first()
        )

    def create_place(self, session: Session, place: Place) -> Place:
        place.validate()
        place.check_region(self.bbox)
        if self.find_duplicate(session, place):
            raise ConflictError("Place already exists")
        now = datetime.utcnow()
        orm = PlaceORM(created_at=place.created_at or now, updated_at=now)
        _update_orm_from_place(orm, place)
        session.add(orm)
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise ConflictError("Place already exists") from exc
        session.refresh(orm)
        return _place_from_orm(orm)

    def update_place(self, session: Session, place_id: int, place: Place) -> Place:
        orm = session.get(PlaceORM, place_id)
        if not orm:
            raise NotFoundError(f"Place {place_id} not found")
        place.validate()
        place.check_region(self.bbox)
        existing = self.find_duplicate(session, place)
        if existing and existing.id != place_id:
            raise ConflictError("Another place already uses this name and address")
        _update_orm_from_place(orm, place)
        orm.updated_at = datetime.utcnow()
        session.add(orm)
        session.commit()
        session.refresh(orm)
        return _place_from_orm(orm)

    def delete_place(self, session: Session, place_id: int) -> None:
        orm = session.get(PlaceORM, place_id)
        if not orm:
            raise NotFoundError(f"Place {place_id} not found")
        session.delete(orm)
        session.commit()

    def create_many(self, session: Session, places: List[Place]) -> BatchResult:
        """
        Insert places, skipping any whose (name, address) is already stored or repeated in the batch.

        Nothing is written when any place is incomplete or outside the region.
        """
        result = BatchResult()
        if not places:
            return result
        for place in places:
            place.validate()
            place.check_region(self.bbox)
        seen = {
            (row.name_key, row.address_key)
            for row in session.query(PlaceORM.name_key, PlaceORM.address_key).all()
        }
        now = datetime.utcnow()
        new_orms: List[PlaceORM] = []
        for place in places:
            if place.dedupe_key in seen:
                result.skipped += 1
                continue
            seen.add(place.dedupe_key)
            orm = PlaceORM(created_at=place.created_at or now, updated_at=now)
            _update_orm_from_place(orm, place)
            session.add(orm)
            new_orms.append(orm)
        session.commit()
        for orm in new_orms:
            session.refresh(orm)
            result.added.append(_place_from_orm(orm))
        return result

    def count(self, session: Session) -> int:
        return session.query(func.count(PlaceORM.id)).scalar() or 0


class SqlPlaceStore:
    """PlaceStore bound to one session, for callers that work against the protocol."""

    def __init__(self, session: Session, repo: Optional[PlacesRepository] = None):
        self.session = session
        self.repo = repo or PlacesRepository()

    def list_places(self) -> List[Place]:
        return self.repo.list_places(self.session)

    def create_place(self, place: Place) -> Place:
        return self.repo.create_place(self.session, place)

    def update_place(self, place_id: int, place: Place) -> Place:
        return self.repo.update_place(self.session, place_id, place)

    def delete_place(self, place_id: int) -> None:
        self.repo.delete_place(self.session, place_id)

    def create_many(self, places: List[Place]) -> BatchResult:
        return self.repo.create_many(self.session, places)

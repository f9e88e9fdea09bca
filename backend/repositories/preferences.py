"""
Preference repository backed by SQLAlchemy/SQLite.

Preferences are keyed by (place_id, user_id) and written with upsert semantics.
"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from domain.errors import NotFoundError
from domain.models import Preference
from repositories.models import PlaceORM, PreferenceORM

logger = logging.getLogger(__name__)


def _preference_from_orm(orm: PreferenceORM) -> Preference:
    return Preference(
        place_id=orm.place_id,
        user_id=orm.user_id,
        visited=bool(orm.visited),
        want_to_visit=bool(orm.want_to_visit),
        notes=orm.notes,
        updated_at=orm.updated_at,
    )


class PreferencesRepository:
    """Upsert/list operations for per-place user preferences."""

    def list_for_user(self, session: Session, user_id: str) -> List[Preference]:
        rows = (
            session.query(PreferenceORM)
            .filter(PreferenceORM.user_id == user_id)
            .order_by(PreferenceORM.place_id)
            .all()
        )
        return [_preference_from_orm(r) for r in rows]

    def upsert(
        self,
        session: Session,
        place_id: int,
        user_id: str,
        *,
        visited: Optional[bool] = None,
        want_to_visit: Optional[bool] = None,
        notes: Optional[str] = None,
    ) -> Preference:
        """
        Insert or update the preference for a place.

        Only provided fields are updated; omitted fields keep their stored value
        (or the default on first insert).
        """
        if session.get(PlaceORM, place_id) is None:
            raise NotFoundError(f"Place {place_id} not found")
        orm = (
            session.query(PreferenceORM)
            .filter(PreferenceORM.place_id == place_id, PreferenceORM.user_id == user_id)
            .first()
        )
        if orm is None:
            orm = PreferenceORM(place_id=place_id, user_id=user_id, visited=False, want_to_visit=False)
        if visited is not None:
            orm.visited = visited
        if want_to_visit is not None:
            orm.want_to_visit = want_to_visit
        if notes is not None:
            orm.notes = notes
        orm.updated_at = datetime.utcnow()
        session.add(orm)
        session.commit()
        session.refresh(orm)
        return _preference_from_orm(orm)

    def replace_flags(
        self,
        session: Session,
        user_id: str,
        visited_ids: Iterable[int],
        want_to_visit_ids: Iterable[int],
    ) -> List[Preference]:
        """Set visited/want-to-visit flags for the user to exactly the given id sets; notes are kept."""
        visited = set(visited_ids)
        wanted = set(want_to_visit_ids)
        known_ids = {
            pid for (pid,) in session.query(PlaceORM.id).filter(PlaceORM.id.in_(visited | wanted)).all()
        }
        unknown = (visited | wanted) - known_ids
        if unknown:
            logger.warning("Ignoring preferences for unknown place ids: %s", sorted(unknown))

        existing = {
            orm.place_id: orm
            for orm in session.query(PreferenceORM).filter(PreferenceORM.user_id == user_id).all()
        }
        now = datetime.utcnow()
        for place_id in known_ids - existing.keys():
            existing[place_id] = PreferenceORM(place_id=place_id, user_id=user_id)
        for place_id, orm in existing.items():
            orm.visited = place_id in visited
            orm.want_to_visit = place_id in wanted and place_id not in visited
            orm.updated_at = now
            session.add(orm)
        session.commit()
        return self.list_for_user(session, user_id)

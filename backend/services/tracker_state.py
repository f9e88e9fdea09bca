"""
Explicit application state for a tracker session: places, visited and
want-to-visit sets, and the search filter. Passed into and out of the import
and persistence calls instead of living in globals.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Set

from domain.models import ImportReport, Place, Preference


def filter_places(places: Iterable[Place], query: str) -> List[Place]:
    """Case-insensitive substring match on name or address."""
    places = list(places)
    q = (query or "").strip().lower()
    if not q:
        return places
    return [p for p in places if q in p.name.lower() or q in p.address.lower()]


@dataclass
class TrackerState:
    places: List[Place] = field(default_factory=list)
    visited: Set[int] = field(default_factory=set)
    want_to_visit: Set[int] = field(default_factory=set)
    search_query: str = ""

    def filtered_places(self) -> List[Place]:
        return filter_places(self.places, self.search_query)

    @property
    def visited_count(self) -> int:
        return len(self.visited)

    @property
    def want_to_visit_count(self) -> int:
        return len(self.want_to_visit)

    def mark_visited(self, place_id: int) -> None:
        self.visited.add(place_id)
        self.want_to_visit.discard(place_id)

    def mark_want_to_visit(self, place_id: int) -> None:
        self.want_to_visit.add(place_id)
        self.visited.discard(place_id)

    def clear_status(self, place_id: int) -> None:
        self.visited.discard(place_id)
        self.want_to_visit.discard(place_id)

    def add_places(self, places: Iterable[Place]) -> int:
        """Append places not already present by (name, address); returns how many were added."""
        known = {p.dedupe_key for p in self.places}
        added = 0
        for place in places:
            if place.dedupe_key in known:
                continue
            known.add(place.dedupe_key)
            self.places.append(place)
            added += 1
        return added

    def apply_import(self, report: ImportReport) -> int:
        return self.add_places(report.added)

    def apply_preferences(self, preferences: Iterable[Preference]) -> None:
        preferences = list(preferences)
        self.visited = {p.place_id for p in preferences if p.visited}
        self.want_to_visit = {p.place_id for p in preferences if p.want_to_visit and not p.visited}

    def to_preferences_payload(self) -> Dict[str, List[int]]:
        return {"visited": sorted(self.visited), "wantToVisit": sorted(self.want_to_visit)}

    @classmethod
    def from_preferences_payload(cls, payload: Dict[str, Any], places: Iterable[Place] = ()) -> "TrackerState":
        return cls(
            places=list(places),
            visited=set(payload.get("visited") or []),
            want_to_visit=set(payload.get("wantToVisit") or []),
        )

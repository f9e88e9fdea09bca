from dataclasses import dataclass
from typing import Optional


@dataclass
class GeoCandidate:
    provider: str  # e.g. "onemap"
    lat: float
    lng: float
    address: Optional[str] = None  # provider's formatted address, when given
    label: Optional[str] = None  # building / search value the provider matched
    raw: Optional[dict] = None

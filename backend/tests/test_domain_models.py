import pytest

from domain.errors import ValidationError
from domain.models import (
    BoundingBox,
    Coordinates,
    Place,
    PlaceSource,
    ResolutionResult,
    fallback_source,
)


def test_bbox_edges_are_inclusive():
    bbox = BoundingBox(min_lat=1.0, max_lat=2.0, min_lng=103.0, max_lng=105.0)
    assert bbox.contains(Coordinates(1.0, 105.0))
    assert not bbox.contains(Coordinates(0.999, 104.0))
    assert not bbox.contains(Coordinates(1.5, 105.1))


def test_place_from_dict_accepts_camel_case():
    place = Place.from_dict({
        "name": " Tian Tian ",
        "address": "1 Kadayanallur St",
        "coords": {"lat": "1.28", "lng": 103.84},
        "cuisineType": "Chinese",
        "tier": "$",
        "rating": "4.5",
    })
    assert place.name == "Tian Tian"
    assert place.coords == Coordinates(1.28, 103.84)
    assert (place.cuisine_type, place.price_range, place.rating) == ("Chinese", "$", 4.5)
    assert place.source == "manual"


@pytest.mark.parametrize(
    "data",
    [
        {"address": "1 Road", "coords": {"lat": 1.3, "lng": 103.8}},
        {"name": "A", "coords": {"lat": 1.3, "lng": 103.8}},
        {"name": "A", "address": "1 Road"},
        {"name": "A", "address": "1 Road", "coords": {"lat": "north"}},
    ],
)
def test_place_from_dict_rejects_incomplete(data):
    with pytest.raises(ValidationError):
        Place.from_dict(data)


def test_dedupe_key_ignores_case_and_padding():
    a = Place(name="Tian Tian ", address="MAXWELL", coords=Coordinates(1.3, 103.8))
    b = Place(name="tian tian", address=" maxwell", coords=Coordinates(1.3, 103.8))
    assert a.dedupe_key == b.dedupe_key


def test_fallback_source_tag():
    assert fallback_source(PlaceSource.ADDRESS_COLUMN) == "address_column_fallback"
    assert fallback_source("direct_address") == "direct_address_fallback"


def test_resolution_result_to_dict():
    assert ResolutionResult.from_coordinates(Coordinates(1.3, 103.8)).to_dict() == {
        "type": "coordinates",
        "data": {"lat": 1.3, "lng": 103.8},
    }
    assert ResolutionResult.from_address("1 Road").to_dict() == {"type": "address", "data": "1 Road"}


@pytest.mark.parametrize(
    "extra",
    [{"rating": "great"}, {"rating": [4]}, {"created_at": "yesterday"}, {"updated_at": 12}],
)
def test_place_from_dict_rejects_bad_optional_fields(extra):
    data = {"name": "A", "address": "1 Road", "coords": {"lat": 1.3, "lng": 103.8}, **extra}
    with pytest.raises(ValidationError):
        Place.from_dict(data)


def test_place_from_dict_parses_timestamps():
    place = Place.from_dict({
        "name": "A",
        "address": "1 Road",
        "coords": {"lat": 1.3, "lng": 103.8},
        "created_at": "2025-01-02T03:04:05",
        "updated_at": "",
    })
    assert place.created_at.year == 2025
    assert place.updated_at is None


def test_check_region():
    bbox = BoundingBox(min_lat=1.0, max_lat=2.0, min_lng=103.0, max_lng=105.0)
    Place(name="A", address="1 Road", coords=Coordinates(1.3, 103.8)).check_region(bbox)
    with pytest.raises(ValidationError):
        Place(name="Eiffel", address="Paris", coords=Coordinates(48.85, 2.29)).check_region(bbox)

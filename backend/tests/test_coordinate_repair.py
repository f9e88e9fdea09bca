from domain.models import BoundingBox, Coordinates, Place, PLACEHOLDER_ADDRESS
from services.coordinate_repair import find_invalid_places, repair_invalid_coordinates

SG_BBOX = BoundingBox(min_lat=1.0, max_lat=2.0, min_lng=103.0, max_lng=105.0)


class FakeGeocoder:
    def __init__(self, known):
        self.known = known
        self.bbox = SG_BBOX
        self.calls = []

    def geocode(self, address, max_retries=None):
        self.calls.append(address)
        return self.known.get(address)


def _place(name, address, lat, lng):
    return Place(id=hash(name) % 1000, name=name, address=address, coords=Coordinates(lat, lng))


def test_find_invalid_places():
    good = _place("Good", "1 Road", 1.3, 103.8)
    bad = _place("Bad", "2 Road", 40.7, -74.0)
    assert find_invalid_places([good, bad], SG_BBOX) == [bad]


def test_repairs_by_name_then_address():
    by_name = _place("Lau Pa Sat", "18 Raffles Quay", 0.0, 0.0)
    by_address = _place("Unknown Stall", "1 Kadayanallur St", 40.7, -74.0)
    geocoder = FakeGeocoder({
        "Lau Pa Sat": Coordinates(1.2806, 103.8504),
        "1 Kadayanallur St": Coordinates(1.28, 103.84),
    })
    sleeps = []

    report = repair_invalid_coordinates(
        [by_name, by_address, _place("Fine", "3 Road", 1.3, 103.8)],
        geocoder,
        default_region="Singapore",
        subareas=[],
        sleep=sleeps.append,
    )

    assert report.checked == 3
    assert [p.name for p in report.fixed] == ["Lau Pa Sat", "Unknown Stall"]
    assert all(p.source == "fixed_coordinates" for p in report.fixed)
    assert by_address.coords == Coordinates(1.28, 103.84)
    assert sleeps == [0.5]


def test_placeholder_address_is_not_geocoded():
    place = _place("Mystery", PLACEHOLDER_ADDRESS, 0.0, 0.0)
    geocoder = FakeGeocoder({"Mystery, Bedok, Singapore": Coordinates(1.32, 103.93)})

    report = repair_invalid_coordinates(
        [place], geocoder, default_region="Singapore", subareas=["Bedok"], sleep=lambda s: None
    )

    assert geocoder.calls == ["Mystery", "Mystery, Bedok, Singapore"]
    assert report.fixed == [place]


def test_unfixable_places_are_reported():
    place = _place("Nowhere", "Atlantis", 0.0, 0.0)
    report = repair_invalid_coordinates(
        [place], FakeGeocoder({}), default_region="Singapore", subareas=[], sleep=lambda s: None
    )
    assert report.unfixed == [place]
    assert place.coords == Coordinates(0.0, 0.0)

from services import geocode_cache as gc
from domain.models import Coordinates


def test_put_then_get_normalizes_query(tmp_path):
    cache = gc.GeocodeCache(db_path=str(tmp_path / "geocode.sqlite"), default_ttl_seconds=1000)
    cache.put("  Maxwell   Food Centre ", Coordinates(1.2803, 103.8449))
    assert cache.get("maxwell food centre") == Coordinates(1.2803, 103.8449)
    assert cache.get("Lau Pa Sat") is None


def test_expired_entries_are_ignored(tmp_path, monkeypatch):
    cache = gc.GeocodeCache(db_path=str(tmp_path / "geocode.sqlite"), default_ttl_seconds=10)
    monkeypatch.setattr(gc.time, "time", lambda: 1_000_000.0)
    cache.put("Maxwell", Coordinates(1.28, 103.84))

    monkeypatch.setattr(gc.time, "time", lambda: 1_000_005.0)
    assert cache.get("Maxwell") == Coordinates(1.28, 103.84)

    monkeypatch.setattr(gc.time, "time", lambda: 1_000_011.0)
    assert cache.get("Maxwell") is None


def test_zero_ttl_never_expires(tmp_path, monkeypatch):
    cache = gc.GeocodeCache(db_path=str(tmp_path / "geocode.sqlite"), default_ttl_seconds=0)
    monkeypatch.setattr(gc.time, "time", lambda: 0.0)
    cache.put("Maxwell", Coordinates(1.28, 103.84))
    monkeypatch.setattr(gc.time, "time", lambda: 10_000_000.0)
    assert cache.get("Maxwell") == Coordinates(1.28, 103.84)


def test_entries_survive_reopen(tmp_path):
    path = str(tmp_path / "geocode.sqlite")
    gc.GeocodeCache(db_path=path, default_ttl_seconds=1000).put("Maxwell", Coordinates(1.28, 103.84))
    assert gc.GeocodeCache(db_path=path).get("Maxwell") == Coordinates(1.28, 103.84)

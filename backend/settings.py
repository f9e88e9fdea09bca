import os
from pathlib import Path
from typing import List

# Basic settings helper to read environment configuration.

BACKEND_ROOT = Path(__file__).resolve().parent

DEFAULT_SUBAREAS = (
    "Marina Bay,Orchard,Chinatown,Little India,Clarke Quay,"
    "Sentosa,Jurong,Tampines,Woodlands,Ang Mo Kio"
)


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_float(val: str | None, default: float) -> float:
    if val is None or val.strip() == "":
        return default
    return float(val)


def _as_int(val: str | None, default: int) -> int:
    if val is None or val.strip() == "":
        return default
    return int(val)


def _as_list(val: str | None, default: str) -> List[str]:
    raw = default if val is None else val
    return [part.strip() for part in raw.split(",") if part.strip()]


class Settings:
    def __init__(self) -> None:
        self.DATABASE_URL: str = os.getenv(
            "DATABASE_URL", f"sqlite:///{BACKEND_ROOT / 'app.db'}"
        )
        self.LOCAL_CACHE_PATH: str = os.getenv(
            "LOCAL_CACHE_PATH", str(BACKEND_ROOT / "data" / "local_cache.json")
        )
        self.LOCAL_CACHE_ENABLED: bool = _as_bool(os.getenv("LOCAL_CACHE_ENABLED"), True)
        # Single-user app; preferences are keyed by this id.
        self.DEFAULT_USER_ID: str = os.getenv("DEFAULT_USER_ID", "default_user")

        self.DEFAULT_REGION: str = os.getenv("DEFAULT_REGION", "Singapore")
        self.REGION_SUBAREAS: List[str] = _as_list(os.getenv("REGION_SUBAREAS"), DEFAULT_SUBAREAS)
        self.BBOX_MIN_LAT: float = _as_float(os.getenv("BBOX_MIN_LAT"), 1.0)
        self.BBOX_MAX_LAT: float = _as_float(os.getenv("BBOX_MAX_LAT"), 2.0)
        self.BBOX_MIN_LNG: float = _as_float(os.getenv("BBOX_MIN_LNG"), 103.0)
        self.BBOX_MAX_LNG: float = _as_float(os.getenv("BBOX_MAX_LNG"), 105.0)

        self.IMPORT_BATCH_SIZE: int = _as_int(os.getenv("IMPORT_BATCH_SIZE"), 5)
        self.IMPORT_BATCH_DELAY: float = _as_float(os.getenv("IMPORT_BATCH_DELAY"), 0.5)
        self.GEOCODE_MAX_RETRIES: int = _as_int(os.getenv("GEOCODE_MAX_RETRIES"), 2)
        self.GEOCODE_RETRY_DELAY: float = _as_float(os.getenv("GEOCODE_RETRY_DELAY"), 1.0)
        self.GEOCODE_CACHE_PATH: str = os.getenv(
            "GEOCODE_CACHE_PATH", str(BACKEND_ROOT / "data" / "geocode_cache.sqlite")
        )
        self.GEOCODE_CACHE_TTL_SECONDS: int = _as_int(
            os.getenv("GEOCODE_CACHE_TTL_SECONDS"), 90 * 24 * 3600
        )

        self.ONEMAP_SEARCH_URL: str = os.getenv(
            "ONEMAP_SEARCH_URL", "https://www.onemap.gov.sg/api/common/elastic/search"
        )
        self.ONEMAP_MIN_INTERVAL: float = _as_float(os.getenv("ONEMAP_MIN_INTERVAL"), 0.25)
        self.ONEMAP_USER_AGENT: str = os.getenv("ONEMAP_USER_AGENT", "places-tracker/0.1")
        self.PAGE_FETCH_ENABLED: bool = _as_bool(os.getenv("PAGE_FETCH_ENABLED"), True)
        self.PAGE_PROXY_URL: str | None = os.getenv("PAGE_PROXY_URL") or None
        self.HTTP_USER_AGENT: str = os.getenv(
            "HTTP_USER_AGENT",
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0 Safari/537.36",
        )


settings = Settings()

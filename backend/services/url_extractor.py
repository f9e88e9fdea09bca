"""
Read coordinates or an address out of a map-service share URL.

Strategies run in a fixed order and the first usable result wins:

1. URL matchers: `@lat,lng` path segment, `ll=` parameter, `!3d..!4d..`
   marker in the `data` parameter/segment, `q=` parameter (address).
2. When a page fetcher is configured: the post-redirect URL, then the HTML
   coordinate patterns.
3. The `/place/<name>/` path segment (address).
4. The fetched page's <title> (address).

Every coordinate pair must fall inside the bounding box; pairs outside it
count as no match. Malformed input yields None, never an exception.
"""
from __future__ import annotations

import html as html_lib
import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, unquote, unquote_plus, urlsplit

from domain.errors import TransientNetworkError
from domain.models import BoundingBox, Coordinates, ResolutionResult
from services.page_fetcher import FetchedPage, PageFetcher
from services.strategy_chain import Strategy, run_chain
from settings import settings

logger = logging.getLogger(__name__)

_NUM = r"(-?\d+(?:\.\d+)?)"

# "Name — Area", "Name | Area", "Name in Area"
SEPARATOR_RE = re.compile(r"\s*[—–|]\s*|\s+in\s+")

TITLE_RE = re.compile(r"<title[^>]*>([^<]+)<", re.IGNORECASE)
TITLE_SUFFIX_RE = re.compile(r"\s*-\s*Google Maps\s*$", re.IGNORECASE)

AT_PATH_RE = re.compile(rf"@{_NUM},{_NUM}")
DATA_MARKER_RE = re.compile(rf"!3d{_NUM}!4d{_NUM}")

HTML_COORDINATE_PATTERNS: List[Tuple[str, "re.Pattern[str]"]] = [
    ("json_center", re.compile(rf'"center":\s*\[{_NUM},\s*{_NUM}\]')),
    ("json_lat_lng", re.compile(rf'"lat":\s*{_NUM},\s*"lng":\s*{_NUM}')),
    ("data_attributes", re.compile(rf'data-lat="{_NUM}"[^>]*data-lng="{_NUM}"')),
    ("app_initialization_state", re.compile(rf"window\.APP_INITIALIZATION_STATE.*?\[{_NUM},{_NUM}\]")),
    ("data_marker", DATA_MARKER_RE),
    ("script_array_zoom", re.compile(rf"\[{_NUM},\s*{_NUM}\].*?zoom")),
    ("quoted_at_zoom", re.compile(rf'"@{_NUM},{_NUM},\d+(?:\.\d+)?z"')),
    ("meta_geo_position", re.compile(rf'<meta(?=[^>]*name="geo\.position")[^>]*content="{_NUM}[,;]\s*{_NUM}"')),
    ("json_ld_geo", re.compile(rf'"geo":\s*{{[^}}]*?"latitude":\s*"?{_NUM}"?,\s*"longitude":\s*"?{_NUM}"?')),
    (
        "microdata",
        re.compile(
            rf'itemprop="latitude"[^>]*content="{_NUM}".{{0,200}}?itemprop="longitude"[^>]*content="{_NUM}"',
            re.DOTALL,
        ),
    ),
]


@dataclass
class ParsedLink:
    raw: str
    path: str  # still percent-encoded
    query: Dict[str, List[str]]

    def param(self, key: str) -> Optional[str]:
        values = self.query.get(key)
        return values[0] if values else None


def parse_link(url: Optional[str]) -> Optional[ParsedLink]:
    text = (url or "").strip()
    if not text:
        return None
    try:
        parts = urlsplit(text)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return ParsedLink(raw=text, path=parts.path, query=parse_qs(parts.query))


def split_trailing_location(name: str) -> Optional[str]:
    """Return the trailing area of a "name | location" style string, if any."""
    parts = [p.strip() for p in SEPARATOR_RE.split(name or "")]
    if len(parts) > 1 and parts[-1]:
        return parts[-1]
    return None


def _to_pair(lat: str, lng: str) -> Optional[Coordinates]:
    try:
        return Coordinates(lat=float(lat), lng=float(lng))
    except ValueError:
        return None


# URL matchers: each returns raw (unvalidated) coordinates or None.


def match_at_path(link: ParsedLink) -> Optional[Coordinates]:
    m = AT_PATH_RE.search(unquote(link.path))
    return _to_pair(*m.groups()) if m else None


def match_ll_param(link: ParsedLink) -> Optional[Coordinates]:
    ll = link.param("ll")
    if not ll or "," not in ll:
        return None
    lat, lng = ll.split(",", 1)
    return _to_pair(lat.strip(), lng.strip())


def match_data_marker(link: ParsedLink) -> Optional[Coordinates]:
    candidates = [link.param("data") or ""]
    candidates += [seg for seg in unquote(link.path).split("/") if seg.startswith("data=")]
    for text in candidates:
        m = DATA_MARKER_RE.search(unquote(text))
        if m:
            return _to_pair(*m.groups())
    return None


URL_COORDINATE_MATCHERS: List[Tuple[str, Callable[[ParsedLink], Optional[Coordinates]]]] = [
    ("at_path", match_at_path),
    ("ll_param", match_ll_param),
    ("data_param", match_data_marker),
]


def match_q_param(link: ParsedLink) -> Optional[str]:
    q = link.param("q")
    return q.strip() if q and q.strip() else None


def match_place_path(link: ParsedLink) -> Optional[str]:
    """Decoded `/place/<name>/` path segment."""
    parts = link.path.split("/")
    if "place" not in parts:
        return None
    idx = parts.index("place")
    if idx + 1 >= len(parts) or not parts[idx + 1]:
        return None
    return unquote_plus(parts[idx + 1]).strip() or None


def match_html_title(page_html: str) -> Optional[str]:
    m = TITLE_RE.search(page_html)
    if not m:
        return None
    title = html_lib.unescape(m.group(1)).strip()
    title = TITLE_SUFFIX_RE.sub("", title).strip()
    if not title or title.lower() == "google maps":
        return None
    return title


class UrlLocationExtractor:
    """Turn a map share URL into a ResolutionResult."""

    def __init__(
        self,
        fetcher: Optional[PageFetcher] = None,
        bbox: Optional[BoundingBox] = None,
        default_region: Optional[str] = None,
    ):
        self.fetcher = fetcher
        self.bbox = bbox or BoundingBox.from_settings(settings)
        self.default_region = default_region or settings.DEFAULT_REGION

    def _accept(self, coords: Optional[Coordinates], where: str) -> Optional[ResolutionResult]:
        if coords is None:
            return None
        if not self.bbox.contains(coords):
            logger.info("Invalid coordinates from %s: %s, %s", where, coords.lat, coords.lng)
            return None
        logger.info("Found coordinates from %s: %s, %s", where, coords.lat, coords.lng)
        return ResolutionResult.from_coordinates(coords)

    def _with_region(self, text: str) -> str:
        return f"{text}, {self.default_region}"

    def _url_strategies(self, link: ParsedLink, prefix: str = "") -> List[Strategy[ResolutionResult]]:
        return [
            Strategy(f"{prefix}{name}", lambda m=matcher, n=name: self._accept(m(link), f"{prefix}{n}"))
            for name, matcher in URL_COORDINATE_MATCHERS
        ]

    def _fetch(self, url: str) -> Optional[FetchedPage]:
        try:
            return self.fetcher(url)
        except TransientNetworkError as exc:
            logger.warning("Could not fetch %s: %s", url, exc)
            return None

    def _from_redirect(self, page: Optional[FetchedPage]) -> Optional[ResolutionResult]:
        if page is None or page.final_url == page.url:
            return None
        final = parse_link(page.final_url)
        if final is None:
            return None
        return run_chain(self._url_strategies(final, prefix="redirect_"), label=page.final_url).value

    def _from_html(self, page: Optional[FetchedPage]) -> Optional[ResolutionResult]:
        if page is None:
            return None
        for name, pattern in HTML_COORDINATE_PATTERNS:
            m = pattern.search(page.html)
            if not m:
                continue
            result = self._accept(_to_pair(*m.groups()), f"html:{name}")
            if result:
                return result
        return None

    def _from_place_path(self, link: ParsedLink) -> Optional[ResolutionResult]:
        name = match_place_path(link)
        if not name:
            return None
        location = split_trailing_location(name)
        if location:
            logger.info("Extracted location from place name %r: %r", name, location)
            return ResolutionResult.from_address(location)
        return ResolutionResult.from_address(self._with_region(name))

    def _from_title(self, page: Optional[FetchedPage]) -> Optional[ResolutionResult]:
        if page is None:
            return None
        title = match_html_title(page.html)
        if not title:
            return None
        logger.info("Extracted title from HTML: %r", title)
        return ResolutionResult.from_address(self._with_region(title))

    def extract(self, url: Optional[str]) -> Optional[ResolutionResult]:
        try:
            link = parse_link(url)
            if link is None:
                logger.info("Unparseable map URL: %r", url)
                return None

            fetched: Dict[str, Optional[FetchedPage]] = {}

            def page() -> Optional[FetchedPage]:
                if "page" not in fetched:
                    fetched["page"] = self._fetch(link.raw) if self.fetcher else None
                return fetched["page"]

            strategies = self._url_strategies(link) + [
                Strategy("q_param", lambda: self._q_address(link)),
                Strategy("redirect_url", lambda: self._from_redirect(page())),
                Strategy("html_coordinates", lambda: self._from_html(page())),
                Strategy("place_path", lambda: self._from_place_path(link)),
                Strategy("html_title", lambda: self._from_title(page())),
            ]
            outcome = run_chain(strategies, label=link.raw)
            if not outcome.succeeded:
                logger.info("Could not extract location from URL %s", link.raw)
            return outcome.value
        except Exception:
            logger.exception("Error extracting location from map URL %r", url)
            return None

    def _q_address(self, link: ParsedLink) -> Optional[ResolutionResult]:
        address = match_q_param(link)
        if not address:
            return None
        logger.info("Extracted address from 'q' param: %r", address)
        return ResolutionResult.from_address(address)

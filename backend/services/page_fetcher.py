"""
Fetch map share pages as raw HTML.

Short share links only reveal coordinates after redirecting, so the extractor
needs the page itself. Pages are fetched directly, or through the backend's
`/api/proxy/google-maps` endpoint when a proxy base URL is configured (the
browser client cannot read cross-origin pages).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import requests

from domain.errors import TransientNetworkError
from settings import settings

logger = logging.getLogger(__name__)
_session = requests.Session()

BROWSER_HEADERS = {
    "User-Agent": settings.HTTP_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.8",
}


@dataclass
class FetchedPage:
    url: str
    final_url: str
    html: str

    @property
    def length(self) -> int:
        return len(self.html)


PageFetcher = Callable[[str], FetchedPage]


def fetch_page(url: str, timeout: float = 15.0) -> FetchedPage:
    """GET the page directly, following redirects."""
    logger.info("Fetching page %s", url)
    try:
        resp = _session.get(url, headers=BROWSER_HEADERS, timeout=timeout, allow_redirects=True)
        resp.raise_for_status()
    except requests.RequestException as exc:
        status = getattr(getattr(exc, "response", None), "status_code", None)
        raise TransientNetworkError(f"Failed to fetch {url}: {exc}", status_code=status) from exc
    page = FetchedPage(url=url, final_url=resp.url or url, html=resp.text)
    logger.debug("Fetched %d characters of HTML from %s", page.length, page.final_url)
    return page


def make_proxy_fetcher(proxy_base_url: str, timeout: float = 20.0) -> PageFetcher:
    """Build a fetcher that goes through the backend proxy endpoint."""
    endpoint = proxy_base_url.rstrip("/") + "/proxy/google-maps"

    def _fetch(url: str) -> FetchedPage:
        try:
            resp = _session.get(endpoint, params={"url": url}, timeout=timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise TransientNetworkError(f"Proxy fetch failed for {url}: {exc}") from exc
        if not data.get("success"):
            raise TransientNetworkError(f"Proxy error for {url}: {data.get('error')}")
        html = data.get("html") or ""
        return FetchedPage(url=url, final_url=data.get("final_url") or data.get("url") or url, html=html)

    return _fetch


def get_default_page_fetcher() -> Optional[PageFetcher]:
    if not settings.PAGE_FETCH_ENABLED:
        return None
    if settings.PAGE_PROXY_URL:
        return make_proxy_fetcher(settings.PAGE_PROXY_URL)
    return fetch_page

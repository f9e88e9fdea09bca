"""
Page proxy route.

Browser clients cannot read cross-origin map pages, so they ask the backend to
fetch the HTML for them and run the coordinate patterns on the result.
"""
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from domain.errors import TransientNetworkError
from services import page_fetcher

router = APIRouter()
logger = logging.getLogger(__name__)


class ProxyResponse(BaseModel):
    success: bool
    html: str
    url: str
    final_url: str
    length: int


@router.get("/proxy/google-maps", response_model=ProxyResponse)
def proxy_google_maps(url: Optional[str] = None):
    if not url:
        raise HTTPException(status_code=400, detail="URL parameter is required")
    try:
        page = page_fetcher.fetch_page(url)
    except TransientNetworkError as exc:
        logger.warning("Proxy fetch failed: %s", exc)
        raise HTTPException(status_code=exc.status_code or 502, detail=str(exc))
    return ProxyResponse(success=True, html=page.html, url=page.url, final_url=page.final_url, length=page.length)

"""
RSS proxy endpoint.

Passes allow-listed news feeds through so the browser can read them without
CORS issues. No retry or fallback: upstream failures are returned as-is.
"""

from typing import Optional

import requests
from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from loguru import logger

from radio_dial.core.config import Config

from ..deps import get_config, get_http_session

router = APIRouter()

FEED_CACHE_CONTROL = "s-maxage=300, stale-while-revalidate=600"


@router.get("/rss")
def proxy_feed(
    url: Optional[str] = None,
    config: Config = Depends(get_config),
    session: requests.Session = Depends(get_http_session),
):
    """Fetch an allow-listed RSS feed and return it verbatim."""
    if not url:
        return JSONResponse(status_code=400, content={"error": "Missing url"})

    if url not in config.web.rss_allowed_feeds:
        logger.warning(f"Rejected RSS proxy request for {url}")
        return JSONResponse(status_code=403, content={"error": "URL not allowed"})

    try:
        upstream = session.get(url, timeout=config.web.rss_timeout)
    except requests.RequestException as e:
        logger.error(f"RSS proxy fetch failed for {url}: {e}")
        return JSONResponse(status_code=500, content={"error": "Proxy fetch failed"})

    if not upstream.ok:
        logger.warning(f"RSS upstream {url} returned HTTP {upstream.status_code}")
        return JSONResponse(
            status_code=upstream.status_code,
            content={"error": f"Upstream {upstream.status_code}"},
        )

    return Response(
        content=upstream.text,
        media_type="application/xml; charset=utf-8",
        headers={"Cache-Control": FEED_CACHE_CONTROL},
    )

"""
Now-playing API endpoint.

Resolves the current title of an Icecast/SHOUTcast stream for the player UI,
which polls it every few seconds. Results are cacheable for a short window so
many listeners of the same station do not each trigger a full probe.
"""

from typing import Optional

import requests
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from loguru import logger

from radio_dial.core.config import Config
from radio_dial.domain.stream.candidates import InvalidStreamError
from radio_dial.domain.stream.nowplaying import resolve_now_playing

from ..deps import get_config, get_http_session
from ..schemas import ErrorResponse, NowPlayingResponse

router = APIRouter()


def cache_control_header(config: Config) -> str:
    """Cache-Control value for now-playing responses."""
    return (
        f"s-maxage={config.web.cache_max_age}, "
        f"stale-while-revalidate={config.web.stale_while_revalidate}"
    )


@router.get(
    "/nowplaying",
    response_model=NowPlayingResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def get_now_playing(
    stream: Optional[str] = None,
    config: Config = Depends(get_config),
    session: requests.Session = Depends(get_http_session),
):
    """Resolve the "now playing" title for a stream URL.

    Returns {"title": ""} when no metadata endpoint yields a title; that is a
    normal outcome, not an error.
    """
    try:
        title = resolve_now_playing(stream, session=session, config=config.resolver)
    except InvalidStreamError as e:
        logger.debug(f"Rejected now-playing request: {e}")
        return JSONResponse(status_code=400, content={"error": str(e)})
    except Exception:
        logger.exception(f"Failed to resolve now playing for {stream}")
        return JSONResponse(
            status_code=500, content={"error": "Failed to resolve now playing"}
        )

    return JSONResponse(
        content=NowPlayingResponse(title=title).model_dump(),
        headers={"Cache-Control": cache_control_header(config)},
    )

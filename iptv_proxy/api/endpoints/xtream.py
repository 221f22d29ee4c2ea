from typing import Any

import httpx
from fastapi import APIRouter, Depends, HTTPException, Response

from iptv_proxy.api import deps
from iptv_proxy.core.errors import PlaylistFetchError
from iptv_proxy.services.playlist_store import PlaylistService

router = APIRouter()

M3U_MEDIA_TYPE = "application/vnd.apple.mpegurl"


async def xtream_playlist_response(service: PlaylistService) -> Response:
    try:
        content = await service.xtream_playlist()
    except (httpx.ConnectTimeout, httpx.ReadTimeout):
        raise HTTPException(status_code=504, detail="Provider connection timed out")
    except (httpx.HTTPError, PlaylistFetchError) as e:
        raise HTTPException(status_code=502, detail=f"Provider playlist failed: {str(e)}")
    return Response(content=content, media_type=M3U_MEDIA_TYPE)


@router.api_route("/get.php", methods=["GET", "POST"])
async def xtream_get(service: PlaylistService = Depends(deps.authenticate)) -> Any:
    """Provider get.php playlist, rewritten to point at this proxy."""
    if service.xtream is None:
        raise HTTPException(status_code=404, detail="Xtream service not configured")
    return await xtream_playlist_response(service)

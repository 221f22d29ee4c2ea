import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import FileResponse

from iptv_proxy.api import deps
from iptv_proxy.api.endpoints.xtream import M3U_MEDIA_TYPE, xtream_playlist_response
from iptv_proxy.services.playlist_store import PlaylistService
from iptv_proxy.services.stream_proxy import proxy_stream

logger = logging.getLogger(__name__)

router = APIRouter()


async def serve_playlist(request: Request, service: PlaylistService) -> Any:
    deps.check_credentials(request, service)

    if service.static_playlist:
        table = service.route_table
        if table is None:
            raise HTTPException(status_code=503, detail="Playlist not ready")
        return FileResponse(table.playlist_file, media_type=M3U_MEDIA_TYPE, filename=service.settings.M3U_FILE_NAME)

    if service.xtream is not None and service.settings.M3U_URL:
        return await xtream_playlist_response(service)

    raise HTTPException(status_code=404, detail="No playlist configured")


# Registered last: every path not matched above is looked up in the route table
@router.api_route("/{path:path}", methods=["GET", "POST"])
async def proxy_path(path: str, request: Request, service: PlaylistService = Depends(deps.get_playlist_service)) -> Any:
    route = f"/{path}"
    if route == service.playlist_route:
        return await serve_playlist(request, service)

    if request.method != "GET":
        raise HTTPException(status_code=405, detail="Method not allowed")

    upstream = service.resolve(route)
    if upstream is None:
        raise HTTPException(status_code=404, detail="Not found")

    logger.debug(f"Proxying {route} to upstream")
    return await proxy_stream(upstream, request)

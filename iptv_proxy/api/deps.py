from fastapi import Depends, HTTPException, Request

from iptv_proxy.services.playlist_store import PlaylistService


def get_playlist_service(request: Request) -> PlaylistService:
    return request.app.state.playlist_service


def check_credentials(request: Request, service: PlaylistService):
    identity = service.identity
    username = request.query_params.get("username")
    password = request.query_params.get("password")
    if username != identity.user or password != identity.password:
        raise HTTPException(status_code=401, detail="Invalid credentials")


def authenticate(request: Request, service: PlaylistService = Depends(get_playlist_service)) -> PlaylistService:
    check_credentials(request, service)
    return service

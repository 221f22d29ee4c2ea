from fastapi import APIRouter
from iptv_proxy.api.endpoints import xtream, m3u

api_router = APIRouter()
api_router.include_router(xtream.router, tags=["xtream"])
# Catch-all, must stay last
api_router.include_router(m3u.router, tags=["m3u"])

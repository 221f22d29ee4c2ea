import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from iptv_proxy.api.api import api_router
from iptv_proxy.core.config import Settings, settings
from iptv_proxy.services.playlist_store import PlaylistService

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(app_settings: Settings = settings, service: Optional[PlaylistService] = None) -> FastAPI:
    service = service or PlaylistService(app_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown events."""
        # Startup: the initial rewrite pass must succeed before serving
        await service.start()
        logger.info(
            f"Serving playlist at {app_settings.endpoint_prefix}{service.playlist_route} "
            f"under namespace {service.identity.namespace}"
        )
        yield
        # Shutdown
        await service.stop()

    app = FastAPI(
        title=app_settings.PROJECT_NAME,
        version=app_settings.VERSION,
        lifespan=lifespan,
    )
    app.state.playlist_service = service

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Before the router: its catch-all would shadow it otherwise
    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    app.include_router(api_router, prefix=app_settings.endpoint_prefix)
    return app


app = create_app()


def run():
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)

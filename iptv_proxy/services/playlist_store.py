import asyncio
import logging
import os
import uuid
from typing import Optional

import aiofiles
from tenacity import RetryError

from iptv_proxy.core.config import ProxyIdentity, Settings
from iptv_proxy.core.errors import PlaylistFetchError
from iptv_proxy.services.m3u_parser import load_playlist, parse_m3u, trim_tag_strings
from iptv_proxy.services.rewriter import rewrite_playlist
from iptv_proxy.services.routes import RouteTable, build_route_table
from iptv_proxy.services.xtream import XtreamClient

logger = logging.getLogger(__name__)


class PlaylistService:
    """
    Owns the proxied playlist for the lifetime of the process.

    ``route_table`` is replaced wholesale on every refresh and never mutated,
    so request handlers can read it without locking.
    """

    def __init__(self, settings: Settings, identity: Optional[ProxyIdentity] = None):
        self.settings = settings
        self.identity = identity or settings.proxy_identity()
        self.route_table: Optional[RouteTable] = None
        self.xtream: Optional[XtreamClient] = None
        if settings.xtream_enabled:
            self.xtream = XtreamClient(settings.XTREAM_BASE_URL, settings.XTREAM_USER, settings.XTREAM_PASSWORD)
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def playlist_route(self) -> str:
        return f"/{self.settings.M3U_FILE_NAME}"

    @property
    def static_playlist(self) -> bool:
        """False when the playlist is rewritten per request from the Xtream panel."""
        return bool(self.settings.M3U_URL) and not self.settings.xtream_serves_playlist()

    async def start(self):
        """Initial pass; a fetch or parse failure propagates and aborts startup."""
        if not self.static_playlist:
            return
        await self.refresh()

        interval = self.settings.M3U_REFRESH_INTERVAL
        if interval > 0:
            self._refresh_task = asyncio.create_task(self._refresh_forever(interval))

    async def stop(self):
        if self._refresh_task:
            self._refresh_task.cancel()
            try:
                await self._refresh_task
            except asyncio.CancelledError:
                pass
            self._refresh_task = None

    async def refresh(self) -> RouteTable:
        """Run an independent rewrite pass and swap in its playlist and routes."""
        playlist = await load_playlist(self.settings.M3U_URL)
        result = rewrite_playlist(playlist, self.identity)
        if result.dropped:
            logger.warning(f"{result.dropped} tracks dropped from the proxied playlist")

        target = self.identity.playlist_path
        tmp_path = f"{target}.{uuid.uuid4().hex}.tmp"
        table = build_route_table(result, self.playlist_route, target)
        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(result.content)
            os.replace(tmp_path, target)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        # No await between the rename and the swap: readers see old or new, never a mix
        self.route_table = table
        return table

    async def _refresh_forever(self, interval: int):
        while True:
            await asyncio.sleep(interval)
            try:
                await self.refresh()
                logger.info("Playlist refreshed")
            except Exception as e:
                logger.error(f"Playlist refresh failed, keeping previous playlist: {e}")

    async def xtream_playlist(self) -> str:
        """The panel's get.php playlist with every URL pointing at this proxy."""
        try:
            content = await self.xtream.get_playlist()
        except RetryError as e:
            raise PlaylistFetchError(f"could not fetch Xtream playlist: {e.last_attempt.exception()}") from e

        playlist = trim_tag_strings(parse_m3u(content))
        return rewrite_playlist(playlist, self.identity, xtream=True).content

    def resolve(self, path: str) -> Optional[str]:
        """Upstream URL for a proxy path, from the route table or the Xtream stream paths."""
        table = self.route_table
        if table is not None:
            upstream = table.resolve(path)
            if upstream:
                return upstream
        if self.xtream is not None:
            return self.xtream.upstream_url(path, self.identity.user, self.identity.password)
        return None

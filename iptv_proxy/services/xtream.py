import httpx
from typing import Dict, Optional
from urllib.parse import unquote
from tenacity import retry, stop_after_attempt, wait_exponential
import logging

logger = logging.getLogger(__name__)

# Stream path families served by an Xtream panel, keyed by their first segment
STREAM_KINDS = ("live", "movie", "series", "timeshift")


class XtreamClient:
    def __init__(self, url: str, username: str, password: str):
        self.base_url = url.rstrip("/")
        self.username = username
        self.password = password
        self.get_url = f"{self.base_url}/get.php"

    def _get_params(self, **kwargs) -> Dict[str, str]:
        params = {
            "username": self.username,
            "password": self.password,
        }
        params.update(kwargs)
        return params

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=1, min=4, max=10))
    async def _request(self, url: str, **kwargs) -> httpx.Response:
        async with httpx.AsyncClient(timeout=60.0, follow_redirects=True) as client:
            params = self._get_params(**kwargs)
            try:
                response = await client.get(url, params=params)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as e:
                logger.error(f"HTTP error for {url}: {e}")
                raise
            except Exception as e:
                logger.error(f"Error fetching {url}: {e}")
                raise

    async def get_playlist(self, playlist_type: str = "m3u_plus", output: str = "ts") -> str:
        """Raw M3U text of the account's get.php playlist."""
        response = await self._request(self.get_url, type=playlist_type, output=output)
        return response.text

    def upstream_url(self, path: str, user: str, password: str) -> Optional[str]:
        """
        Map a proxied stream path back to the panel.

        ``path`` is one of ``/<kind>/<user>/<password>/...`` or
        ``/<user>/<password>/<stream>`` carrying the proxy credentials; the
        result carries the panel credentials instead. Returns None when the
        path is not an Xtream stream path for these credentials.
        """
        segments = unquote(path).strip("/").split("/")

        if len(segments) >= 4 and segments[0] in STREAM_KINDS:
            kind, rest = segments[0], segments[1:]
        elif len(segments) == 3:
            kind, rest = None, segments
        else:
            return None

        if rest[0] != user or rest[1] != password:
            return None

        tail = "/".join(rest[2:])
        if kind is None:
            return f"{self.base_url}/{self.username}/{self.password}/{tail}"
        return f"{self.base_url}/{kind}/{self.username}/{self.password}/{tail}"

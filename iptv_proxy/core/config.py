import os
import tempfile
import uuid
from typing import Optional
from urllib.parse import parse_qs, urlparse

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings

from iptv_proxy.services.hashing import HashMethod


class ProxyIdentity(BaseModel):
    """How proxy paths and URLs are shaped for one running instance."""

    model_config = ConfigDict(frozen=True)

    user: str
    password: str
    hostname: str
    advertised_port: int
    https: bool = False
    custom_endpoint: str = ""
    namespace: str
    hash_method: HashMethod = HashMethod.NONE
    playlist_path: str

    # Upstream Xtream credentials, only needed for passthrough rewriting
    xtream_user: Optional[str] = None
    xtream_password: Optional[str] = None


class Settings(BaseSettings):
    PROJECT_NAME: str = "IPTV Proxy"
    VERSION: str = "1.0.0"

    # Upstream M3U (URL or local file)
    M3U_URL: str = ""
    M3U_FILE_NAME: str = "iptv.m3u"
    M3U_REFRESH_INTERVAL: int = 0

    # Upstream Xtream service
    XTREAM_BASE_URL: str = ""
    XTREAM_USER: str = ""
    XTREAM_PASSWORD: str = ""

    # Credentials handed out to clients
    PROXY_USER: str = "usertest"
    PROXY_PASSWORD: str = "passwordtest"

    # Advertised address
    PROXY_HOSTNAME: str = "localhost"
    PORT: int = 8080
    ADVERTISED_PORT: int = 0
    HTTPS: bool = False

    CUSTOM_ENDPOINT: str = ""
    CUSTOM_ID: str = ""
    URL_HASH_METHOD: str = ""

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

    @property
    def endpoint_prefix(self) -> str:
        """CUSTOM_ENDPOINT as a router prefix: '' or '/segment'."""
        trimmed = self.CUSTOM_ENDPOINT.strip("/")
        return f"/{trimmed}" if trimmed else ""

    @property
    def xtream_enabled(self) -> bool:
        return bool(self.XTREAM_BASE_URL)

    def xtream_serves_playlist(self) -> bool:
        """True when M3U_URL is the Xtream get.php of the same account."""
        if not self.xtream_enabled or not self.M3U_URL:
            return False
        remote = urlparse(self.M3U_URL)
        if not remote.hostname or remote.netloc not in self.XTREAM_BASE_URL:
            return False
        query = parse_qs(remote.query)
        return (
            query.get("username", [""])[0] == self.XTREAM_USER
            and query.get("password", [""])[0] == self.XTREAM_PASSWORD
        )

    def proxy_identity(self) -> ProxyIdentity:
        namespace = self.CUSTOM_ID.strip("/")
        if not namespace:
            namespace = str(uuid.uuid4()).split("-")[0]

        return ProxyIdentity(
            user=self.PROXY_USER,
            password=self.PROXY_PASSWORD,
            hostname=self.PROXY_HOSTNAME,
            advertised_port=self.ADVERTISED_PORT or self.PORT,
            https=self.HTTPS,
            custom_endpoint=self.CUSTOM_ENDPOINT,
            namespace=namespace,
            hash_method=HashMethod.from_name(self.URL_HASH_METHOD),
            playlist_path=os.path.join(tempfile.gettempdir(), f"{uuid.uuid4()}.iptv-proxy.m3u"),
            xtream_user=self.XTREAM_USER or None,
            xtream_password=self.XTREAM_PASSWORD or None,
        )


settings = Settings()

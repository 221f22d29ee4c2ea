import pytest

from iptv_proxy.core.config import ProxyIdentity
from iptv_proxy.services.hashing import HashMethod

SAMPLE_M3U = """#EXTM3U
#EXTINF:-1 tvg-id="news.fr" tvg-name="News" group-title="News, Local",News HD
http://up.example/live/u1/p1/101.ts
#EXTINF:-1 tvg-id="sport.fr" group-title="Sport",Sport
http://up.example/live/u1/p1/102.ts?id=102
#EXTINF:-1 tvg-id="vod",Nested
http://up.example/hls/channel/index.m3u8
"""


@pytest.fixture
def identity(tmp_path):
    return ProxyIdentity(
        user="user",
        password="pass",
        hostname="proxy.local",
        advertised_port=8080,
        namespace="abc123",
        hash_method=HashMethod.URL,
        playlist_path=str(tmp_path / "proxy.m3u"),
        xtream_user="xu",
        xtream_password="xp",
    )


@pytest.fixture
def sample_m3u():
    return SAMPLE_M3U


@pytest.fixture
def sample_file(tmp_path):
    path = tmp_path / "upstream.m3u"
    path.write_text(SAMPLE_M3U, encoding="utf-8")
    return path

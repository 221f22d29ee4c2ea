import json
import logging
import re
from typing import Tuple

import aiofiles
import httpx
from tenacity import RetryError, retry, stop_after_attempt, wait_exponential

from iptv_proxy.core.errors import PlaylistFetchError
from iptv_proxy.schemas import Playlist, Tag, Track

logger = logging.getLogger(__name__)

M3U_HEADER = "#EXTM3U"
EXTINF = "#EXTINF:"

_LENGTH_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)")
_TAG_RE = re.compile(r'([^\s=",]+)="((?:[^"\\]|\\.)*)"')


def _split_extinf(info: str) -> Tuple[str, str]:
    """Split '<length> <tags>,<name>' on the first comma outside quotes."""
    in_quotes = False
    escaped = False
    for i, c in enumerate(info):
        if escaped:
            escaped = False
        elif c == "\\" and in_quotes:
            escaped = True
        elif c == '"':
            in_quotes = not in_quotes
        elif c == "," and not in_quotes:
            return info[:i], info[i + 1:]
    return info, ""


def _unquote_value(value: str) -> str:
    if "\\" not in value:
        return value
    try:
        return json.loads(f'"{value}"')
    except ValueError:
        return value


def parse_extinf(line: str) -> Track:
    attrs, name = _split_extinf(line[len(EXTINF):])

    match = _LENGTH_RE.match(attrs)
    if not match:
        raise PlaylistFetchError(f"unable to parse length in line {line!r}")

    tags = [Tag(name=n, value=_unquote_value(v)) for n, v in _TAG_RE.findall(attrs[match.end():])]
    return Track(uri="", name=name.strip(), length=int(float(match.group(1))), tags=tags)


def parse_m3u(content: str) -> Playlist:
    """Parse M3U text into an ordered playlist."""
    lines = [line.strip() for line in content.lstrip("\ufeff").splitlines()]
    lines = [line for line in lines if line]

    if not lines or not lines[0].startswith(M3U_HEADER):
        raise PlaylistFetchError(f"invalid m3u file format. Expected {M3U_HEADER} file header")

    tracks = []
    pending = None
    for line in lines[1:]:
        if line.startswith(EXTINF):
            pending = parse_extinf(line)
        elif line.startswith("#"):
            continue
        else:
            track = pending or Track(uri="")
            tracks.append(track.model_copy(update={"uri": line}))
            pending = None

    return Playlist(tracks=tracks)


def trim_tag_strings(playlist: Playlist) -> Playlist:
    """Strip surrounding whitespace from every tag name and value."""
    tracks = []
    for track in playlist.tracks:
        tags = [Tag(name=t.name.strip(), value=t.value.strip()) for t in track.tags]
        tracks.append(track.model_copy(update={"tags": tags}))
    return Playlist(tracks=tracks)


@retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=1, min=4, max=10))
async def _fetch(url: str) -> str:
    async with httpx.AsyncClient(timeout=60.0, follow_redirects=True) as client:
        try:
            response = await client.get(url)
            response.raise_for_status()
            return response.text
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error fetching playlist {url}: {e}")
            raise
        except Exception as e:
            logger.error(f"Error fetching playlist {url}: {e}")
            raise


async def parse_m3u_url(url: str) -> Playlist:
    try:
        content = await _fetch(url)
    except RetryError as e:
        raise PlaylistFetchError(f"could not fetch playlist {url}: {e.last_attempt.exception()}") from e
    return parse_m3u(content)


async def parse_m3u_file(path: str) -> Playlist:
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            content = await f.read()
    except OSError as e:
        raise PlaylistFetchError(f"could not read playlist {path}: {e}") from e
    return parse_m3u(content)


async def load_playlist(source: str) -> Playlist:
    """Fetch, parse and normalize the upstream playlist at ``source`` (URL or file)."""
    if source.startswith(("http://", "https://")):
        playlist = await parse_m3u_url(source)
    else:
        playlist = await parse_m3u_file(source)

    logger.info(f"Parsed {len(playlist.tracks)} tracks from {source}")
    return trim_tag_strings(playlist)

"""
Playlist rewriting.

One pass turns an ordered upstream track list into proxy paths and proxy URLs:

    tracks -> hash_by_method + CollisionGuard -> build_relative_path
           -> replace_url -> marshalled playlist

The pass is a strictly sequential fold over the track list; the identifiers
issued so far live in a CollisionGuard owned by that single pass.
"""
import json
import logging
from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict

from iptv_proxy.core.config import ProxyIdentity
from iptv_proxy.core.errors import MalformedUpstreamURL, RewriteInvariantError
from iptv_proxy.schemas import Playlist, Track
from iptv_proxy.services.hashing import hash_by_method, string_to_hex_hash
from iptv_proxy.services.urls import base, escape_path, parse_url, path_escape, user_info

logger = logging.getLogger(__name__)

M3U_HEADER = "#EXTM3U\n"
NESTED_PLAYLIST_SUFFIX = ".m3u8"
ID_PLACEHOLDER = ":id"


class TrackConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int
    track: Track
    relative_path: str

    @property
    def nested(self) -> bool:
        return is_nested_playlist(self.track)


class RewriteResult(BaseModel):
    playlist: Playlist
    track_configs: List[TrackConfig]
    content: str
    dropped: int = 0


class CollisionGuard:
    """
    Issues final identifiers in playlist order.

    ``issued`` holds the hash candidates that were accepted as-is; ``assigned``
    holds every identifier handed out, fallbacks included.
    """

    def __init__(self):
        self.issued: Set[str] = set()
        self.assigned: Set[str] = set()

    def assign(self, candidate: Optional[str], index: int, track: Track) -> str:
        if candidate is None:
            final = str(index)
        elif candidate in self.issued or candidate in self.assigned:
            final = string_to_hex_hash(track.uri)
            # Byte-identical URIs hash to the same fallback
            if final in self.assigned:
                final = f"{final}-{index}"
        else:
            self.issued.add(candidate)
            final = candidate
        self.assigned.add(final)
        return final


def is_nested_playlist(track: Track) -> bool:
    return track.uri.endswith(NESTED_PLAYLIST_SUFFIX)


def route_prefix(identity: ProxyIdentity) -> str:
    return f"/{identity.namespace}/{path_escape(identity.user)}/{path_escape(identity.password)}"


def nested_path(identity: ProxyIdentity, index: int) -> str:
    return f"{route_prefix(identity)}/{index}/{ID_PLACEHOLDER}"


def build_relative_path(track: Track, index: int, identifier: Optional[str], identity: ProxyIdentity) -> str:
    if is_nested_playlist(track):
        return nested_path(identity, index)

    try:
        basename = base(parse_url(track.uri).path)
    except MalformedUpstreamURL:
        basename = base(track.uri)

    return f"{route_prefix(identity)}/{identifier}/{basename}"


def compute_track_configs(tracks: List[Track], identity: ProxyIdentity) -> List[TrackConfig]:
    guard = CollisionGuard()
    result = []
    for i, track in enumerate(tracks):
        identifier = None
        if not is_nested_playlist(track):
            candidate = hash_by_method(identity.hash_method, track)
            identifier = guard.assign(candidate, i, track)
        relative_path = build_relative_path(track, i, identifier, identity)
        result.append(TrackConfig(index=i, track=track, relative_path=relative_path))
    return result


def replace_url(uri: str, relative_path: Optional[str], xtream: bool, identity: ProxyIdentity) -> str:
    """
    Proxy URL for the upstream ``uri``.

    Raises MalformedUpstreamURL when ``uri`` does not parse and
    RewriteInvariantError when the URL built here does not parse back.
    """
    ori_url = parse_url(uri)

    protocol = "https" if identity.https else "http"

    custom_end = identity.custom_endpoint.strip("/")
    if custom_end:
        custom_end = f"/{custom_end}"

    if xtream:
        uri_path = ori_url.path
        if identity.xtream_user:
            uri_path = uri_path.replace(path_escape(identity.xtream_user), path_escape(identity.user))
        if identity.xtream_password:
            uri_path = uri_path.replace(path_escape(identity.xtream_password), path_escape(identity.password))
    else:
        uri_path = relative_path

    basic_auth = user_info(ori_url)
    if basic_auth:
        basic_auth += "@"

    new_uri = (
        f"{protocol}://{basic_auth}{identity.hostname}:{identity.advertised_port}"
        f"{escape_path(custom_end + uri_path)}"
    )

    try:
        parse_url(new_uri)
    except MalformedUpstreamURL as e:
        raise RewriteInvariantError(f"rewritten URL {new_uri!r} does not parse: {e.reason}") from e

    return new_uri


def format_extinf(track: Track) -> str:
    tags = " ".join(f"{t.name}={json.dumps(t.value, ensure_ascii=False)}" for t in track.tags)
    return f"#EXTINF:{track.length} {tags}, {track.name}"


def marshall(track_configs: List[TrackConfig], identity: ProxyIdentity, xtream: bool = False) -> RewriteResult:
    """Render the proxy playlist, dropping tracks whose URL cannot be rewritten."""
    lines = [M3U_HEADER]
    kept = []
    dropped = 0

    for track_config in track_configs:
        try:
            uri = replace_url(track_config.track.uri, track_config.relative_path, xtream, identity)
        except MalformedUpstreamURL as e:
            dropped += 1
            logger.error(f"track: {track_config.track.name}: {e}")
            continue

        lines.append(f"{format_extinf(track_config.track)}\n{uri}\n")
        kept.append(track_config)

    return RewriteResult(
        playlist=Playlist(tracks=[c.track for c in kept]),
        track_configs=kept,
        content="".join(lines),
        dropped=dropped,
    )


def rewrite_playlist(playlist: Playlist, identity: ProxyIdentity, xtream: bool = False) -> RewriteResult:
    track_configs = compute_track_configs(playlist.tracks, identity)
    result = marshall(track_configs, identity, xtream)
    logger.info(
        f"Rewrote playlist: {len(result.track_configs)} tracks kept, {result.dropped} dropped"
    )
    return result

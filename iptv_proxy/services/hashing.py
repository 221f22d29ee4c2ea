"""
Stable per-track identifiers.

Each hash method is an ordered list of candidate functions; the first one
returning an identifier wins. Every candidate is a pure function of the track,
so the same playlist always produces the same identifiers.
"""
import enum
import hashlib
from typing import Callable, List, Optional
from urllib.parse import parse_qs

from iptv_proxy.core.errors import MalformedUpstreamURL
from iptv_proxy.schemas import Track
from iptv_proxy.services.urls import parse_url


class HashMethod(str, enum.Enum):
    URL = "url"
    ID = "id"
    TAGS = "tags"
    SMART = "smart"
    NONE = ""

    @classmethod
    def from_name(cls, name: Optional[str]) -> "HashMethod":
        """Unknown or empty names map to NONE (positional identifiers). Matching is exact."""
        try:
            return cls(name or "")
        except ValueError:
            return cls.NONE


def string_to_hex_hash(s: str) -> str:
    return hashlib.md5(s.encode("utf-8")).hexdigest().lower()


def hash_method_url(track: Track) -> Optional[str]:
    return string_to_hex_hash(track.uri)


def hash_method_id(track: Track) -> Optional[str]:
    """Hash of the ``id`` query parameter, when the URI carries one."""
    try:
        parts = parse_url(track.uri)
    except MalformedUpstreamURL:
        return None
    values = parse_qs(parts.query).get("id")
    if values and values[0]:
        return string_to_hex_hash(values[0])
    return None


def hash_method_tags(track: Track) -> Optional[str]:
    if not track.tags:
        return None
    # sorted() is stable and leaves the track's own tag order untouched
    ordered = sorted(track.tags, key=lambda t: t.name)
    return string_to_hex_hash("".join(f"{t.name}={t.value}," for t in ordered))


CANDIDATES: dict = {
    HashMethod.URL: [hash_method_url],
    HashMethod.ID: [hash_method_id, hash_method_url],
    HashMethod.TAGS: [hash_method_tags, hash_method_url],
    HashMethod.SMART: [hash_method_id, hash_method_tags, hash_method_url],
    HashMethod.NONE: [],
}


def apply_first(fns: List[Callable[[Track], Optional[str]]], track: Track) -> Optional[str]:
    for fn in fns:
        result = fn(track)
        if result is not None:
            return result
    return None


def hash_by_method(method: HashMethod, track: Track) -> Optional[str]:
    """Candidate identifier for ``track``, or None when no method is configured."""
    return apply_first(CANDIDATES[method], track)

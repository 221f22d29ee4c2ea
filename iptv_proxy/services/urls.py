import re
from urllib.parse import quote, urlsplit, SplitResult

from iptv_proxy.core.errors import MalformedUpstreamURL

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")
_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")


def parse_url(raw: str) -> SplitResult:
    """
    Parse ``raw`` as a URL reference, rejecting what urlsplit would let through.

    urlsplit never fails on garbage such as ``"::not a url"``; a track whose URI
    is not a URL must be dropped, so the RFC 3986 structural checks are applied
    here and a MalformedUpstreamURL is raised on the first violation.
    """
    if _CONTROL_RE.search(raw):
        raise MalformedUpstreamURL(raw, "invalid control character in URL")

    head = re.split(r"[/?#]", raw, maxsplit=1)[0]
    if ":" in head:
        scheme = head.split(":", 1)[0]
        if not scheme:
            raise MalformedUpstreamURL(raw, "missing protocol scheme")
        if not _SCHEME_RE.match(scheme):
            raise MalformedUpstreamURL(raw, "first path segment in URL cannot contain colon")

    # The query is kept raw, so only the part before it must be well escaped
    if _BAD_ESCAPE_RE.search(re.split(r"[?#]", raw, maxsplit=1)[0]):
        raise MalformedUpstreamURL(raw, "invalid URL escape")

    try:
        parts = urlsplit(raw)
        # Raises ValueError on a non-numeric or out of range port
        parts.port
    except ValueError as e:
        raise MalformedUpstreamURL(raw, str(e))

    host = parts.netloc.rpartition("@")[2]
    if any(c.isspace() for c in host):
        raise MalformedUpstreamURL(raw, f"invalid character in host name {host!r}")

    return parts


def path_escape(segment: str) -> str:
    """Escape ``segment`` so it can sit between two slashes of a URL path."""
    return quote(segment, safe="$&+:=@")


def escape_path(path: str) -> str:
    """Percent-encode what may not appear raw in a URL path; existing escapes are kept."""
    return quote(path, safe="/:@!$&'()*+,;=%")


def base(path: str) -> str:
    """Last element of a slash separated path, ignoring trailing slashes."""
    if path == "":
        return "."
    path = path.rstrip("/")
    if path == "":
        return "/"
    return path.rsplit("/", 1)[-1]


def user_info(parts: SplitResult) -> str:
    """Raw user-info component (``user:pass``) of a parsed URL, or ''."""
    if "@" not in parts.netloc:
        return ""
    return parts.netloc.rpartition("@")[0]

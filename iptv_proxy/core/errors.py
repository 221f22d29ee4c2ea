class IPTVProxyError(Exception):
    """Base class for every error raised by the proxy."""


class PlaylistFetchError(IPTVProxyError):
    """The upstream playlist could not be fetched or parsed."""


class MalformedUpstreamURL(IPTVProxyError):
    """An upstream track URI does not parse as a URL."""

    def __init__(self, uri: str, reason: str):
        self.uri = uri
        self.reason = reason
        super().__init__(f"malformed upstream URL {uri!r}: {reason}")


class RewriteInvariantError(IPTVProxyError):
    """A rewritten proxy URL failed to re-parse; URL construction is broken."""

import logging
from types import MappingProxyType
from typing import Dict, Mapping, Optional
from urllib.parse import unquote

from pydantic import BaseModel, ConfigDict

from iptv_proxy.schemas import Track
from iptv_proxy.services.rewriter import ID_PLACEHOLDER, RewriteResult
from iptv_proxy.services.urls import base

logger = logging.getLogger(__name__)


class RouteBinding(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    track: Track
    nested: bool = False


class RouteTable:
    """
    Read-only mapping of proxy paths to upstream tracks.

    Keys are stored percent-decoded so they compare against the decoded path
    the ASGI server hands to the router.
    """

    def __init__(self, playlist_route: str, playlist_file: str, bindings: Dict[str, RouteBinding]):
        self.playlist_route = playlist_route
        self.playlist_file = playlist_file
        self._leaf: Mapping[str, RouteBinding] = MappingProxyType(
            {k: b for k, b in bindings.items() if not b.nested}
        )
        self._nested: Mapping[str, RouteBinding] = MappingProxyType(
            {k: b for k, b in bindings.items() if b.nested}
        )

    def __len__(self) -> int:
        return len(self._leaf) + len(self._nested)

    @property
    def bindings(self):
        return list(self._leaf.values()) + list(self._nested.values())

    def resolve(self, path: str) -> Optional[str]:
        """Upstream URL served at the proxy ``path``, or None."""
        path = unquote(path)

        binding = self._leaf.get(path)
        if binding:
            return binding.track.uri

        prefix, _, segment = path.rpartition("/")
        binding = self._nested.get(prefix)
        if binding is None or not segment:
            return None
        if segment == ID_PLACEHOLDER:
            return binding.track.uri

        uri = binding.track.uri
        return uri[: len(uri) - len(base(uri))] + segment


def build_route_table(result: RewriteResult, playlist_route: str, playlist_file: str) -> RouteTable:
    """Bindings for every successfully rewritten track of one pass."""
    bindings = {}
    for track_config in result.track_configs:
        if track_config.nested:
            # Nested entries share one positional route: /<ns>/<user>/<pass>/<index>/<id>
            key = unquote(track_config.relative_path.rpartition("/")[0])
        else:
            key = unquote(track_config.relative_path)
        bindings[key] = RouteBinding(path=track_config.relative_path, track=track_config.track, nested=track_config.nested)

    logger.info(f"Route table built: {len(bindings)} track routes, playlist at {playlist_route}")
    return RouteTable(playlist_route, playlist_file, bindings)

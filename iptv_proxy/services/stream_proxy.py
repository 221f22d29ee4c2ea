import logging

import httpx
from fastapi import HTTPException, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

logger = logging.getLogger(__name__)

# Headers relayed from the client to upstream and back
REQUEST_HEADERS = ("range", "accept", "user-agent")
RESPONSE_HEADERS = (
    "content-type",
    "content-length",
    "content-range",
    "accept-ranges",
    "content-disposition",
    "content-encoding",
)


async def proxy_stream(upstream_url: str, request: Request) -> StreamingResponse:
    """Relay the upstream response body to the client as it arrives."""
    upstream_headers = {h: request.headers[h] for h in REQUEST_HEADERS if h in request.headers}

    # Live streams: short connect timeout, no read timeout
    timeout = httpx.Timeout(connect=10.0, read=None, write=10.0, pool=10.0)
    client = httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    try:
        req = client.build_request("GET", upstream_url, headers=upstream_headers)
        upstream_response = await client.send(req, stream=True)
    except (httpx.ConnectTimeout, httpx.ReadTimeout):
        await client.aclose()
        raise HTTPException(status_code=504, detail="Upstream connection timed out")
    except httpx.HTTPError as e:
        await client.aclose()
        logger.error(f"Stream proxy error for {request.url.path}: {e}")
        raise HTTPException(status_code=502, detail="Upstream connection failed")

    response_headers = {
        h: upstream_response.headers[h] for h in RESPONSE_HEADERS if h in upstream_response.headers
    }

    async def close():
        await upstream_response.aclose()
        await client.aclose()

    return StreamingResponse(
        upstream_response.aiter_raw(),
        status_code=upstream_response.status_code,
        headers=response_headers,
        background=BackgroundTask(close),
    )

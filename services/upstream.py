"""HTTP invocation of the upstream target."""

import asyncio

import httpx

from core.request_types import (
    OutboundRequest,
    UpstreamConnectionFailed,
    UpstreamResponse,
    UpstreamResult,
    UpstreamTimedOut,
)

DEFAULT_TIMEOUT = 30.0


class UpstreamClient:
    """Send outbound requests and buffer the full upstream response."""

    def __init__(self, client: httpx.AsyncClient, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._client = client
        self._timeout = timeout

    async def send(
        self,
        outbound: OutboundRequest,
        timeout: float | None = None,
    ) -> UpstreamResult:
        """Perform the call within a deadline covering connect, redirects and body read.

        Network outcomes are returned, not raised; anything else propagates.
        """
        deadline = self._timeout if timeout is None else timeout
        request = self._client.build_request(
            outbound.method,
            outbound.target.url,
            headers=[
                (key.encode("latin-1"), value.encode("latin-1"))
                for key, value in outbound.headers
            ],
            content=outbound.body.encode(),
            timeout=deadline,
        )
        # The client adds its own accept-encoding default; the upstream must not see one.
        request.headers.pop("accept-encoding", None)

        try:
            async with asyncio.timeout(deadline):
                return await self._exchange(request)
        except (TimeoutError, httpx.TimeoutException) as e:
            return UpstreamTimedOut(detail=str(e) or f"No response within {deadline}s")
        except httpx.RequestError as e:
            return UpstreamConnectionFailed(detail=str(e) or type(e).__name__)

    async def _exchange(self, request: httpx.Request) -> UpstreamResponse:
        response = await self._client.send(request, stream=True, follow_redirects=True)
        try:
            # Raw bytes keep the upstream content-encoding intact
            content = b"".join([chunk async for chunk in response.aiter_raw()])
        finally:
            await response.aclose()

        return UpstreamResponse(
            status_code=response.status_code,
            reason_phrase=response.reason_phrase,
            headers=response.headers.multi_items(),
            content=content,
        )

"""Per-request proxy pipeline: resolve, translate, transcode, invoke, rebuild."""

import time
from datetime import UTC, datetime
from typing import Any

from fastapi import Response
from fastapi.responses import JSONResponse

from core.config import Config
from core.exceptions import ProxyError, ProxyInternalError, UpstreamTimeout, UpstreamUnreachable
from core.headers import CORS_HEADERS, PREFLIGHT_HEADERS, HeaderBuilder
from core.protocols import RequestLogger
from core.request_types import (
    ExchangeRecord,
    InboundRequest,
    OutboundRequest,
    TargetURL,
    UpstreamConnectionFailed,
    UpstreamResponse,
    UpstreamTimedOut,
)
from core.target import TargetResolver, extract_target_segment
from core.transform import BodyTranscoder
from services.upstream import UpstreamClient
from ui.log_utils import report_logging_failure, write_exchange_log


class ProxyService:
    """Run one inbound request through the proxy stages."""

    def __init__(
        self,
        config: Config,
        logger: RequestLogger,
        upstream: UpstreamClient,
        resolver: TargetResolver | None = None,
        header_builder: HeaderBuilder | None = None,
        transcoder: BodyTranscoder | None = None,
    ) -> None:
        self._config = config
        self._logger = logger
        self._upstream = upstream
        self._resolver = resolver or TargetResolver(logger)
        self._headers = header_builder or HeaderBuilder(
            logger,
            default_user_agent=config.upstream.default_user_agent,
        )
        self._transcoder = transcoder or BodyTranscoder(logger)

    async def handle(self, inbound: InboundRequest) -> Response:
        """Proxy the request; every failure becomes a JSON error response."""
        started = time.perf_counter()
        target_url: str | None = None
        outbound: OutboundRequest | None = None
        upstream: UpstreamResponse | None = None
        error: ProxyError | None = None
        try:
            segment = extract_target_segment(inbound.path, self._config.proxy.prefix)
            target = self._resolver.resolve(segment, inbound.query)
            target_url = target.url

            outbound = await self.prepare(inbound, target)
            upstream = await self.invoke(outbound)
            response = self.rebuild(upstream)
        except ProxyError as e:
            error = e
        except Exception as e:
            error = ProxyInternalError(details=str(e), target_url=target_url)

        if error is not None:
            error.target_url = error.target_url or target_url
            target_url = error.target_url
            response = error_response(error)

        self._report(
            inbound, target_url or "unknown", response.status_code, started, error, outbound, upstream
        )
        return response

    async def prepare(self, inbound: InboundRequest, target: TargetURL) -> OutboundRequest:
        """Build the outbound request from the inbound one."""
        headers = self._headers.build_upstream_headers(inbound.headers, target)
        body = await self._transcoder.transcode(inbound)
        return OutboundRequest(
            method=inbound.method.upper(),
            target=target,
            headers=headers,
            body=body,
        )

    async def invoke(self, outbound: OutboundRequest) -> UpstreamResponse:
        """Send the request, raising the error kind for timeouts and network failures."""
        result = await self._upstream.send(outbound, timeout=self._config.upstream.timeout)
        if isinstance(result, UpstreamTimedOut):
            raise UpstreamTimeout(details=result.detail, target_url=outbound.target.url)
        if isinstance(result, UpstreamConnectionFailed):
            raise UpstreamUnreachable(details=result.detail, target_url=outbound.target.url)
        return result

    def rebuild(self, upstream: UpstreamResponse) -> Response:
        """Relay upstream status, filtered headers plus CORS, and the raw body."""
        response = Response(content=upstream.content, status_code=upstream.status_code)
        # Starlette pre-populates content-length; the upstream's own value wins
        del response.headers["content-length"]
        for key, value in self._headers.build_response_headers(upstream.headers):
            response.headers.append(key, value)
        if "content-length" not in response.headers and _allows_body(upstream.status_code):
            response.headers["content-length"] = str(len(upstream.content))
        return response

    def _report(
        self,
        inbound: InboundRequest,
        target_url: str,
        status: int,
        started: float,
        error: ProxyError | None,
        outbound: OutboundRequest | None,
        upstream: UpstreamResponse | None,
    ) -> None:
        """Log the exchange; a failing logger never changes the response."""
        try:
            if error is not None:
                self._logger.log_error(error.kind, error.status_code, error.details or error.message)
            self._record(inbound, target_url, status, started, outbound, upstream)
        except Exception as e:
            report_logging_failure(e)

    def _record(
        self,
        inbound: InboundRequest,
        target_url: str,
        status: int,
        started: float,
        outbound: OutboundRequest | None = None,
        upstream: UpstreamResponse | None = None,
    ) -> None:
        elapsed_ms = (time.perf_counter() - started) * 1000
        self._logger.log_request(inbound.method, target_url, status, elapsed_ms)
        if not self._config.proxy.debug:
            return
        record = ExchangeRecord(
            method=inbound.method,
            target_url=target_url,
            status=status,
            elapsed_ms=round(elapsed_ms, 1),
            request_headers=dict(outbound.headers) if outbound else dict(inbound.headers),
            response_headers=dict(upstream.headers) if upstream else {},
        )
        write_exchange_log(record)


def error_payload(error: ProxyError) -> dict[str, Any]:
    """Build the JSON error body for a failed request."""
    payload: dict[str, Any] = {"error": error.message, "kind": error.kind}
    if error.details:
        payload["details"] = error.details
    payload["timestamp"] = utc_timestamp()
    payload["targetUrl"] = error.target_url or "unknown"
    return payload


def error_response(error: ProxyError) -> JSONResponse:
    return JSONResponse(
        content=error_payload(error),
        status_code=error.status_code,
        headers=CORS_HEADERS,
    )


def preflight_response() -> Response:
    """Answer a CORS preflight without contacting any upstream."""
    return Response(status_code=200, headers=PREFLIGHT_HEADERS)


def _allows_body(status_code: int) -> bool:
    return status_code >= 200 and status_code not in (204, 304)


def utc_timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")

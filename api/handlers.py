"""FastAPI route handlers."""

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from core.request_types import InboundRequest
from services.proxy_service import preflight_response, utc_timestamp

SUPPORTED_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]
ECHO_PREVIEW_CHARS = 500

PROXY_DESCRIPTION = {
    "message": "Proxy test endpoint",
    "methods": SUPPORTED_METHODS,
    "supportedProtocols": ["HTTP", "HTTPS"],
    "supportedContentTypes": [
        "application/json (all JSON syntaxes)",
        "application/xml",
        "text/xml",
        "application/x-www-form-urlencoded",
        "multipart/form-data",
        "text/plain",
        "text/html",
        "application/octet-stream",
        "image/*",
        "Any content type",
    ],
    "jsonSyntaxSupport": [
        'Standard JSON: {"key": "value"}',
        'Stringified JSON: "{\\"key\\": \\"value\\"}"',
        'Escaped JSON: {\\"key\\": \\"value\\"}',
        "URL encoded JSON",
        "Malformed JSON (auto-fix)",
        "Single quotes: {'key': 'value'}",
        'Unquoted keys: {key: "value"}',
    ],
}


def to_inbound(request: Request) -> InboundRequest:
    """Capture the request as received, with the path still percent-encoded."""
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1").split("?", 1)[0] if raw_path else request.scope["path"]
    query = request.scope.get("query_string", b"").decode("latin-1")
    headers = [(key.decode("latin-1"), value.decode("latin-1")) for key, value in request.headers.raw]
    return InboundRequest(
        method=request.method,
        path=path,
        query=query,
        headers=headers,
        read_body=request.body,
    )


async def handle_proxy(request: Request) -> Response:
    """Forward the request to the URL embedded in its path."""
    proxy_service = request.app.state.proxy_service
    return await proxy_service.handle(to_inbound(request))


async def handle_preflight(request: Request) -> Response:
    """Answer CORS preflight requests without contacting the target."""
    return preflight_response()


async def handle_test_get() -> JSONResponse:
    """Describe what the proxy supports."""
    return JSONResponse({**PROXY_DESCRIPTION, "timestamp": utc_timestamp()})


async def handle_test_post(request: Request) -> JSONResponse:
    """Echo a summary of the received body."""
    try:
        body = (await request.body()).decode("utf-8", errors="replace")
    except Exception as e:
        return JSONResponse(
            {"error": "Failed to process request", "details": str(e)},
            status_code=400,
        )

    preview = body[:ECHO_PREVIEW_CHARS]
    if len(body) > ECHO_PREVIEW_CHARS:
        preview += "..."
    return JSONResponse(
        {
            "message": "Received POST request",
            "contentType": request.headers.get("content-type", "unknown"),
            "bodyLength": len(body),
            "receivedBody": preview,
            "timestamp": utc_timestamp(),
        }
    )

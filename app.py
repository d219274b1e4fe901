"""FastAPI application factory."""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request

from api.handlers import handle_preflight, handle_proxy, handle_test_get, handle_test_post
from core.config import Config
from core.headers import HeaderBuilder
from core.protocols import RequestLogger
from core.target import TargetResolver
from core.transform import BodyTranscoder
from services.proxy_service import ProxyService
from services.upstream import UpstreamClient
from ui.log_utils import GuardedLogger

PROXIED_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD"]


def create_app(
    config: Config,
    logger: RequestLogger,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    logger = GuardedLogger(logger)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = httpx.AsyncClient(
            timeout=config.upstream.timeout,
            follow_redirects=True,
            max_redirects=config.upstream.max_redirects,
            transport=transport,
        )
        upstream = UpstreamClient(client, timeout=config.upstream.timeout)
        app.state.proxy_service = ProxyService(
            config=config,
            logger=logger,
            upstream=upstream,
            resolver=TargetResolver(logger),
            header_builder=HeaderBuilder(
                logger,
                default_user_agent=config.upstream.default_user_agent,
            ),
            transcoder=BodyTranscoder(logger),
        )
        try:
            yield
        finally:
            await client.aclose()

    app = FastAPI(title="Universal Proxy", version="0.1.0", lifespan=lifespan)
    prefix = config.proxy.prefix.rstrip("/")

    @app.options(prefix + "/{target:path}")
    async def proxy_preflight(request: Request):
        return await handle_preflight(request)

    @app.api_route(prefix + "/{target:path}", methods=PROXIED_METHODS)
    async def proxy(request: Request):
        return await handle_proxy(request)

    @app.get("/api/test")
    async def test_endpoint():
        return await handle_test_get()

    @app.post("/api/test")
    async def test_endpoint_echo(request: Request):
        return await handle_test_post(request)

    return app

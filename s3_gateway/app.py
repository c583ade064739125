from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import unquote_to_bytes

from litestar import Litestar, Request, get
from litestar.config.cors import CORSConfig
from litestar.handlers import asgi
from litestar.plugins.prometheus import PrometheusConfig, PrometheusController

from .gateway import S3Gateway
from .responses import ALLOWED_METHODS

if TYPE_CHECKING:
    from litestar.types import Receive, Scope, Send


prometheus_config = PrometheusConfig(app_name="s3_gateway", prefix="s3_gateway")


def request_path(scope: Scope) -> str:
    """Return the decoded path the client asked for, without the query.

    Litestar rewrites ``scope["path"]`` for mounted handlers and appends a
    slash to it, so the untouched ``raw_path`` is used when the server
    provides one.
    """
    raw_path = scope.get("raw_path")
    if raw_path:
        path = unquote_to_bytes(raw_path.split(b"?", 1)[0]).decode("utf-8", "replace")
    else:
        path = scope.get("path", "/")
        if path != "/" and path.endswith("/"):
            path = path[:-1]
    if not path.startswith("/"):
        path = f"/{path}"
    return path


def create_app(gateway: S3Gateway | None = None) -> Litestar:
    """Create the S3 gateway ASGI application."""
    if gateway is None:
        gateway = S3Gateway.from_env()

    @get("/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @asgi(path="/", is_mount=True, copy_scope=True)
    async def gateway_handler(scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope=scope, receive=receive)
        response = await gateway.handle(
            request.method, request_path(scope), request.headers
        )
        is_head = request.method == "HEAD"
        asgi_response = response.to_litestar(head=is_head).to_asgi_response(
            None, request, is_head_response=is_head
        )
        await asgi_response(scope, receive, send)

    async def startup(app: Litestar) -> None:
        await gateway.startup()

    async def shutdown(app: Litestar) -> None:
        await gateway.shutdown()

    cors_config = CORSConfig(
        allow_origins=["*"],
        allow_methods=list(ALLOWED_METHODS),
        allow_headers=["*"],
        expose_headers=[
            "Accept-Ranges",
            "Content-Length",
            "Content-Range",
            "ETag",
        ],
    )

    return Litestar(
        route_handlers=[health, gateway_handler, PrometheusController],
        on_startup=[startup],
        on_shutdown=[shutdown],
        cors_config=cors_config,
        middleware=[prometheus_config.middleware],
    )

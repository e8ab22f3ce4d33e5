"""Base class for REST services behind HMAC authentication."""

from __future__ import annotations

from typing import Any

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from apiauth.common.errors import ErrorCode, error_response
from apiauth.common.http import RequestIdMiddleware
from apiauth.common.logging import get_logger
from apiauth.common.settings import Settings, get_settings
from apiauth.server.auth import HmacAuthMiddleware
from apiauth.server.verifier import Verifier

logger = get_logger(__name__)

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class Service:
    """
    REST service dispatching requests to ``perform_<method>`` handlers.

    Subclasses override the handlers for the methods they implement; the
    rest answer 405. Every response carries Access-Control-Allow-Origin.
    """

    def __init__(self, settings: Settings | None = None):
        self._settings = settings or get_settings()
        self.supported_methods = tuple(m.upper() for m in self._settings.supported_methods)
        self.access_control_origin = self._settings.access_control_origin
        self.access_control_headers = tuple(self._settings.access_control_headers)

    @property
    def settings(self) -> Settings:
        return self._settings

    async def handle_request(self, request: Request) -> Response:
        """Dispatch a request by method."""
        method = request.method.upper()
        if method not in self.supported_methods:
            logger.info("Method not supported", method=method, path=request.url.path)
            return self.method_not_allowed()

        handler = getattr(self, f"perform_{method.lower()}", None)
        if handler is None:
            return self.method_not_allowed()

        response = await handler(request)
        response.headers.setdefault("Access-Control-Allow-Origin", self.access_control_origin)
        return response

    def send_response(self, status_code: int, data: Any = None) -> Response:
        """JSON response (empty body when data is None)."""
        headers = {"Access-Control-Allow-Origin": self.access_control_origin}
        if data is None:
            return Response(status_code=status_code, headers=headers)
        return JSONResponse(data, status_code=status_code, headers=headers)

    def no_data_response(self) -> Response:
        return self.send_response(204)

    def method_not_allowed(self) -> Response:
        return error_response(
            ErrorCode.METHOD_NOT_ALLOWED,
            "Method not allowed",
            405,
            headers={
                "Allow": ", ".join(self.supported_methods),
                "Access-Control-Allow-Origin": self.access_control_origin,
            },
        )

    async def perform_get(self, request: Request) -> Response:
        return self.method_not_allowed()

    async def perform_head(self, request: Request) -> Response:
        return self.method_not_allowed()

    async def perform_post(self, request: Request) -> Response:
        return self.method_not_allowed()

    async def perform_put(self, request: Request) -> Response:
        return self.method_not_allowed()

    async def perform_patch(self, request: Request) -> Response:
        return self.method_not_allowed()

    async def perform_delete(self, request: Request) -> Response:
        return self.method_not_allowed()

    async def perform_options(self, request: Request) -> Response:
        """Answer CORS preflight requests."""
        return Response(
            status_code=200,
            headers={
                "Allow": ", ".join(self.supported_methods),
                "Access-Control-Allow-Origin": self.access_control_origin,
                "Access-Control-Allow-Headers": ", ".join(self.access_control_headers),
            },
        )

    async def handle_health(self, request: Request) -> JSONResponse:
        """Health check."""
        return JSONResponse({"status": "healthy"})


def create_app(
    service: Service,
    settings: Settings | None = None,
    verifier: Verifier | None = None,
) -> Starlette:
    """Create the Starlette application for a service."""
    settings = settings or service.settings

    routes = [
        Route("/health", service.handle_health, methods=["GET"]),
        Route("/{path:path}", service.handle_request, methods=ALL_METHODS),
    ]

    app = Starlette(routes=routes)
    app.add_middleware(HmacAuthMiddleware, settings=settings, verifier=verifier)
    app.add_middleware(RequestIdMiddleware)

    return app

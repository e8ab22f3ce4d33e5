"""Echo service - a minimal HMAC-protected service for integration testing."""

import json
from typing import Any

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import Response

from apiauth.common.http import get_request_id
from apiauth.common.logging import get_logger, setup_logging
from apiauth.common.settings import Settings, get_settings
from apiauth.server.service import Service, create_app

logger = get_logger(__name__)


class EchoService(Service):
    """Echoes authenticated requests back to the caller."""

    async def _echo(self, request: Request) -> dict[str, Any]:
        raw = await request.body()
        body: Any = None
        if raw:
            try:
                body = json.loads(raw)
            except ValueError:
                body = raw.decode("utf-8", errors="replace")

        return {
            "method": request.method,
            "path": request.url.path,
            "query": dict(request.query_params),
            "body": body,
            "request_id": get_request_id(),
        }

    async def perform_get(self, request: Request) -> Response:
        return self.send_response(200, await self._echo(request))

    async def perform_head(self, request: Request) -> Response:
        return self.send_response(200)

    async def perform_post(self, request: Request) -> Response:
        return self.send_response(201, await self._echo(request))

    async def perform_put(self, request: Request) -> Response:
        return self.send_response(200, await self._echo(request))

    async def perform_patch(self, request: Request) -> Response:
        return self.send_response(200, await self._echo(request))

    async def perform_delete(self, request: Request) -> Response:
        return self.no_data_response()


def create_echo_app(settings: Settings | None = None) -> Starlette:
    """Create the echo application."""
    settings = settings or get_settings()
    return create_app(EchoService(settings), settings)


def main(settings: Settings | None = None) -> None:
    """Entry point for the echo service."""
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_json)
    if settings.auth_mode == "hmac" and not settings.hmac_secrets:
        logger.warning("No HMAC secrets configured; every request will be rejected")

    app = create_echo_app(settings)

    uvicorn.run(
        app,
        host=settings.service_host,
        port=settings.service_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

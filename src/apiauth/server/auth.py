"""HMAC authentication middleware."""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from apiauth.common.encoding import quote_path
from apiauth.common.errors import ConfigurationError, ErrorCode, error_response
from apiauth.common.logging import get_logger
from apiauth.common.settings import Settings
from apiauth.server.verifier import Verifier

logger = get_logger(__name__)


def signed_path(request: Request, prefix: str = "") -> str:
    """
    Rebuild the path a client signed from the raw request line.

    Percent-escapes are kept as sent, the mount prefix is removed on a
    segment boundary and the raw query string is appended.
    """
    raw_path = request.scope.get("raw_path")
    if raw_path:
        path = raw_path.split(b"?", 1)[0].decode("latin-1")
    else:
        path = quote_path(request.url.path)
    prefix = prefix.rstrip("/")
    if prefix and (path == prefix or path.startswith(prefix + "/")):
        path = path[len(prefix):] or "/"
    query = request.url.query
    if query:
        path = f"{path}?{query}"
    return path


class HmacAuthMiddleware(BaseHTTPMiddleware):
    """HMAC auth middleware for signed API requests."""

    def __init__(
        self,
        app: ASGIApp,
        settings: Settings,
        verifier: Verifier | None = None,
    ) -> None:
        super().__init__(app)
        self._settings = settings
        self._exempt_paths = set(settings.auth_exempt_paths)
        self._verifier = verifier or Verifier(
            settings.hmac_secrets,
            algorithm=settings.hmac_algorithm,
            max_skew_seconds=settings.hmac_max_skew_seconds,
        )

    @property
    def verifier(self) -> Verifier:
        return self._verifier

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if self._settings.auth_mode != "hmac":
            return await call_next(request)

        if request.url.path in self._exempt_paths or request.method == "OPTIONS":
            return await call_next(request)

        body = await request.body()
        outcome = self._verifier.verify(
            request.method,
            signed_path(request, self._settings.path_prefix),
            body or None,
            request.headers,
        )

        if not outcome.accepted:
            error = outcome.error
            code = (
                ErrorCode.NOT_CONFIGURED
                if isinstance(error, ConfigurationError)
                else ErrorCode.UNAUTHORIZED
            )
            return error_response(
                code,
                outcome.reasons[-1],
                error.status_code if error else 401,
                details={"reasons": list(outcome.reasons)},
                headers={"Access-Control-Allow-Origin": self._settings.access_control_origin},
            )

        request.state.auth = outcome
        return await call_next(request)

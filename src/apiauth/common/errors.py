"""Shared error types, codes and response helpers."""

from __future__ import annotations

from typing import Any

from starlette.responses import JSONResponse


class ErrorCode:
    NOT_FOUND = "not_found"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    NOT_CONFIGURED = "not_configured"
    UNAUTHORIZED = "unauthorized"
    BAD_REQUEST = "bad_request"


class AuthError(Exception):
    """Base class for request authentication failures."""

    status_code = 401

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ConfigurationError(AuthError):
    """No usable secrets or algorithm configured."""

    status_code = 500


class MalformedRequestError(AuthError):
    """Missing or unparseable authentication headers."""


class IntegrityError(AuthError):
    """Body does not match its Content-MD5 header."""


class FreshnessError(AuthError):
    """DateTime header outside the allowed skew window."""


class AuthenticationFailure(AuthError):
    """No configured secret reproduces the submitted signature."""


class TransportError(Exception):
    """Error sending a request to a remote service."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def error_response(
    code: str,
    message: str,
    status_code: int,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    payload = {
        "error": {
            "code": code,
            "message": message,
        }
    }
    if details:
        payload["error"]["details"] = details
    return JSONResponse(payload, status_code=status_code, headers=headers)

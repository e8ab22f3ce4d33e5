"""Server side: verification, middleware and the service base class."""

from apiauth.server.auth import HmacAuthMiddleware
from apiauth.server.service import Service, create_app
from apiauth.server.verifier import SecretStore, VerificationOutcome, Verifier, verify

__all__ = [
    "HmacAuthMiddleware",
    "SecretStore",
    "Service",
    "VerificationOutcome",
    "Verifier",
    "create_app",
    "verify",
]

"""Common utilities for apiauth."""

from apiauth.common.errors import (
    AuthenticationFailure,
    AuthError,
    ConfigurationError,
    FreshnessError,
    IntegrityError,
    MalformedRequestError,
    TransportError,
)
from apiauth.common.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "AuthError",
    "AuthenticationFailure",
    "ConfigurationError",
    "FreshnessError",
    "IntegrityError",
    "MalformedRequestError",
    "TransportError",
]

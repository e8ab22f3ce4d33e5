"""Client-side request signing."""

from __future__ import annotations

import base64
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from apiauth.common.encoding import append_query, encode_body, quote_path
from apiauth.common.hmac import (
    AUTH_SCHEME,
    DEFAULT_ACCEPT,
    DEFAULT_ALGORITHM,
    DEFAULT_CONTENT_TYPE,
    canonicalize,
    compute_signature,
    content_hash,
    format_http_date,
    resolve_algorithm,
    utcnow,
)
from apiauth.common.logging import get_logger

logger = get_logger(__name__)


class CredentialKind(str, Enum):
    """Authentication schemes a client can use."""

    HMAC = "hmac"
    BASIC = "basic"
    BEARER = "bearer"


@dataclass(frozen=True)
class Credential:
    """A secret together with the scheme it is presented with."""

    kind: CredentialKind
    secret: str | bytes = field(repr=False)

    @classmethod
    def hmac(cls, secret: str | bytes) -> Credential:
        return cls(CredentialKind.HMAC, secret)

    @classmethod
    def basic(cls, secret: str | bytes) -> Credential:
        """Basic credential, usually ``user:password``."""
        return cls(CredentialKind.BASIC, secret)

    @classmethod
    def bearer(cls, secret: str | bytes) -> Credential:
        return cls(CredentialKind.BEARER, secret)

    @classmethod
    def from_config(
        cls,
        kind: str | CredentialKind,
        secret: str | bytes | None,
    ) -> Credential | None:
        """Build a credential from configuration, or None when no secret is set."""
        if not secret:
            return None
        return cls(CredentialKind(kind), secret)


@dataclass(frozen=True)
class SignedRequest:
    """Everything the transport needs to send a signed request."""

    method: str
    url: str
    path: str
    headers: dict[str, str]
    body: bytes | None = None
    canonical: str | None = None


def _b64(secret: str | bytes) -> str:
    raw = secret.encode("utf-8") if isinstance(secret, str) else secret
    return base64.b64encode(raw).decode("ascii")


def merge_headers(*layers: Mapping[str, Any] | None) -> dict[str, str]:
    """Merge header mappings, later layers winning regardless of name case."""
    merged: dict[str, str] = {}
    for layer in layers:
        if not layer:
            continue
        for name, value in layer.items():
            for existing in [key for key in merged if key.lower() == name.lower()]:
                del merged[existing]
            merged[name] = str(value).strip()
    return merged


class Signer:
    """
    Produces authentication headers for outgoing requests.

    Exactly one credential is active per signer. HMAC credentials sign a
    canonical string built from the method, content type, body MD5, path and
    current time; Basic and Bearer credentials only add an Authorization
    header.
    """

    DEFAULT_HEADERS = {
        "Content-Type": DEFAULT_CONTENT_TYPE,
        "Accept": DEFAULT_ACCEPT,
    }

    def __init__(
        self,
        credential: Credential | None = None,
        base_url: str = "",
        algorithm: str = DEFAULT_ALGORITHM,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the signer.

        Args:
            credential: Credential to present, None for unauthenticated requests
            base_url: Prefix for the returned request URL
            algorithm: Hash algorithm for HMAC signatures
            clock: Source of the DateTime header
        """
        if credential is not None and not credential.secret:
            credential = None
        self._credential = credential
        self._base_url = base_url.rstrip("/")
        self._algorithm = resolve_algorithm(algorithm)
        self._clock = clock

    @property
    def credential(self) -> Credential | None:
        return self._credential

    def hmac_headers(
        self,
        method: str,
        path: str,
        body: bytes | None,
        secret: str | bytes,
    ) -> tuple[dict[str, str], str]:
        """
        Build HMAC headers for a request.

        Args:
            method: HTTP method
            path: Path including query string
            body: Encoded body bytes
            secret: HMAC secret

        Returns:
            Headers and the canonical string that was signed
        """
        timestamp = format_http_date(self._clock())
        body_md5 = content_hash(body)
        canonical = canonicalize(method, DEFAULT_CONTENT_TYPE, body_md5, path, timestamp)
        signature = compute_signature(canonical, secret, self._algorithm)

        headers = {
            "Authorization": f"{AUTH_SCHEME}{signature}",
            "Content-Type": DEFAULT_CONTENT_TYPE,
            "Accept": DEFAULT_CONTENT_TYPE,
            "DateTime": timestamp,
        }
        if body:
            headers["Content-MD5"] = body_md5
        return headers, canonical

    def auth_headers(
        self,
        method: str,
        path: str,
        body: bytes | None = None,
    ) -> tuple[dict[str, str], str | None]:
        """Authentication headers for the configured credential."""
        credential = self._credential
        if credential is None:
            return {}, None
        if credential.kind is CredentialKind.HMAC:
            return self.hmac_headers(method, path, body, credential.secret)
        if credential.kind is CredentialKind.BASIC:
            return {"Authorization": f"Basic {_b64(credential.secret)}"}, None
        return {"Authorization": f"Bearer {_b64(credential.secret)}"}, None

    def sign(
        self,
        method: str,
        path: str,
        body: Any = None,
        query_params: Mapping[str, Any] | None = None,
        headers: Mapping[str, Any] | None = None,
    ) -> SignedRequest:
        """
        Sign a request.

        Args:
            method: HTTP method
            path: Request path relative to the base URL, percent-encoded once
                if it holds spaces or non-ASCII characters
            body: Body; non-string values are sent as JSON
            query_params: Query parameters appended to the path
            headers: Extra headers, overridden by auth headers

        Returns:
            SignedRequest with final URL, headers and body bytes
        """
        method = method.upper()
        path = quote_path(append_query(path, query_params))
        data = encode_body(body)

        auth, canonical = self.auth_headers(method, path, data)
        logger.debug(
            "Signing request",
            method=method,
            path=path,
            kind=self._credential.kind.value if self._credential else None,
        )

        return SignedRequest(
            method=method,
            url=f"{self._base_url}{path}",
            path=path,
            headers=merge_headers(self.DEFAULT_HEADERS, headers, auth),
            body=data,
            canonical=canonical,
        )


def sign(
    method: str,
    path: str,
    body: Any = None,
    query_params: Mapping[str, Any] | None = None,
    credential: Credential | None = None,
) -> SignedRequest:
    """Sign a single request without keeping a Signer around."""
    return Signer(credential).sign(method, path, body, query_params)

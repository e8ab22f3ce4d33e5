"""Server-side HMAC request verification."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from apiauth.common.encoding import append_query, encode_body
from apiauth.common.errors import (
    AuthenticationFailure,
    AuthError,
    ConfigurationError,
    FreshnessError,
    IntegrityError,
    MalformedRequestError,
)
from apiauth.common.hmac import (
    DEFAULT_ALGORITHM,
    MAX_TIMESTAMP_SKEW_SECONDS,
    canonicalize,
    content_hash,
    parse_http_date,
    resolve_algorithm,
    utcnow,
    verify_signature,
)
from apiauth.common.logging import get_logger

logger = get_logger(__name__)

AUTHORIZATION_RE = re.compile(r"^APIAuth 4: ?(.+)$")

QUERY_METHODS = frozenset({"GET", "DELETE"})


class SecretStore:
    """Set of HMAC secrets, any of which may have signed a request."""

    def __init__(self, secrets: Iterable[str | bytes] = ()):
        self._secrets: set[bytes] = set()
        for secret in secrets:
            self.add(secret)

    @staticmethod
    def _normalize(secret: str | bytes) -> bytes:
        return secret.encode("utf-8") if isinstance(secret, str) else bytes(secret)

    def add(self, secret: str | bytes) -> None:
        """Add a secret. Empty secrets are ignored."""
        if secret:
            self._secrets.add(self._normalize(secret))

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._secrets)

    def __len__(self) -> int:
        return len(self._secrets)

    def __contains__(self, secret: object) -> bool:
        if not isinstance(secret, (str, bytes)):
            return False
        return self._normalize(secret) in self._secrets


@dataclass(frozen=True)
class VerificationOutcome:
    """Result of verifying one request."""

    accepted: bool
    reasons: tuple[str, ...] = ()
    error: AuthError | None = field(default=None, compare=False)

    def __bool__(self) -> bool:
        return self.accepted

    def raise_for_failure(self) -> None:
        """Raise the recorded error if the request was rejected."""
        if self.error is not None:
            raise self.error


class Verifier:
    """
    Verifies HMAC-signed requests against a set of shared secrets.

    Checks run in a fixed order and the first failure rejects the request:
    configuration, required headers, freshness, content type, content MD5,
    Authorization format and finally the signature itself.
    """

    def __init__(
        self,
        secrets: SecretStore | Iterable[str | bytes] | None = None,
        algorithm: str = DEFAULT_ALGORITHM,
        max_skew_seconds: float = MAX_TIMESTAMP_SKEW_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the verifier.

        Args:
            secrets: Accepted secrets
            algorithm: Hash algorithm the clients sign with
            max_skew_seconds: Allowed difference between DateTime and now
            clock: Source of the current time
        """
        if isinstance(secrets, SecretStore):
            self._secrets = secrets
        else:
            self._secrets = SecretStore(secrets or ())
        self._algorithm = resolve_algorithm(algorithm)
        self._max_skew = max_skew_seconds
        self._clock = clock

    @property
    def secrets(self) -> SecretStore:
        return self._secrets

    @property
    def algorithm(self) -> str:
        return self._algorithm

    def add_secret(self, secret: str | bytes) -> None:
        self._secrets.add(secret)

    def set_algorithm(self, algorithm: str) -> None:
        self._algorithm = resolve_algorithm(algorithm)

    def verify(
        self,
        method: str,
        path: str,
        body: Any,
        headers: Mapping[str, str],
        *,
        now: datetime | None = None,
        diagnostics: list[str] | None = None,
    ) -> VerificationOutcome:
        """
        Verify a request.

        Args:
            method: HTTP method
            path: Request path as signed by the client, query string included
            body: Raw body bytes/str, or query params (mapping or sequence)
                for GET/DELETE
            headers: Request headers (any case)
            now: Override for the current time
            diagnostics: Optional list that rejection reasons are appended to

        Returns:
            VerificationOutcome with the reason of the first failing check
        """
        reasons: list[str] = []

        def reject(error: AuthError) -> VerificationOutcome:
            reasons.append(error.reason)
            if diagnostics is not None:
                diagnostics.append(error.reason)
            logger.info(
                "Request rejected",
                method=method,
                path=path,
                reason=error.reason,
                error=type(error).__name__,
            )
            return VerificationOutcome(False, tuple(reasons), error)

        if not len(self._secrets):
            return reject(ConfigurationError("HMAC not configured on this service."))

        lowered = {name.lower(): value for name, value in headers.items()}

        authorization = lowered.get("authorization")
        if authorization is None:
            return reject(MalformedRequestError("No Authorization header supplied."))

        request_date = lowered.get("datetime")
        if request_date is None:
            return reject(MalformedRequestError("No DateTime header supplied."))

        try:
            timestamp = parse_http_date(request_date)
        except MalformedRequestError as exc:
            return reject(exc)

        current = now or self._clock()
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        skew = abs((current - timestamp).total_seconds())
        if skew > self._max_skew:
            logger.debug("DateTime outside window", skew=skew, max_skew=self._max_skew)
            return reject(FreshnessError("Request expired."))

        content_type = lowered.get("content-type")
        if content_type is None:
            return reject(MalformedRequestError("No Content-Type header supplied."))

        method = method.upper()
        if method in QUERY_METHODS and isinstance(body, (Mapping, list, tuple)):
            params = body if isinstance(body, Mapping) else dict(enumerate(body))
            path = append_query(path, params)
            body = None

        data = encode_body(body)
        body_md5 = content_hash(data)

        if data:
            received_md5 = lowered.get("content-md5")
            if received_md5 is None:
                return reject(MalformedRequestError("No Content-MD5 header supplied."))
            if received_md5 != body_md5:
                logger.debug(
                    "Content-MD5 mismatch",
                    expected=body_md5,
                    received=received_md5,
                )
                return reject(IntegrityError("Incorrect Content-MD5 header supplied."))

        match = AUTHORIZATION_RE.match(authorization)
        if not match:
            return reject(
                MalformedRequestError(
                    'Authorization header should be supplied in the format "APIAuth 4: [HMAC]".'
                )
            )
        signature = match.group(1)

        canonical = canonicalize(method, content_type, body_md5, path, request_date)

        for secret in self._secrets:
            if verify_signature(canonical, secret, signature, self._algorithm):
                logger.debug("Request authenticated", method=method, path=path)
                return VerificationOutcome(True, tuple(reasons))

        return reject(AuthenticationFailure("HMAC authorization failed."))


def verify(
    method: str,
    path: str,
    body: Any,
    headers: Mapping[str, str],
    secret_store: SecretStore | Iterable[str | bytes],
    algorithm: str = DEFAULT_ALGORITHM,
    now: datetime | None = None,
) -> VerificationOutcome:
    """Verify a single request without keeping a Verifier around."""
    return Verifier(secret_store, algorithm=algorithm).verify(
        method, path, body, headers, now=now
    )

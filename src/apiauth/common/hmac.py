"""HMAC request signing primitives shared by signer and verifier."""

from __future__ import annotations

import base64
import hashlib
import hmac
import re
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime

from apiauth.common.errors import ConfigurationError, MalformedRequestError

AUTH_SCHEME = "APIAuth 4:"
DEFAULT_ALGORITHM = "sha1"
DEFAULT_CONTENT_TYPE = "application/json"
DEFAULT_ACCEPT = "application/json, text/javascript"
MAX_TIMESTAMP_SKEW_SECONDS = 300

_HTTP_DATE_RE = re.compile(
    r"^[A-Z][a-z]{2}, \d{2} [A-Z][a-z]{2} \d{4} \d{2}:\d{2}:\d{2} GMT$"
)


def canonicalize(
    method: str,
    content_type: str,
    content_md5: str,
    path: str,
    timestamp: str,
) -> str:
    """
    Build the canonical string that is fed to the HMAC.

    Fields are joined with bare commas and are not escaped, so a comma inside
    the content type or path is indistinguishable from a separator. Peers rely
    on this exact layout.

    Args:
        method: HTTP method, as sent
        content_type: Content-Type header value
        content_md5: Hex MD5 of the body, empty when there is no body
        path: Request path including any query string
        timestamp: DateTime header value

    Returns:
        ``METHOD,CONTENT_TYPE,CONTENT_MD5,PATH,TIMESTAMP``
    """
    return ",".join([method, content_type, content_md5, path, timestamp])


def content_hash(body: bytes | None) -> str:
    """Hex MD5 of the body, or an empty string when there is none."""
    if not body:
        return ""
    return hashlib.md5(body).hexdigest()


def resolve_algorithm(name: str) -> str:
    """Normalize a hash name and make sure hashlib can provide it."""
    algorithm = name.lower()
    if algorithm not in hashlib.algorithms_available:
        raise ConfigurationError(f"Unsupported HMAC algorithm: {name}")
    return algorithm


def _key(secret: str | bytes) -> bytes:
    return secret.encode("utf-8") if isinstance(secret, str) else secret


def compute_signature(
    canonical: str,
    secret: str | bytes,
    algorithm: str = DEFAULT_ALGORITHM,
) -> str:
    """Create a base64-encoded HMAC signature of a canonical string."""
    digest = hmac.new(_key(secret), canonical.encode("utf-8"), algorithm).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(
    canonical: str,
    secret: str | bytes,
    signature: str,
    algorithm: str = DEFAULT_ALGORITHM,
) -> bool:
    """Verify an HMAC signature in constant time."""
    expected = compute_signature(canonical, secret, algorithm)
    return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_http_date(value: datetime) -> str:
    """Render ``Ddd, dd Mon yyyy HH:mm:ss GMT`` for the DateTime header."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def parse_http_date(value: str) -> datetime:
    """
    Parse a DateTime header value.

    Only the GMT form produced by :func:`format_http_date` is accepted.

    Raises:
        MalformedRequestError: If the value is not a GMT HTTP date
    """
    if not _HTTP_DATE_RE.match(value.strip()):
        raise MalformedRequestError("Invalid DateTime header supplied.")
    try:
        parsed = parsedate_to_datetime(value.strip())
    except (TypeError, ValueError) as exc:
        raise MalformedRequestError("Invalid DateTime header supplied.") from exc
    return parsed.astimezone(timezone.utc)

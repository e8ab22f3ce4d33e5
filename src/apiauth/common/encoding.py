"""Query string and body encoding shared by signer and verifier."""

import json
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote, quote_plus

PATH_SAFE = "/%:@!$&'()*+,;=~"
QUERY_SAFE = PATH_SAFE + "?"


def _scalar(value: Any) -> str:
    if value is True:
        return "1"
    if value is False:
        return "0"
    return str(value)


def _flatten(prefix: str, value: Any) -> list[tuple[str, str]]:
    if value is None:
        return []
    if isinstance(value, Mapping):
        items = list(value.items())
    elif isinstance(value, (list, tuple)):
        items = list(enumerate(value))
    else:
        return [(prefix, _scalar(value))]

    pairs: list[tuple[str, str]] = []
    for key, item in items:
        pairs.extend(_flatten(f"{prefix}[{key}]", item))
    return pairs


def build_query(params: Mapping[str, Any]) -> str:
    """
    URL-encode query parameters, preserving the given key order.

    Nested mappings and sequences use bracket notation (``a[b]=1``,
    ``a[0]=1``), booleans become ``1``/``0`` and ``None`` values are skipped,
    matching the form-encoding used by PHP peers.

    Args:
        params: Query parameters

    Returns:
        Encoded query string without a leading ``?``
    """
    pairs: list[tuple[str, str]] = []
    for key, value in params.items():
        pairs.extend(_flatten(str(key), value))
    return "&".join(f"{quote_plus(key)}={quote_plus(value)}" for key, value in pairs)


def append_query(path: str, params: Mapping[str, Any] | None) -> str:
    """Append encoded params to a path."""
    if not params:
        return path
    query = build_query(params)
    if not query:
        return path
    separator = "&" if "?" in path else "?"
    return f"{path}{separator}{query}"


def encode_body(body: Any) -> bytes | None:
    """
    Turn a request body into the bytes that go on the wire.

    Strings are UTF-8 encoded, bytes are kept, and anything else is
    serialized to compact JSON. Empty bodies come back as ``None``.
    """
    if body is None:
        return None
    if isinstance(body, (bytes, bytearray)):
        data = bytes(body)
    elif isinstance(body, str):
        data = body.encode("utf-8")
    else:
        data = json.dumps(body, separators=(",", ":")).encode("utf-8")
    return data or None


def quote_path(path: str) -> str:
    """
    Percent-encode a path (and any query string) for the request line.

    Existing escapes are kept, so an already encoded path comes back
    unchanged. Spaces and non-ASCII characters are UTF-8 percent-encoded.
    """
    base, sep, query = path.partition("?")
    return quote(base, safe=PATH_SAFE) + sep + quote(query, safe=QUERY_SAFE)

"""HTTP client for services protected by request signing."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import aiohttp
from yarl import URL

from apiauth.client.signer import Credential, SignedRequest, Signer
from apiauth.common.errors import TransportError
from apiauth.common.hmac import DEFAULT_ALGORITHM
from apiauth.common.logging import get_logger
from apiauth.common.settings import Settings

logger = get_logger(__name__)


@dataclass(frozen=True)
class ConsumerResponse:
    """Status and decoded body of a remote response."""

    status_code: int
    body: Any
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class Consumer:
    """
    Client for a REST service.

    Every request is signed with the configured credential and sent over a
    shared aiohttp session. Connection failures and timeouts surface as
    TransportError; HTTP error statuses are returned to the caller.
    """

    def __init__(
        self,
        base_url: str,
        credential: Credential | None = None,
        timeout: float = 30.0,
        algorithm: str = DEFAULT_ALGORITHM,
        session: aiohttp.ClientSession | None = None,
    ):
        """
        Initialize the consumer.

        Args:
            base_url: Service base URL
            credential: Credential used to authenticate requests
            timeout: Total request timeout in seconds
            algorithm: Hash algorithm for HMAC signatures
            session: Existing session to use instead of creating one
        """
        self._base_url = base_url.rstrip("/")
        self._signer = Signer(credential, base_url=self._base_url, algorithm=algorithm)
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None
        self._response_code: int | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> Consumer:
        return cls(
            settings.base_url,
            credential=settings.credential,
            timeout=settings.http_timeout,
            algorithm=settings.hmac_algorithm,
        )

    @property
    def signer(self) -> Signer:
        return self._signer

    @property
    def response_code(self) -> int | None:
        """Status code of the last response received."""
        return self._response_code

    async def __aenter__(self) -> Consumer:
        """Enter async context."""
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context."""
        await self.close()

    async def close(self) -> None:
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure session exists."""
        if not self._session:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def execute(self, signed: SignedRequest) -> ConsumerResponse:
        """
        Send a signed request.

        Args:
            signed: Output of Signer.sign

        Returns:
            ConsumerResponse with JSON-decoded body when possible

        Raises:
            TransportError: If the request could not be completed
        """
        self._response_code = None
        session = self._ensure_session()

        logger.debug("Sending request", method=signed.method, url=signed.url)

        try:
            # encoded=True keeps the signed query string byte-for-byte
            response = await session.request(
                signed.method,
                URL(signed.url, encoded=True),
                headers=signed.headers,
                data=signed.body,
            )
            async with response:
                status = response.status
                text = await response.text()
                headers = dict(response.headers)
        except aiohttp.ClientError as e:
            raise TransportError(f"Request to {signed.url} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise TransportError(f"Request to {signed.url} timed out") from e

        self._response_code = status
        if status >= 400:
            logger.info("Request returned error status", url=signed.url, status=status)

        body: Any = text
        if text:
            try:
                body = json.loads(text)
            except ValueError:
                body = text
        return ConsumerResponse(status_code=status, body=body, headers=headers)

    async def request(
        self,
        method: str,
        path: str,
        data: Any = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> ConsumerResponse:
        signed = self._signer.sign(method, path, data, params, headers)
        return await self.execute(signed)

    async def get(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> ConsumerResponse:
        return await self.request("GET", path, params=params, headers=headers)

    async def post(
        self,
        path: str,
        data: Any,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> ConsumerResponse:
        return await self.request("POST", path, data, params, headers)

    async def put(
        self,
        path: str,
        data: Any,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> ConsumerResponse:
        return await self.request("PUT", path, data, params, headers)

    async def patch(
        self,
        path: str,
        data: Any,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> ConsumerResponse:
        return await self.request("PATCH", path, data, params, headers)

    async def delete(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> ConsumerResponse:
        return await self.request("DELETE", path, params=params, headers=headers)

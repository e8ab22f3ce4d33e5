"""Tests for the signed HTTP consumer."""

import asyncio
import hashlib
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from yarl import URL

from apiauth.client.consumer import Consumer, ConsumerResponse
from apiauth.client.signer import Credential
from apiauth.common.errors import TransportError


def _mock_session(status: int = 200, text: str = "") -> MagicMock:
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.headers = {"Content-Type": "application/json"}
    mock_response.text = AsyncMock(return_value=text)
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)

    session = MagicMock()
    session.request = AsyncMock(return_value=mock_response)
    session.close = AsyncMock()
    return session


class TestConsumerRequests:
    """Signing and sending through the session."""

    @pytest.mark.asyncio
    async def test_get_with_params(self):
        session = _mock_session(text='{"items": []}')
        consumer = Consumer("http://api.local/", Credential.hmac("k"), session=session)

        response = await consumer.get("/items", params={"page": 2})

        assert response == ConsumerResponse(
            status_code=200,
            body={"items": []},
            headers={"Content-Type": "application/json"},
        )
        assert response.ok is True
        assert consumer.response_code == 200

        args, kwargs = session.request.call_args
        assert args[0] == "GET"
        assert args[1] == URL("http://api.local/items?page=2", encoded=True)
        assert kwargs["headers"]["Authorization"].startswith("APIAuth 4:")
        assert "DateTime" in kwargs["headers"]
        assert kwargs["data"] is None

    @pytest.mark.asyncio
    async def test_post_sends_signed_json(self):
        session = _mock_session(status=201, text='{"id": 1}')
        consumer = Consumer("http://api.local", Credential.hmac("k"), session=session)

        response = await consumer.post("/items", {"name": "pump"})

        assert response.status_code == 201
        _, kwargs = session.request.call_args
        assert kwargs["data"] == b'{"name":"pump"}'
        assert kwargs["headers"]["Content-MD5"] == hashlib.md5(b'{"name":"pump"}').hexdigest()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["put", "patch"])
    async def test_put_and_patch(self, method):
        session = _mock_session(text="{}")
        consumer = Consumer("http://api.local", Credential.hmac("k"), session=session)

        await getattr(consumer, method)("/items/1", "raw")

        args, kwargs = session.request.call_args
        assert args[0] == method.upper()
        assert kwargs["data"] == b"raw"

    @pytest.mark.asyncio
    async def test_delete(self):
        session = _mock_session(status=204)
        consumer = Consumer("http://api.local", Credential.bearer("tok"), session=session)

        response = await consumer.delete("/items/1")

        assert response.status_code == 204
        assert response.body == ""
        args, kwargs = session.request.call_args
        assert args[0] == "DELETE"
        assert kwargs["headers"]["Authorization"] == "Bearer dG9r"

    @pytest.mark.asyncio
    async def test_non_json_body_kept_as_text(self):
        session = _mock_session(text="plain")
        consumer = Consumer("http://api.local", session=session)

        response = await consumer.get("/status")

        assert response.body == "plain"

    @pytest.mark.asyncio
    async def test_error_status_returned(self):
        session = _mock_session(status=401, text='{"error": {"code": "unauthorized"}}')
        consumer = Consumer("http://api.local", Credential.hmac("k"), session=session)

        response = await consumer.get("/items")

        assert response.ok is False
        assert response.body["error"]["code"] == "unauthorized"
        assert consumer.response_code == 401


class TestConsumerTransportErrors:
    """Transport failures surface as TransportError."""

    @pytest.mark.asyncio
    async def test_connection_error(self):
        session = MagicMock()
        session.request = AsyncMock(side_effect=aiohttp.ClientConnectionError("refused"))
        consumer = Consumer("http://api.local", Credential.hmac("k"), session=session)

        with pytest.raises(TransportError) as exc_info:
            await consumer.get("/items")

        assert "refused" in str(exc_info.value)
        assert consumer.response_code is None

    @pytest.mark.asyncio
    async def test_timeout(self):
        session = MagicMock()
        session.request = AsyncMock(side_effect=asyncio.TimeoutError())
        consumer = Consumer("http://api.local", session=session)

        with pytest.raises(TransportError) as exc_info:
            await consumer.get("/items")

        assert "timed out" in str(exc_info.value)


class TestConsumerLifecycle:
    """Session ownership."""

    @pytest.mark.asyncio
    async def test_injected_session_not_closed(self):
        session = _mock_session()
        async with Consumer("http://api.local", session=session):
            pass

        session.close.assert_not_called()

    @pytest.mark.asyncio
    async def test_owned_session_closed(self):
        consumer = Consumer("http://api.local")
        async with consumer:
            session = consumer._session
            assert session is not None

        assert session.closed
        assert consumer._session is None

    def test_from_settings(self, settings):
        consumer = Consumer.from_settings(settings)
        assert consumer.signer.credential == Credential.hmac("secret-b")

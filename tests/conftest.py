"""Pytest configuration and fixtures."""

from datetime import datetime, timezone

import pytest

from apiauth.client.signer import Credential, Signer
from apiauth.common.settings import Settings
from apiauth.server.verifier import Verifier

FIXED_NOW = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
FIXED_STAMP = "Mon, 01 Jan 2024 00:00:00 GMT"


@pytest.fixture
def fixed_now() -> datetime:
    """Fixed verification time."""
    return FIXED_NOW


@pytest.fixture
def clock():
    """Clock frozen at FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings(
        base_url="http://testserver",
        credential_kind="hmac",
        credential_secret="secret-b",
        auth_mode="hmac",
        hmac_secrets=("secret-a", "secret-b"),
    )


@pytest.fixture
def signer(clock) -> Signer:
    """HMAC signer frozen at FIXED_NOW."""
    return Signer(Credential.hmac("secret-b"), clock=clock)


@pytest.fixture
def verifier(clock) -> Verifier:
    """Verifier holding two secrets, frozen at FIXED_NOW."""
    return Verifier(["secret-a", "secret-b"], clock=clock)

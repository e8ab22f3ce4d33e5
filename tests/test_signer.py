"""Tests for client-side request signing."""

import base64
import hashlib
import hmac
from datetime import datetime, timezone

import pytest

from apiauth.client.signer import Credential, CredentialKind, Signer, merge_headers, sign
from apiauth.common.errors import ConfigurationError

FIXED_NOW = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
FIXED_STAMP = "Mon, 01 Jan 2024 00:00:00 GMT"


def _reference(canonical: str, secret: bytes) -> str:
    return base64.b64encode(hmac.new(secret, canonical.encode(), hashlib.sha1).digest()).decode()


class TestCredential:
    """Credential construction."""

    def test_constructors(self):
        assert Credential.hmac("k").kind is CredentialKind.HMAC
        assert Credential.basic("u:p").kind is CredentialKind.BASIC
        assert Credential.bearer("t").kind is CredentialKind.BEARER

    def test_from_config(self):
        assert Credential.from_config("bearer", "t") == Credential.bearer("t")

    @pytest.mark.parametrize("secret", [None, ""])
    def test_from_config_without_secret(self, secret):
        assert Credential.from_config("hmac", secret) is None

    def test_secret_hidden_from_repr(self):
        assert "hunter2" not in repr(Credential.hmac("hunter2"))


class TestHmacSigning:
    """HMAC header construction."""

    def test_get_without_body(self, signer):
        signed = signer.sign("GET", "/items")

        canonical = "GET,application/json,,/items," + FIXED_STAMP
        assert signed.canonical == canonical
        assert signed.headers["Authorization"] == "APIAuth 4:" + _reference(canonical, b"secret-b")
        assert signed.headers["DateTime"] == FIXED_STAMP
        assert signed.headers["Content-Type"] == "application/json"
        assert signed.headers["Accept"] == "application/json"
        assert "Content-MD5" not in signed.headers
        assert signed.body is None

    def test_example_secret_k(self, clock):
        signed = Signer(Credential.hmac("k"), clock=clock).sign("GET", "/items", None)
        canonical = "GET,application/json,,/items,Mon, 01 Jan 2024 00:00:00 GMT"
        assert signed.canonical == canonical
        assert signed.headers["Authorization"] == "APIAuth 4:" + _reference(canonical, b"k")

    def test_post_body_is_hashed(self, signer):
        signed = signer.sign("POST", "/items", {"name": "pump"})

        body = b'{"name":"pump"}'
        md5 = hashlib.md5(body).hexdigest()
        assert signed.body == body
        assert signed.headers["Content-MD5"] == md5
        assert signed.canonical == f"POST,application/json,{md5},/items,{FIXED_STAMP}"

    def test_string_body_is_sent_verbatim(self, signer):
        signed = signer.sign("PUT", "/items/1", '{"a": 1}')
        assert signed.body == b'{"a": 1}'
        assert signed.headers["Content-MD5"] == hashlib.md5(b'{"a": 1}').hexdigest()

    def test_query_params_in_path_and_url(self, clock):
        signer = Signer(Credential.hmac("k"), base_url="http://api.local/", clock=clock)
        signed = signer.sign("GET", "/items", query_params={"page": 2, "q": "red shoes"})

        assert signed.path == "/items?page=2&q=red+shoes"
        assert signed.url == "http://api.local/items?page=2&q=red+shoes"
        assert ",/items?page=2&q=red+shoes," in signed.canonical

    def test_method_is_uppercased(self, signer):
        assert signer.sign("get", "/items").canonical.startswith("GET,")

    def test_algorithm(self, clock):
        signed = Signer(Credential.hmac("k"), algorithm="sha256", clock=clock).sign("GET", "/x")
        expected = base64.b64encode(
            hmac.new(b"k", signed.canonical.encode(), hashlib.sha256).digest()
        ).decode()
        assert signed.headers["Authorization"] == "APIAuth 4:" + expected

    def test_unknown_algorithm(self):
        with pytest.raises(ConfigurationError):
            Signer(Credential.hmac("k"), algorithm="nope")

    def test_timestamp_changes_signature(self):
        first = Signer(Credential.hmac("k"), clock=lambda: FIXED_NOW).sign("GET", "/x")
        later = Signer(
            Credential.hmac("k"),
            clock=lambda: FIXED_NOW.replace(second=1),
        ).sign("GET", "/x")
        assert first.headers["Authorization"] != later.headers["Authorization"]


class TestOtherCredentials:
    """Basic, Bearer and unauthenticated requests."""

    def test_basic(self):
        signed = Signer(Credential.basic("user:pass")).sign("GET", "/items")
        assert signed.headers["Authorization"] == "Basic " + base64.b64encode(b"user:pass").decode()
        assert "DateTime" not in signed.headers
        assert signed.canonical is None

    def test_bearer(self):
        signed = Signer(Credential.bearer("tok")).sign("POST", "/items", {"a": 1})
        assert signed.headers["Authorization"] == "Bearer " + base64.b64encode(b"tok").decode()
        assert "Content-MD5" not in signed.headers

    def test_no_credential(self):
        signed = Signer().sign("GET", "/items")
        assert "Authorization" not in signed.headers
        assert signed.headers == {
            "Content-Type": "application/json",
            "Accept": "application/json, text/javascript",
        }

    def test_empty_hmac_secret_is_no_credential(self):
        signer = Signer(Credential.hmac(""))
        assert signer.credential is None
        assert "Authorization" not in signer.sign("GET", "/items").headers

    def test_module_level_sign(self):
        signed = sign("GET", "/items", credential=Credential.bearer("tok"))
        assert signed.headers["Authorization"].startswith("Bearer ")


class TestHeaderMerge:
    """Default, caller and auth header precedence."""

    def test_auth_headers_override_defaults(self, signer):
        signed = signer.sign("GET", "/items")
        assert signed.headers["Accept"] == "application/json"

    def test_caller_headers_kept(self, signer):
        signed = signer.sign("GET", "/items", headers={"X-Trace": "abc"})
        assert signed.headers["X-Trace"] == "abc"

    def test_auth_overrides_caller_case_insensitively(self, signer):
        signed = signer.sign("GET", "/items", headers={"authorization": "Bearer nope"})
        assert "authorization" not in signed.headers
        assert signed.headers["Authorization"].startswith("APIAuth 4:")

    def test_merge_headers_strips_values(self):
        assert merge_headers({"A": " 1 "}, None, {"a": "2"}) == {"a": "2"}


class TestPathEncoding:
    """The signed path and the request URL are the same bytes."""

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/items/café", "/items/caf%C3%A9"),
            ("/items/caf%C3%A9", "/items/caf%C3%A9"),
            ("/files/my report.pdf", "/files/my%20report.pdf"),
        ],
    )
    def test_path_quoted_once(self, clock, path, expected):
        signer = Signer(Credential.hmac("k"), base_url="http://api.local", clock=clock)
        signed = signer.sign("GET", path)

        assert signed.path == expected
        assert signed.url == "http://api.local" + expected
        assert f",{expected}," in signed.canonical


class TestHeaderValues:
    """Non-string caller header values."""

    def test_int_value_coerced(self, signer):
        signed = signer.sign("GET", "/items", headers={"X-Retry": 3})
        assert signed.headers["X-Retry"] == "3"

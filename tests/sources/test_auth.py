"""Tests for token sources and token injection."""
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs

import httpx  # type: ignore
import pytest
from cryptography.hazmat.primitives import serialization  # type: ignore
from cryptography.hazmat.primitives.asymmetric import rsa  # type: ignore
from jose import jwt  # type: ignore

from sforce.exceptions.salesforce_exceptions import SalesforceAuthError
from sforce.sources.client.salesforce.auth import (
    ACCESS_TOKEN_SANDBOX_URL,
    ACCESS_TOKEN_URL,
    JWTTokenSource,
    PasswordTokenSource,
    ReuseTokenSource,
    StaticTokenSource,
    Token,
    TokenSource,
    _TokenEndpointSource,
)
from sforce.sources.client.salesforce.salesforce import SalesforceClient, SalesforceRESTClient
from sforce.sources.external.salesforce.service import Service
from tests.fixtures.salesforce_fixtures import INSTANCE_URL

TOKEN_RESPONSE = {
    "access_token": "00Dxx!fresh",
    "instance_url": INSTANCE_URL,
    "id": "https://login.salesforce.com/id/00Dxx0000001gPL/005xx000001Sv6e",
    "token_type": "Bearer",
    "issued_at": "1714557600000",
    "signature": "c2lnbmF0dXJl",
}


class TokenEndpoint:
    """Mock OAuth token endpoint recording submitted forms"""

    def __init__(self, status: int = 200, payload=None) -> None:
        self.status = status
        self.payload = TOKEN_RESPONSE if payload is None else payload
        self.forms = []
        self.urls = []

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.urls.append(str(request.url))
        self.forms.append({k: v[0] for k, v in parse_qs(request.content.decode()).items()})
        return httpx.Response(self.status, json=self.payload)


class CountingSource:
    def __init__(self, token: Token) -> None:
        self.calls = 0
        self._token = token

    async def token(self) -> Token:
        self.calls += 1
        return self._token


@pytest.fixture(scope="module")
def rsa_keys():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


class TestToken:
    def test_from_response(self):
        token = Token.from_response(TOKEN_RESPONSE)

        assert token.access_token == "00Dxx!fresh"
        assert token.instance_url == INSTANCE_URL
        assert token.issued_at == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
        assert token.expiry is None
        assert token.valid
        assert token.auth_header() == "Bearer 00Dxx!fresh"

    def test_expires_in(self):
        token = Token.from_response({"access_token": "x", "expires_in": 3600})

        assert token.expiry > datetime.now(timezone.utc) + timedelta(minutes=59)

    def test_validity(self):
        now = datetime.now(timezone.utc)

        assert not Token(access_token="").valid
        assert not Token(access_token="x", expiry=now - timedelta(seconds=1)).valid
        assert not Token(access_token="x", expiry=now + timedelta(seconds=5)).valid
        assert Token(access_token="x", expiry=now + timedelta(minutes=5)).valid

    def test_sources_satisfy_protocol(self):
        assert isinstance(StaticTokenSource(Token(access_token="x")), TokenSource)
        assert isinstance(PasswordTokenSource("id", "secret", "user", "pw"), TokenSource)


class TestReuseTokenSource:
    @pytest.mark.asyncio
    async def test_caches_valid_token(self):
        inner = CountingSource(Token(access_token="a"))
        source = ReuseTokenSource(inner)

        first = await source.token()
        second = await source.token()

        assert inner.calls == 1
        assert first is second
        assert first.expiry is not None

    @pytest.mark.asyncio
    async def test_refreshes_expired_token(self):
        stale = Token(access_token="old", issued_at=datetime.now(timezone.utc) - timedelta(hours=5))
        inner = CountingSource(Token(access_token="new"))
        source = ReuseTokenSource(inner, token=stale)

        token = await source.token()

        assert token.access_token == "new"
        assert inner.calls == 1

    @pytest.mark.asyncio
    async def test_initial_token_is_reused(self):
        inner = CountingSource(Token(access_token="new"))
        current = Token(access_token="current", expiry=datetime.now(timezone.utc) + timedelta(hours=1))

        token = await ReuseTokenSource(inner, token=current).token()

        assert token.access_token == "current"
        assert inner.calls == 0


class TestPasswordTokenSource:
    @pytest.mark.asyncio
    async def test_form_and_token(self):
        endpoint = TokenEndpoint()
        source = PasswordTokenSource(
            "client-id", "client-secret", "user@example.com", "hunter2",
            security_token="XYZ", transport=endpoint.transport(),
        )

        token = await source.token()

        assert token.access_token == "00Dxx!fresh"
        assert endpoint.urls == [ACCESS_TOKEN_URL]
        assert endpoint.forms == [{
            "grant_type": "password",
            "client_id": "client-id",
            "client_secret": "client-secret",
            "username": "user@example.com",
            "password": "hunter2XYZ",
        }]

    @pytest.mark.asyncio
    async def test_sandbox_url(self):
        endpoint = TokenEndpoint()
        source = PasswordTokenSource("id", "secret", "user", "pw", sandbox=True, transport=endpoint.transport())

        await source.token()

        assert endpoint.urls == [ACCESS_TOKEN_SANDBOX_URL]

    @pytest.mark.asyncio
    async def test_rejected_credentials(self):
        endpoint = TokenEndpoint(400, {"error": "invalid_grant", "error_description": "authentication failure"})
        source = PasswordTokenSource("id", "secret", "user", "bad", transport=endpoint.transport())

        with pytest.raises(SalesforceAuthError) as exc_info:
            await source.token()

        assert exc_info.value.status_code == 400
        assert "invalid_grant" in exc_info.value.body

    @pytest.mark.asyncio
    async def test_missing_access_token(self):
        endpoint = TokenEndpoint(200, {"instance_url": INSTANCE_URL})
        source = PasswordTokenSource("id", "secret", "user", "pw", transport=endpoint.transport())

        with pytest.raises(SalesforceAuthError):
            await source.token()


class TestTokenEndpointSource:
    def test_grant_form_is_abstract(self):
        with pytest.raises(TypeError):
            _TokenEndpointSource(ACCESS_TOKEN_URL)


class TestJWTTokenSource:
    def test_requires_credentials(self, rsa_keys):
        with pytest.raises(ValueError):
            JWTTokenSource("", "user@example.com", rsa_keys[0])

    def test_assertion_claims(self, rsa_keys):
        private_pem, public_pem = rsa_keys
        source = JWTTokenSource("consumer-key", "user@example.com", private_pem, key_id="k1")

        assertion = source.assertion()
        claims = jwt.decode(assertion, public_pem, algorithms=["RS256"], audience="https://login.salesforce.com")

        assert claims["iss"] == "consumer-key"
        assert claims["sub"] == "user@example.com"
        assert claims["exp"] <= int((datetime.now(timezone.utc) + timedelta(minutes=3)).timestamp()) + 1
        assert jwt.get_unverified_header(assertion)["kid"] == "k1"

    @pytest.mark.asyncio
    async def test_bearer_flow(self, rsa_keys):
        private_pem, public_pem = rsa_keys
        endpoint = TokenEndpoint()
        source = JWTTokenSource("consumer-key", "user@example.com", private_pem, sandbox=True, transport=endpoint.transport())

        token = await source.token()

        assert token.access_token == "00Dxx!fresh"
        assert endpoint.urls == [ACCESS_TOKEN_SANDBOX_URL]
        form = endpoint.forms[0]
        assert form["grant_type"] == "urn:ietf:params:oauth:grant-type:jwt-bearer"
        claims = jwt.decode(form["assertion"], public_pem, algorithms=["RS256"], audience="https://test.salesforce.com")
        assert claims["sub"] == "user@example.com"


class TestTokenInjection:
    def test_client_requires_credentials(self):
        with pytest.raises(ValueError):
            SalesforceRESTClient(INSTANCE_URL)

    @pytest.mark.asyncio
    async def test_token_source_consulted_per_request(self, fake_salesforce):
        inner = CountingSource(Token(access_token="from-source", expiry=datetime.now(timezone.utc) + timedelta(hours=1)))
        fake_salesforce.responder = lambda request: httpx.Response(200, json={"sobjects": []})
        client = SalesforceClient.build_with_token_source(
            "acme.my.salesforce.com", inner, transport=fake_salesforce.transport()
        )

        async with Service.from_client(client) as service:
            await service.object_list()
            await service.object_list()

        assert inner.calls == 2
        assert [r.headers["Authorization"] for r in fake_salesforce.requests] == ["Bearer from-source"] * 2
        assert str(fake_salesforce.requests[0].url).startswith(INSTANCE_URL)

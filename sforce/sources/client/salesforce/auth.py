"""Token sources for the Salesforce REST client.

A token source hands out bearer tokens on demand. The HTTP client asks its
source before every request, so caching and refreshing belong here rather
than in the callers.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import httpx  # type: ignore
from jose import jwt  # type: ignore
from pydantic import BaseModel, Field  # type: ignore

from sforce.exceptions.salesforce_exceptions import SalesforceAuthError

ACCESS_TOKEN_URL = "https://login.salesforce.com/services/oauth2/token"
ACCESS_TOKEN_SANDBOX_URL = "https://test.salesforce.com/services/oauth2/token"
DEFAULT_TOKEN_DURATION = timedelta(hours=4)
# refresh slightly ahead of expiry so a token never dies mid-request
EXPIRY_DELTA = timedelta(seconds=10)

logger = logging.getLogger(__name__)


def token_url(sandbox: bool) -> str:
    return ACCESS_TOKEN_SANDBOX_URL if sandbox else ACCESS_TOKEN_URL


class Token(BaseModel):
    """OAuth access token as returned by the Salesforce token endpoint"""
    access_token: str = Field(..., description="Bearer credential")
    token_type: str = Field(default="Bearer")
    instance_url: Optional[str] = Field(default=None, description="Instance the token is valid for")
    issued_at: Optional[datetime] = Field(default=None)
    expiry: Optional[datetime] = Field(default=None, description="None means the token never expires")

    @property
    def valid(self) -> bool:
        if not self.access_token:
            return False
        if self.expiry is None:
            return True
        return datetime.now(timezone.utc) + EXPIRY_DELTA < self.expiry

    def auth_header(self) -> str:
        return f"{self.token_type or 'Bearer'} {self.access_token}"

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "Token":
        """Build a Token from a token endpoint JSON payload"""
        issued_at = None
        if data.get("issued_at"):
            # milliseconds since the epoch, sent as a string
            issued_at = datetime.fromtimestamp(int(data["issued_at"]) / 1000, tz=timezone.utc)
        expiry = None
        if data.get("expires_in"):
            expiry = datetime.now(timezone.utc) + timedelta(seconds=int(data["expires_in"]))
        return cls(
            access_token=data.get("access_token", ""),
            token_type=data.get("token_type") or "Bearer",
            instance_url=data.get("instance_url"),
            issued_at=issued_at,
            expiry=expiry,
        )


@runtime_checkable
class TokenSource(Protocol):
    """Anything able to supply a bearer token"""

    async def token(self) -> Token:
        ...


class StaticTokenSource:
    """Always returns the same token"""

    def __init__(self, token: Token) -> None:
        self._token = token

    async def token(self) -> Token:
        return self._token


class ReuseTokenSource:
    """Caches the token of another source until it expires.

    Salesforce token responses carry no expires_in, so tokens without an
    expiry are treated as valid for default_duration after they were issued.
    """

    def __init__(
        self,
        source: TokenSource,
        token: Optional[Token] = None,
        default_duration: timedelta = DEFAULT_TOKEN_DURATION,
    ) -> None:
        self.source = source
        self.default_duration = default_duration
        self._token = self._with_expiry(token) if token is not None else None
        self._lock = asyncio.Lock()

    def _with_expiry(self, token: Token) -> Token:
        if token.expiry is not None:
            return token
        issued = token.issued_at or datetime.now(timezone.utc)
        return token.model_copy(update={"expiry": issued + self.default_duration})

    async def token(self) -> Token:
        async with self._lock:
            if self._token is not None and self._token.valid:
                return self._token
            logger.debug("Refreshing Salesforce access token")
            self._token = self._with_expiry(await self.source.token())
            return self._token


class _TokenEndpointSource(ABC):
    """Posts a form to the OAuth token endpoint and decodes the answer"""

    def __init__(self, url: str, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.url = url
        self.timeout = timeout
        self.transport = transport

    @abstractmethod
    def form(self) -> Dict[str, str]:
        """Form fields of the grant request"""
        pass

    async def token(self) -> Token:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(self.url, data=self.form(), headers={"Accept": "application/json"})
        if not response.is_success:
            raise SalesforceAuthError(
                f"token request failed with HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise SalesforceAuthError("token response is not valid JSON", response.status_code, response.text) from e
        token = Token.from_response(data)
        if not token.access_token:
            raise SalesforceAuthError("token response has no access_token", response.status_code, response.text)
        return token


class PasswordTokenSource(_TokenEndpointSource):
    """OAuth 2.0 username-password flow

    The security token is appended to the password as Salesforce requires.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        username: str,
        password: str,
        security_token: str = "",
        sandbox: bool = False,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(token_url(sandbox), timeout, transport)
        self.client_id = client_id
        self.client_secret = client_secret
        self.username = username
        self.password = password
        self.security_token = security_token

    def form(self) -> Dict[str, str]:
        return {
            "grant_type": "password",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "username": self.username,
            "password": self.password + self.security_token,
        }


class JWTTokenSource(_TokenEndpointSource):
    """OAuth 2.0 JWT bearer flow

    Args:
        consumer_key: Connected app consumer key (the iss claim)
        user_id: Salesforce username to impersonate (the sub claim)
        private_key: PEM encoded RSA private key registered with the connected app
        sandbox: Authenticate against test.salesforce.com
        key_id: Optional kid header
        token_duration: Lifetime of the signed assertion
    """

    GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"

    def __init__(
        self,
        consumer_key: str,
        user_id: str,
        private_key: str,
        sandbox: bool = False,
        key_id: Optional[str] = None,
        token_duration: timedelta = timedelta(minutes=3),
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(token_url(sandbox), timeout, transport)
        if not consumer_key or not user_id or not private_key:
            raise ValueError("consumer_key, user_id and private_key are required")
        self.consumer_key = consumer_key
        self.user_id = user_id
        self.private_key = private_key
        self.audience = "https://test.salesforce.com" if sandbox else "https://login.salesforce.com"
        self.key_id = key_id
        self.token_duration = token_duration

    def assertion(self) -> str:
        claims = {
            "iss": self.consumer_key,
            "sub": self.user_id,
            "aud": self.audience,
            "exp": int((datetime.now(timezone.utc) + self.token_duration).timestamp()),
        }
        headers = {"kid": self.key_id} if self.key_id else None
        return jwt.encode(claims, self.private_key, algorithm="RS256", headers=headers)

    def form(self) -> Dict[str, str]:
        return {"grant_type": self.GRANT_TYPE, "assertion": self.assertion()}

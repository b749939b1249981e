import logging
import os
from typing import Optional

import dotenv  # type: ignore
import httpx  # type: ignore
from pydantic import BaseModel, Field, field_validator  # type: ignore

from sforce.sources.client.http.http_client import HTTPClient
from sforce.sources.client.iclient import IClient
from sforce.sources.client.salesforce.auth import TokenSource

DEFAULT_API_VERSION = "59.0"


def normalize_version(version: Optional[str]) -> str:
    """'v59.0', '59.0' and '' all map to a bare version number"""
    version = (version or DEFAULT_API_VERSION).strip()
    return version[1:] if version.lower().startswith("v") else version


class SalesforceRESTClient(HTTPClient):
    """Salesforce REST client authorised by a bearer token or a TokenSource

    Args:
        instance_url: The Salesforce instance URL (e.g., https://my-domain.my.salesforce.com)
        access_token: A fixed OAuth access token
        token_source: Source consulted for a token before every request
        api_version: The Salesforce API version (default: '59.0')
    """

    def __init__(
        self,
        instance_url: str,
        access_token: Optional[str] = None,
        api_version: str = DEFAULT_API_VERSION,
        token_source: Optional[TokenSource] = None,
        timeout: float = 30.0,
        max_retries: int = 0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not access_token and token_source is None:
            raise ValueError("Either access_token or token_source is required")
        super().__init__(
            access_token,
            "Bearer",
            token_source=token_source,
            timeout=timeout,
            max_retries=max_retries,
            transport=transport,
            logger=logger,
        )

        self.instance_url = instance_url.rstrip('/')
        self.api_version = normalize_version(api_version)

        # Format: /services/data/vXX.X/
        self.base_path = f"/services/data/v{self.api_version}/"
        self.base_url = self.instance_url + self.base_path

    def get_base_url(self) -> str:
        """Get the versioned REST base URL"""
        return self.base_url

    def get_instance_url(self) -> str:
        return self.instance_url


class SalesforceConfig(BaseModel):
    """Connection and batching settings, usually read from SALESFORCE_* variables

    Args:
        instance_url: The Salesforce instance URL
        access_token: The OAuth access token
        api_version: API version to use (default: 59.0)
        batch_size: Records per collection call / rows per query page (0 = service maximum)
        max_rows: Total rows a query may return (0 = unlimited)
        timeout: HTTP timeout in seconds
        max_retries: Retries for 429/5xx/network failures
    """
    instance_url: str = Field(..., description="The Salesforce instance URL")
    access_token: str = Field(..., description="The OAuth access token")
    api_version: str = Field(default=DEFAULT_API_VERSION, description="The Salesforce API version")
    batch_size: int = Field(default=0, ge=0, description="Batch size override")
    max_rows: int = Field(default=0, ge=0, description="Query row cap")
    timeout: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=0, ge=0)

    @field_validator('instance_url')
    @classmethod
    def validate_instance_url(cls, v: str) -> str:
        if not v:
            raise ValueError("instance_url cannot be empty")
        if not v.startswith(('http://', 'https://')):
            # Assume https if protocol not provided
            return f"https://{v}"
        return v

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "SalesforceConfig":
        """Read SALESFORCE_* variables, loading a .env file first if present"""
        dotenv.load_dotenv(env_file)
        return cls(
            instance_url=os.getenv("SALESFORCE_INSTANCE_URL", ""),
            access_token=os.getenv("SALESFORCE_ACCESS_TOKEN", ""),
            api_version=os.getenv("SALESFORCE_API_VERSION", DEFAULT_API_VERSION),
            batch_size=int(os.getenv("SALESFORCE_BATCH_SIZE", "0")),
            max_rows=int(os.getenv("SALESFORCE_MAX_ROWS", "0")),
            timeout=float(os.getenv("SALESFORCE_TIMEOUT", "30")),
            max_retries=int(os.getenv("SALESFORCE_MAX_RETRIES", "0")),
        )

    def create_client(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> SalesforceRESTClient:
        """REST client authorised by the configured access token"""
        return SalesforceRESTClient(
            instance_url=self.instance_url,
            access_token=self.access_token,
            api_version=self.api_version,
            timeout=self.timeout,
            max_retries=self.max_retries,
            transport=transport,
        )

    def to_dict(self) -> dict:
        return self.model_dump()


class SalesforceClient(IClient):
    """Holds a built SalesforceRESTClient; use the build_with_* classmethods"""

    def __init__(self, client: SalesforceRESTClient) -> None:
        self.client = client

    def get_client(self) -> SalesforceRESTClient:
        return self.client

    def get_base_url(self) -> str:
        return self.client.get_base_url()

    @classmethod
    def build_with_config(
        cls,
        config: SalesforceConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "SalesforceClient":
        """Client authorised by the fixed access token in config"""
        return cls(config.create_client(transport))

    @classmethod
    def build_with_token_source(
        cls,
        instance_url: str,
        token_source: TokenSource,
        api_version: str = DEFAULT_API_VERSION,
        max_retries: int = 0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "SalesforceClient":
        """Build SalesforceClient that asks token_source for a token on every call"""
        if not instance_url.startswith(('http://', 'https://')):
            instance_url = f"https://{instance_url}"
        return cls(SalesforceRESTClient(
            instance_url=instance_url,
            api_version=api_version,
            token_source=token_source,
            max_retries=max_retries,
            transport=transport,
        ))

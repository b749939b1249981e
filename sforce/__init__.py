"""Async Salesforce REST client with batched SObject Collections calls."""
from sforce.exceptions.salesforce_exceptions import (
    BatchLimitExceeded,
    SalesforceAPIError,
    SalesforceAuthError,
    SalesforceDecodeError,
    SalesforceError,
    ZeroRecordsError,
)
from sforce.sources.client.salesforce.auth import (
    JWTTokenSource,
    PasswordTokenSource,
    ReuseTokenSource,
    StaticTokenSource,
    Token,
    TokenSource,
)
from sforce.sources.client.salesforce.salesforce import (
    SalesforceClient,
    SalesforceConfig,
    SalesforceRESTClient,
)
from sforce.sources.external.salesforce import *  # noqa: F401,F403
from sforce.sources.external.salesforce import __all__ as _service_all

__all__ = [
    "BatchLimitExceeded",
    "JWTTokenSource",
    "PasswordTokenSource",
    "ReuseTokenSource",
    "SalesforceAPIError",
    "SalesforceAuthError",
    "SalesforceClient",
    "SalesforceConfig",
    "SalesforceDecodeError",
    "SalesforceError",
    "SalesforceRESTClient",
    "StaticTokenSource",
    "Token",
    "TokenSource",
    "ZeroRecordsError",
    *_service_all,
]

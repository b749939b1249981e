from typing import Any, Dict, List, Optional


class SalesforceError(Exception):
    """Base exception for Salesforce client errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ZeroRecordsError(SalesforceError):
    """Raised (or returned) when a collection call receives no records or ids"""

    def __init__(self, message: str = "must have at least 1 record") -> None:
        super().__init__(message)


class SalesforceAPIError(SalesforceError):
    """Raised when Salesforce answers with a non-2xx status code

    Args:
        status_code: HTTP status code of the response
        body: raw response body
        errors: error entries decoded from the body, if it held any
    """

    def __init__(
        self,
        status_code: int,
        body: str = "",
        errors: Optional[List[Dict[str, Any]]] = None,
        message: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.errors = errors or []
        if message is None:
            if self.errors:
                first = self.errors[0]
                message = f"{first.get('errorCode', 'ERROR')}: {first.get('message', '')}"
            else:
                message = body[:500] if body else "no response body"
        super().__init__(
            f"HTTP {status_code}: {message}",
            {"status_code": status_code, "errors": self.errors},
        )


class SalesforceDecodeError(SalesforceError):
    """Raised when a response body cannot be decoded into the expected shape"""

    def __init__(self, message: str = "Failed to decode response", cause: Optional[BaseException] = None) -> None:
        super().__init__(message, {"cause": repr(cause)} if cause else None)
        self.cause = cause


class SalesforceAuthError(SalesforceError):
    """Raised when a token source fails to obtain an access token"""

    def __init__(self, message: str = "Failed to obtain access token", status_code: Optional[int] = None, body: str = "") -> None:
        super().__init__(message, {"status_code": status_code, "body": body})
        self.status_code = status_code
        self.body = body


class BatchLimitExceeded(SalesforceError):
    """Raised by BatchLogger when the number of failed records passes its limit"""

    def __init__(self, failures: int, limit: int) -> None:
        super().__init__(
            f"{failures} failed records exceeds limit of {limit}",
            {"failures": failures, "limit": limit},
        )
        self.failures = failures
        self.limit = limit

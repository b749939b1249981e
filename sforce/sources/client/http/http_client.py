import logging
from typing import TYPE_CHECKING, Optional

import httpx  # type: ignore
from aiolimiter import AsyncLimiter

from sforce.sources.client.http.http_request import HTTPRequest
from sforce.sources.client.http.http_response import HTTPResponse
from sforce.sources.client.http.resilient_transport import ResilientHTTPTransport
from sforce.sources.client.iclient import IClient

if TYPE_CHECKING:
    from sforce.sources.client.salesforce.auth import TokenSource


class HTTPClient(IClient):
    """Async HTTP client shared by every Salesforce call.

    Each request gets an Authorization header, taken from token_source when
    one is given (asked again before every request so it can refresh) or
    from the fixed token otherwise. With max_retries > 0 the inner transport
    is wrapped in ResilientHTTPTransport and, unless a limiter is passed,
    throttled to 50 requests per second.

    Args:
        token: Fixed bearer credential, ignored when token_source is set
        token_type: Authorization scheme for the fixed token
        token_source: TokenSource consulted per request
        timeout: Seconds before a request times out
        follow_redirects: Passed to httpx.AsyncClient
        rate_limiter: AsyncLimiter shared across requests
        max_retries: Retries for 429, 5xx and network failures (0 disables)
        base_delay: First backoff delay in seconds
        max_delay: Upper bound of a backoff delay in seconds
        transport: Inner httpx transport; tests pass httpx.MockTransport
        logger: Logger for request traces
    """
    def __init__(
        self,
        token: Optional[str] = None,
        token_type: str = "Bearer",
        token_source: Optional["TokenSource"] = None,
        timeout: float = 30.0,
        follow_redirects: bool = True,
        rate_limiter: Optional[AsyncLimiter] = None,
        max_retries: int = 0,
        base_delay: float = 1.0,
        max_delay: float = 32.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None
    ) -> None:
        self.headers = {}
        if token and token_source is None:
            self.headers["Authorization"] = f"{token_type} {token}"
        self.token_source = token_source
        self.timeout = timeout
        self.follow_redirects = follow_redirects
        self.rate_limiter = rate_limiter
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.transport = transport
        self.logger = logger or logging.getLogger(__name__)
        self.client: Optional[httpx.AsyncClient] = None

        if self.max_retries > 0 and self.rate_limiter is None:
            self.rate_limiter = AsyncLimiter(50, 1)

    def get_client(self) -> "HTTPClient":
        return self

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Create the httpx client on first use, wrapping the transport when retries or a limiter are set"""
        if self.client is None:
            transport = self.transport
            if self.rate_limiter is not None or self.max_retries > 0:
                transport = ResilientHTTPTransport(
                    inner=self.transport,
                    rate_limiter=self.rate_limiter,
                    max_retries=self.max_retries,
                    base_delay=self.base_delay,
                    max_delay=self.max_delay,
                    logger=self.logger
                )
            self.client = httpx.AsyncClient(
                transport=transport,
                timeout=self.timeout,
                follow_redirects=self.follow_redirects
            )
        return self.client

    async def _auth_headers(self) -> dict:
        if self.token_source is None:
            return {}
        token = await self.token_source.token()
        return {"Authorization": token.auth_header()}

    async def execute(self, request: HTTPRequest, stream: bool = False, **kwargs) -> HTTPResponse:
        """Send request and wrap the answer.

        dict and list bodies go out as JSON, or as a form when the Content-Type
        says so; bytes and str bodies go out unchanged. With stream=True the
        body is left unread and the caller owns closing the response.
        """
        url = request.url.format(**request.path_params) if request.path_params else request.url
        client = await self._ensure_client()

        # request headers take precedence over client headers
        merged_headers = {**self.headers, **(await self._auth_headers()), **request.headers}
        request_kwargs = {
            "params": request.query_params or None,
            "headers": merged_headers,
            **kwargs
        }

        if isinstance(request.body, (dict, list)):
            content_type = merged_headers.get("Content-Type", "").lower()
            if "application/x-www-form-urlencoded" in content_type:
                request_kwargs["data"] = request.body
            else:
                request_kwargs["json"] = request.body
        elif isinstance(request.body, (bytes, str)):
            request_kwargs["content"] = request.body

        self.logger.debug("%s %s", request.method, url)
        http_request = client.build_request(request.method, url, **request_kwargs)
        response = await client.send(http_request, stream=stream)
        return HTTPResponse(response)

    async def close(self) -> None:
        if self.client:
            await self.client.aclose()
            self.client = None

    async def __aenter__(self) -> "HTTPClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

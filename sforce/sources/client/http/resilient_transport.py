"""
Resilient HTTP transport.
Wraps another httpx transport with optional rate limiting and retries.
"""

import asyncio
import logging
import random
from typing import Optional, Union

import httpx
from aiolimiter import AsyncLimiter

from sforce.config.constants.http_status_code import HttpStatusCode

NETWORK_ERRORS = (httpx.TimeoutException, httpx.ConnectError, httpx.ReadError, httpx.RemoteProtocolError)


class ResilientHTTPTransport(httpx.AsyncBaseTransport):
    """
    Transport adding rate limiting and retry logic in front of an inner transport.

    - Rate limiting is applied once per logical request, not per attempt
    - Retries on 429, 5xx and network errors
    - Honours a numeric Retry-After header
    - Exponential backoff with full jitter otherwise

    A Salesforce REQUEST_LIMIT_EXCEEDED answer comes back as 403 and is not retried:
    the org-wide API quota does not recover within a backoff window.

    Args:
        inner: Transport that performs the actual I/O (default: httpx.AsyncHTTPTransport)
        rate_limiter: Optional AsyncLimiter
        max_retries: Number of retry attempts
        base_delay: Initial backoff delay in seconds
        max_delay: Backoff delay cap in seconds
        logger: Optional logger instance
    """

    def __init__(
        self,
        inner: Optional[httpx.AsyncBaseTransport] = None,
        rate_limiter: Optional[AsyncLimiter] = None,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 32.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not isinstance(max_retries, int) or max_retries < 0:
            raise ValueError(f"max_retries must be a non-negative integer, got: {max_retries}")
        if not isinstance(base_delay, (int, float)) or base_delay < 0:
            raise ValueError(f"base_delay must be a non-negative number, got: {base_delay}")
        if not isinstance(max_delay, (int, float)) or max_delay < base_delay:
            raise ValueError(f"max_delay ({max_delay}) must be >= base_delay ({base_delay})")

        self.inner = inner or httpx.AsyncHTTPTransport()
        self.rate_limiter = rate_limiter
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.logger = logger or logging.getLogger(__name__)

    def _is_retryable_status(self, status_code: int) -> bool:
        return (
            status_code == HttpStatusCode.TOO_MANY_REQUESTS.value
            or status_code >= HttpStatusCode.INTERNAL_SERVER_ERROR.value
        )

    def _calculate_delay(self, response: Optional[httpx.Response], attempt: int) -> float:
        """Delay before the next attempt; Retry-After wins over backoff."""
        if response is not None:
            retry_after = response.headers.get("Retry-After")
            if retry_after:
                try:
                    return float(retry_after)
                except ValueError:
                    pass  # HTTP-date form, use backoff

        exponential = min(self.max_delay, self.base_delay * (2 ** attempt))
        return random.uniform(0, exponential)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        if self.rate_limiter:
            await self.rate_limiter.acquire()

        last: Union[httpx.Response, Exception, None] = None
        for attempt in range(self.max_retries + 1):
            try:
                response = await self.inner.handle_async_request(request)
            except NETWORK_ERRORS as e:
                last = e
                if attempt >= self.max_retries:
                    break
                delay = self._calculate_delay(None, attempt)
                self.logger.warning(
                    "Network error %s on %s %s (attempt %d/%d), retrying in %.2fs",
                    type(e).__name__, request.method, request.url.path, attempt + 1, self.max_retries + 1, delay,
                )
                await asyncio.sleep(delay)
                continue

            if attempt >= self.max_retries or not self._is_retryable_status(response.status_code):
                return response

            last = response
            delay = self._calculate_delay(response, attempt)
            self.logger.warning(
                "HTTP %d on %s %s (attempt %d/%d), retrying in %.2fs",
                response.status_code, request.method, request.url.path, attempt + 1, self.max_retries + 1, delay,
            )
            await response.aclose()
            await asyncio.sleep(delay)

        self.logger.error("Request %s %s failed after %d attempts", request.method, request.url.path, self.max_retries + 1)
        if isinstance(last, Exception):
            raise last
        raise RuntimeError("Request failed with no response or exception captured")

    async def aclose(self) -> None:
        await self.inner.aclose()

import json
from typing import Any, AsyncIterator, Optional

import httpx  # type: ignore


class HTTPResponse:
    """Thin wrapper around httpx.Response

    Streamed responses must be read with aiter_bytes() and released with aclose().
    """

    def __init__(self, response: httpx.Response) -> None:
        self.response = response

    @property
    def status(self) -> int:
        return self.response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self.response.headers

    @property
    def content_type(self) -> str:
        return self.response.headers.get("Content-Type", "")

    @property
    def content_length(self) -> Optional[int]:
        length = self.response.headers.get("Content-Length")
        return int(length) if length and length.isdigit() else None

    @property
    def is_success(self) -> bool:
        return self.response.is_success

    def bytes(self) -> bytes:
        return self.response.content

    def text(self) -> str:
        return self.response.text

    def json(self) -> Any:
        return json.loads(self.response.content)

    async def aread(self) -> bytes:
        return await self.response.aread()

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        async for chunk in self.response.aiter_bytes():
            yield chunk

    async def aclose(self) -> None:
        await self.response.aclose()

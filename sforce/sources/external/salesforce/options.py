from typing import Any, Awaitable, Callable, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field  # type: ignore

from sforce.sources.external.salesforce.results import OpResponse
from sforce.sources.external.salesforce.sobject import SObject

DEFAULT_CONTENT_TYPE = "application/json; charset=UTF-8"
DEFAULT_ACCEPT = "application/json"

QUERY_BATCH_MIN, QUERY_BATCH_MAX = 200, 2000
WRITE_BATCH_MIN, WRITE_BATCH_MAX = 1, 200

# Called after every batch of a collection call with the offset of the
# batch's first record, the tagged records sent and the outcomes received.
# Raising stops the call.
BatchLogFunc = Callable[[int, List[SObject], List[OpResponse]], Union[None, Awaitable[None]]]


class ServiceOptions(BaseModel):
    """Per-service call settings. Instances are immutable; use the with_* methods."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    batch_size: int = Field(default=0, ge=0, description="0 means the operation maximum")
    max_rows: int = Field(default=0, ge=0, description="Query row cap, 0 means unlimited")
    content_type: str = Field(default="")
    accept: str = Field(default="")
    is_query: bool = Field(default=False)
    logger: Optional[Any] = Field(default=None, description="BatchLogFunc")

    def max_batch_size(self, is_query: Optional[bool] = None) -> int:
        """Effective batch size clamped to the limits of the operation kind.

        Queries: 200..2000 rows per page. Collection writes: 1..200 records
        per request. An unset or oversized batch_size yields the maximum.
        """
        if is_query is None:
            is_query = self.is_query
        low, high = (QUERY_BATCH_MIN, QUERY_BATCH_MAX) if is_query else (WRITE_BATCH_MIN, WRITE_BATCH_MAX)
        if self.batch_size == 0 or self.batch_size > high:
            return high
        if self.batch_size < low:
            return low
        return self.batch_size

    def content_type_header(self) -> str:
        return self.content_type or DEFAULT_CONTENT_TYPE

    def accept_header(self) -> str:
        return self.accept or DEFAULT_ACCEPT

    def with_batch_size(self, batch_size: int) -> "ServiceOptions":
        return self.model_copy(update={"batch_size": max(batch_size, 0)})

    def with_max_rows(self, max_rows: int) -> "ServiceOptions":
        return self.model_copy(update={"max_rows": max(max_rows, 0)})

    def with_logger(self, logger: Optional[BatchLogFunc]) -> "ServiceOptions":
        return self.model_copy(update={"logger": logger})

    def with_accept_content_type(self, accept: str = "", content_type: str = "") -> "ServiceOptions":
        """Empty arguments keep the current values"""
        return self.model_copy(update={
            "accept": accept or self.accept,
            "content_type": content_type or self.content_type,
        })

    def as_query(self) -> "ServiceOptions":
        return self.model_copy(update={"is_query": True})

"""SOQL query paging.

A query answer holds one page of rows plus either done=true or the URL of
the next page. QueryReader follows those URLs, appending each page to a
caller supplied RecordSink until the server is done or the row cap is hit.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    List,
    Optional,
    Protocol,
    Type,
    TypeVar,
    Union,
    runtime_checkable,
)
from urllib.parse import quote_plus

from pydantic import BaseModel, ConfigDict, Field  # type: ignore

from sforce.exceptions.salesforce_exceptions import SalesforceDecodeError
from sforce.sources.external.salesforce.options import ServiceOptions
from sforce.sources.external.salesforce.sobject import RecordMap, decode_any

T = TypeVar("T")

Fetch = Callable[[str], Awaitable[Any]]


class QueryResponse(BaseModel):
    """One page of a query answer"""
    model_config = ConfigDict(populate_by_name=True)

    total_size: int = Field(default=0, alias="totalSize")
    done: bool = False
    next_records_url: Optional[str] = Field(default=None, alias="nextRecordsUrl")
    records: List[Dict[str, Any]] = Field(default_factory=list)


@runtime_checkable
class RecordSink(Protocol):
    """Growable destination for query rows"""

    def append_page(self, rows: List[Dict[str, Any]]) -> None:
        """Decode and append one page of rows; on failure append nothing"""
        ...

    def truncate(self, size: int) -> None:
        ...

    def __len__(self) -> int:
        ...


class RecordList(list, Generic[T]):
    """List sink decoding rows into a pydantic model, a callable's output or RecordMaps

        contacts = RecordList(Contact)
        await service.query("SELECT Id, LastName FROM Contact", contacts)
    """

    def __init__(self, model: Union[Type[BaseModel], Callable[[Dict[str, Any]], T], None] = None) -> None:
        super().__init__()
        if model is None:
            self._decode: Callable[[Dict[str, Any]], Any] = RecordMap
        elif isinstance(model, type) and issubclass(model, BaseModel):
            self._decode = model.model_validate
        else:
            self._decode = model

    @classmethod
    def any(cls) -> "RecordList[Any]":
        """Sink decoding every row into its registered SObject model"""
        return cls(decode_any)

    def append_page(self, rows: List[Dict[str, Any]]) -> None:
        decoded = [self._decode(row) for row in rows]
        self.extend(decoded)

    def truncate(self, size: int) -> None:
        del self[size:]


class QueryState(str, Enum):
    FETCHING = "fetching"
    DONE = "done"


@dataclass
class QueryResult:
    """Outcome of a query; the rows themselves live in the sink"""
    rows: int = 0
    total_size: int = 0
    pages: int = 0
    done: bool = False
    truncated: bool = False
    error: Optional[Exception] = None

    @property
    def success(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> "QueryResult":
        if self.error is not None:
            raise self.error
        return self


def query_path(endpoint: str, soql: str) -> str:
    return f"{endpoint}/?q={quote_plus(soql)}"


class QueryReader:
    """Pull based cursor over the pages of one query

    Args:
        fetch: coroutine function returning the decoded JSON of a URL or path
        path: first page location (see query_path)
        sink: destination receiving the rows of every page
        max_rows: stop once the sink holds this many rows (0 = no cap)
        logger: receives DEBUG traces of page progress
    """

    def __init__(
        self,
        fetch: Fetch,
        path: str,
        sink: RecordSink,
        max_rows: int = 0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if sink is None:
            raise ValueError("sink may not be None")
        self.fetch = fetch
        self.next_url: Optional[str] = path
        self.sink = sink
        self.max_rows = max(max_rows, 0)
        self.state = QueryState.FETCHING
        self.result = QueryResult()
        self.logger = logger or logging.getLogger(__name__)

    async def step(self) -> QueryState:
        """Fetch and append one page"""
        if self.state is QueryState.DONE:
            return self.state

        data = await self.fetch(self.next_url)
        try:
            page = QueryResponse.model_validate(data)
        except ValueError as e:
            raise SalesforceDecodeError("invalid query response", cause=e) from e

        self.sink.append_page(page.records)
        self.result.pages += 1
        self.result.total_size = page.total_size
        self.result.rows = len(self.sink)
        self.logger.debug("Query page %d: %d rows, %d accumulated", self.result.pages, len(page.records), self.result.rows)

        if self.max_rows and len(self.sink) >= self.max_rows:
            self.result.truncated = len(self.sink) > self.max_rows or not page.done
            self.sink.truncate(self.max_rows)
            self.result.rows = len(self.sink)
            self.result.done = page.done
            self.state = QueryState.DONE
        elif page.done:
            self.result.done = True
            self.state = QueryState.DONE
        elif not page.next_records_url:
            raise SalesforceDecodeError("query page is not done but has no nextRecordsUrl")
        else:
            self.next_url = page.next_records_url
        return self.state

    async def run(self) -> QueryResult:
        """Step until done; an exception ends the run and is stored on the result"""
        try:
            while self.state is QueryState.FETCHING:
                await self.step()
        except Exception as e:
            self.result.error = e
        return self.result


class QueryOperations:
    """Query calls shared by Service. Relies on Service.call and Service.options."""

    options: ServiceOptions
    logger: logging.Logger

    async def query(self, soql: str, sink: RecordSink, max_rows: Optional[int] = None) -> QueryResult:
        """Run a SOQL query, appending every row to sink.

        max_rows overrides the service's row cap for this call. The cap is
        checked against len(sink), so rows already in a reused sink count
        towards it.
        """
        return await self._query("query", soql, sink, max_rows)

    async def query_all(self, soql: str, sink: RecordSink, max_rows: Optional[int] = None) -> QueryResult:
        """Like query, but deleted and archived records are included"""
        return await self._query("queryAll", soql, sink, max_rows)

    async def _query(self, endpoint: str, soql: str, sink: RecordSink, max_rows: Optional[int]) -> QueryResult:
        options = self.options.as_query()
        cap = options.max_rows if max_rows is None else max_rows

        async def fetch(path: str) -> Any:
            return await self.call(path, "GET", options=options)

        return await QueryReader(fetch, query_path(endpoint, soql), sink, cap, self.logger).run()

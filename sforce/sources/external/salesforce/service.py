import copy
import json
import logging
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional, Type, TypeVar, Union
from urllib.parse import quote, urlencode, urlsplit

from pydantic import BaseModel  # type: ignore

from sforce.config.constants.http_status_code import HttpStatusCode
from sforce.exceptions.salesforce_exceptions import SalesforceAPIError, SalesforceDecodeError
from sforce.sources.client.http.http_request import HTTPRequest
from sforce.sources.client.http.http_response import HTTPResponse
from sforce.sources.client.salesforce.salesforce import (
    SalesforceClient,
    SalesforceConfig,
    SalesforceRESTClient,
)
from sforce.sources.external.salesforce.bulk import BulkOperations
from sforce.sources.external.salesforce.composite import CompositeOperations
from sforce.sources.external.salesforce.models import (
    DescribeGlobalResponse,
    GetDeletedResponse,
    GetUpdatedResponse,
    SObjectDefinition,
)
from sforce.sources.external.salesforce.options import BatchLogFunc, ServiceOptions
from sforce.sources.external.salesforce.query import QueryOperations
from sforce.sources.external.salesforce.results import OpResponse
from sforce.sources.external.salesforce.sobject import SObject, SObjectModel, to_payload

M = TypeVar("M", bound=SObjectModel)


class HTTPBody:
    """Undecoded response body, for attachments and CSV results.

    The body must be consumed with aiter_bytes()/aread() and released with
    aclose(), or used as an async context manager.
    """

    def __init__(self, response: HTTPResponse) -> None:
        self.response = response
        self.content_type = response.content_type
        self.content_length = response.content_length

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        async for chunk in self.response.aiter_bytes():
            yield chunk

    async def aread(self) -> bytes:
        return await self.response.aread()

    async def aclose(self) -> None:
        await self.response.aclose()

    async def __aenter__(self) -> "HTTPBody":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


def path_segment(value: str) -> str:
    """Percent-encode a caller supplied id for use as one URL path segment"""
    return quote(value, safe="")


def api_error(response: HTTPResponse) -> SalesforceAPIError:
    """Build a SalesforceAPIError from a non-2xx response"""
    body = response.text()
    errors: List[Dict[str, Any]] = []
    try:
        data = json.loads(body) if body else None
    except ValueError:
        data = None
    if isinstance(data, list):
        errors = [e for e in data if isinstance(e, dict)]
    elif isinstance(data, dict):
        if "error" in data:
            # OAuth style {"error": ..., "error_description": ...}
            errors = [{"errorCode": data["error"], "message": data.get("error_description", "")}]
        else:
            errors = [data]
    return SalesforceAPIError(response.status, body, errors)


class Service(CompositeOperations, QueryOperations, BulkOperations):
    """Salesforce REST API service.

    Every API operation goes through call(). Settings live in an immutable
    ServiceOptions value; the with_* methods return a new Service sharing
    the same HTTP client, so a running call never sees a later change.

    Args:
        client: authorised Salesforce REST client
        options: call settings (default: ServiceOptions())
        base_url: overrides the client's versioned base URL
        logger: receives DEBUG traces of batch and page progress
    """

    def __init__(
        self,
        client: SalesforceRESTClient,
        options: Optional[ServiceOptions] = None,
        base_url: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.client = client
        self.options = options or ServiceOptions()
        self.base_url = base_url or client.get_base_url()
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_client(cls, client: SalesforceClient, options: Optional[ServiceOptions] = None) -> "Service":
        return cls(client.get_client(), options)

    @classmethod
    def from_config(cls, config: SalesforceConfig, transport: Any = None) -> "Service":
        options = ServiceOptions(batch_size=config.batch_size, max_rows=config.max_rows)
        return cls(config.create_client(transport), options)

    def _derive(self, options: Optional[ServiceOptions] = None, base_url: Optional[str] = None) -> "Service":
        service = copy.copy(self)
        if options is not None:
            service.options = options
        if base_url is not None:
            service.base_url = base_url
        return service

    def with_batch_size(self, batch_size: int) -> "Service":
        """Service whose collection calls send at most batch_size records per request
        (1..200) and whose queries ask for batch_size rows per page (200..2000).
        """
        return self._derive(self.options.with_batch_size(batch_size))

    def with_max_rows(self, max_rows: int) -> "Service":
        """Service whose queries stop after max_rows rows (0 = no cap)"""
        return self._derive(self.options.with_max_rows(max_rows))

    def with_logger(self, batch_logger: Optional[BatchLogFunc]) -> "Service":
        """Service calling batch_logger after every batch of a collection call"""
        return self._derive(self.options.with_logger(batch_logger))

    def with_accept_content_type(self, accept: str = "", content_type: str = "") -> "Service":
        return self._derive(self.options.with_accept_content_type(accept, content_type))

    def with_url(self, url: str) -> "Service":
        """Service using url as the prefix of relative paths"""
        return self._derive(base_url=url if url.endswith("/") else url + "/")

    def max_batch_size(self) -> int:
        return self.options.max_batch_size()

    def instance(self) -> str:
        return urlsplit(self.base_url).netloc

    def resolve_url(self, path: str) -> str:
        """Absolute URLs pass through, paths starting with / are host relative,
        anything else is relative to the versioned base URL.
        """
        if path.startswith(("http://", "https://")):
            return path
        if path.startswith("/"):
            parts = urlsplit(self.base_url)
            return f"{parts.scheme}://{parts.netloc}{path}"
        return self.base_url + path

    async def call(
        self,
        path: str,
        method: str = "GET",
        body: Any = None,
        *,
        options: Optional[ServiceOptions] = None,
        stream: bool = False,
        expect_result: bool = True,
    ) -> Any:
        """Perform one API request.

        Args:
            path: see resolve_url
            method: HTTP method
            body: None, raw bytes/str, or records/models/dicts/lists sent as JSON
            options: settings for this request (default: the service's)
            stream: return an HTTPBody instead of decoding JSON
            expect_result: send an Accept header and decode the answer
        Returns:
            Decoded JSON, None for empty answers, or an HTTPBody when stream is set
        Raises:
            SalesforceAPIError: non-2xx status
            SalesforceDecodeError: the body is not valid JSON
            httpx.HTTPError: network failures
        """
        options = options or self.options
        headers: Dict[str, str] = {}
        if options.is_query:
            headers["Sforce-Query-Options"] = f"batchSize={options.max_batch_size()}"

        payload: Any = None
        if body is not None:
            headers["Content-Type"] = options.content_type_header()
            payload = body if isinstance(body, (bytes, str)) else to_payload(body)
        if expect_result or stream:
            headers["Accept"] = options.accept_header()

        request = HTTPRequest(url=self.resolve_url(path), method=method, headers=headers, body=payload)
        response = await self.client.execute(request, stream=stream)

        if not response.is_success:
            if stream:
                await response.aread()
                await response.aclose()
            raise api_error(response)
        if stream:
            return HTTPBody(response)
        if not expect_result or response.status == HttpStatusCode.NO_CONTENT.value or not response.bytes():
            return None
        try:
            return response.json()
        except ValueError as e:
            raise SalesforceDecodeError(f"invalid JSON from {method} {path}", cause=e) from e

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> "Service":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # Single record and metadata resources

    async def object_list(self) -> List[SObjectDefinition]:
        """All objects with their top level metadata"""
        data = await self.call("sobjects/")
        return DescribeGlobalResponse.model_validate(data).sobjects

    async def describe(self, name: str) -> SObjectDefinition:
        """All fields of an object along with top level metadata"""
        data = await self.call(f"sobjects/{name}/describe")
        return SObjectDefinition.model_validate(data)

    async def get_deleted_records(self, sobject_name: str, start: datetime, end: datetime) -> GetDeletedResponse:
        query = urlencode({"start": start.isoformat(timespec="seconds"), "end": end.isoformat(timespec="seconds")})
        data = await self.call(f"sobjects/{sobject_name}/deleted/?{query}")
        return GetDeletedResponse.model_validate(data)

    async def get_updated_records(self, sobject_name: str, start: datetime, end: datetime) -> GetUpdatedResponse:
        query = urlencode({"start": start.isoformat(timespec="seconds"), "end": end.isoformat(timespec="seconds")})
        data = await self.call(f"sobjects/{sobject_name}/updated/?{query}")
        return GetUpdatedResponse.model_validate(data)

    async def create(self, record: SObject) -> OpResponse:
        data = await self.call(f"sobjects/{record.sobject_name()}", "POST", record)
        return OpResponse.model_validate(data)

    async def update(self, record: SObject, record_id: str) -> None:
        """Update one record. The record itself must not carry the Id."""
        await self.call(f"sobjects/{record.sobject_name()}/{path_segment(record_id)}", "PATCH", record, expect_result=False)

    async def upsert(self, record: SObject, external_id_field: str, external_id: str) -> OpResponse:
        path = f"sobjects/{record.sobject_name()}/{external_id_field}/{path_segment(external_id)}"
        data = await self.call(path, "PATCH", record)
        if data is None:
            # some API versions answer an update with 204
            return OpResponse(success=True)
        return OpResponse.model_validate(data)

    async def delete(self, sobject_name: str, record_id: str) -> None:
        await self.call(f"sobjects/{sobject_name}/{path_segment(record_id)}", "DELETE", expect_result=False)

    async def get(self, model: Type[M], record_id: str, *fields: str) -> M:
        """Fetch one record by id into model"""
        path = f"sobjects/{model.sobject_type or model.__name__}/{path_segment(record_id)}"
        if fields:
            path += "?fields=" + ",".join(fields)
        return model.model_validate(await self.call(path))

    async def get_by_external_id(self, model: Type[M], external_id_field: str, external_id: str, *fields: str) -> M:
        path = f"sobjects/{model.sobject_type or model.__name__}/{external_id_field}/{path_segment(external_id)}"
        if fields:
            path += "?fields=" + ",".join(fields)
        return model.model_validate(await self.call(path))

    async def get_attachment(self, sobject_name: str, record_id: str) -> HTTPBody:
        """Stream the binary body of an Attachment, Document or ContentVersion"""
        options = self.options.with_accept_content_type("*/*")
        field = "VersionData" if sobject_name == "ContentVersion" else "Body"
        return await self.call(f"sobjects/{sobject_name}/{path_segment(record_id)}/{field}", options=options, stream=True)

    async def retrieve_records(self, model: Type[M], ids: List[str], *fields: str) -> List[Optional[M]]:
        """Fetch many records of one type by id; ids that do not exist give None"""
        if not ids:
            raise ValueError("no ids specified")
        if not fields:
            raise ValueError("no fields specified")
        sobject_name = model.sobject_type or model.__name__
        data = await self.call(f"composite/sobjects/{sobject_name}", "POST", {"ids": ids, "fields": list(fields)})
        return [model.model_validate(row) if row is not None else None for row in data or []]

    async def get_related_records(
        self,
        sobject_name: str,
        record_id: str,
        relationship: str,
        *fields: str,
    ) -> Union[Dict[str, Any], List[Dict[str, Any]], None]:
        """Records on a relationship. One-to-one answers one record, one-to-many a query page."""
        path = f"sobjects/{sobject_name}/{path_segment(record_id)}/{relationship}"
        if fields:
            path += "?fields=" + ",".join(fields)
        return await self.call(path)

    async def update_related_record(self, record: Union[SObject, BaseModel, dict], sobject_name: str, record_id: str, relationship: str) -> None:
        await self.call(f"sobjects/{sobject_name}/{path_segment(record_id)}/{relationship}", "PATCH", record, expect_result=False)

    async def delete_related_record(self, sobject_name: str, record_id: str, relationship: str) -> None:
        await self.call(f"sobjects/{sobject_name}/{path_segment(record_id)}/{relationship}", "DELETE", expect_result=False)

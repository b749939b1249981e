"""Bulk API 2.0 ingest and query jobs.

Job data is exchanged as CSV. Result endpoints are returned as HTTPBody
streams; read_csv_records turns one into dict rows.
"""

import csv
import io
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field  # type: ignore

from sforce.sources.external.salesforce.options import ServiceOptions

INGEST_PATH = "jobs/ingest"
QUERY_PATH = "jobs/query"


class _BulkModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class JobDefinition(_BulkModel):
    """Body of a create-job request"""
    object: str
    operation: str = Field(..., description="insert, update, upsert, delete or hardDelete")
    external_id_field_name: Optional[str] = Field(default=None, alias="externalIdFieldName")
    concurrency_mode: Optional[str] = Field(default=None, alias="concurrencyMode")
    content_type: Optional[str] = Field(default="CSV", alias="contentType")
    line_ending: Optional[str] = Field(default=None, alias="lineEnding")
    column_delimiter: Optional[str] = Field(default=None, alias="columnDelimiter")
    assignment_rule_id: Optional[str] = Field(default=None, alias="assignmentRuleId")


class Job(_BulkModel):
    """Job info as reported by Salesforce"""
    id: str
    api_version: Optional[float] = Field(default=None, alias="apiVersion")
    column_delimiter: Optional[str] = Field(default=None, alias="columnDelimiter")
    concurrency_mode: Optional[str] = Field(default=None, alias="concurrencyMode")
    content_type: Optional[str] = Field(default=None, alias="contentType")
    content_url: Optional[str] = Field(default=None, alias="contentUrl")
    created_by_id: Optional[str] = Field(default=None, alias="createdById")
    created_date: Optional[str] = Field(default=None, alias="createdDate")
    external_id_field_name: Optional[str] = Field(default=None, alias="externalIdFieldName")
    job_type: Optional[str] = Field(default=None, alias="jobType")
    line_ending: Optional[str] = Field(default=None, alias="lineEnding")
    number_records_failed: int = Field(default=0, alias="numberRecordsFailed")
    number_records_processed: int = Field(default=0, alias="numberRecordsProcessed")
    object: Optional[str] = None
    operation: Optional[str] = None
    state: Optional[str] = None
    system_modstamp: Optional[str] = Field(default=None, alias="systemModstamp")


class JobList(_BulkModel):
    done: bool = True
    records: List[Job] = Field(default_factory=list)
    next_records_url: Optional[str] = Field(default=None, alias="nextRecordsUrl")


class BulkQuery(_BulkModel):
    """Query handed to query_create_job

    column_delimiter: BACKQUOTE, CARET, COMMA (default), PIPE, SEMICOLON or TAB
    line_ending: LF (default) or CRLF
    """
    query: str
    column_delimiter: Optional[str] = Field(default=None, alias="columnDelimiter")
    line_ending: Optional[str] = Field(default=None, alias="lineEnding")


async def read_csv_records(body: Any, encoding: str = "utf-8") -> List[Dict[str, str]]:
    """Read a CSV HTTPBody to the end and return its rows; the body is closed"""
    try:
        raw = await body.aread()
    finally:
        await body.aclose()
    return list(csv.DictReader(io.StringIO(raw.decode(encoding))))


class BulkOperations:
    """Bulk API 2.0 calls shared by Service. Relies on Service.call and Service.options."""

    options: ServiceOptions

    def _csv_options(self, accept: str = "", content_type: str = "") -> ServiceOptions:
        return self.options.with_accept_content_type(accept, content_type)

    async def create_job(self, definition: JobDefinition) -> Job:
        data = await self.call(f"{INGEST_PATH}/", "POST", definition)
        return Job.model_validate(data)

    async def upload_job_data(self, job_id: str, data: Union[bytes, str]) -> None:
        """Send CSV content for an open ingest job"""
        options = self._csv_options("application/json", "text/csv")
        await self.call(f"{INGEST_PATH}/{job_id}/batches", "PUT", data, options=options, expect_result=False)

    async def upload_job_data_file(self, job_id: str, file_name: Union[str, Path]) -> None:
        with open(file_name, "rb") as f:
            data = f.read()
        await self.upload_job_data(job_id, data)

    async def _set_job_state(self, job_id: str, state: str) -> Job:
        data = await self.call(f"{INGEST_PATH}/{job_id}", "PATCH", {"state": state})
        return Job.model_validate(data)

    async def close_job(self, job_id: str) -> Job:
        """Mark upload complete; Salesforce starts processing the job"""
        return await self._set_job_state(job_id, "UploadComplete")

    async def abort_job(self, job_id: str) -> Job:
        return await self._set_job_state(job_id, "Aborted")

    async def delete_job(self, job_id: str) -> None:
        await self.call(f"{INGEST_PATH}/{job_id}", "DELETE", expect_result=False)

    async def get_job(self, job_id: str) -> Job:
        data = await self.call(f"{INGEST_PATH}/{job_id}", "GET")
        return Job.model_validate(data)

    async def list_jobs(self, next_url: Optional[str] = None) -> JobList:
        """List ingest jobs. Pass JobList.next_records_url to get the following page."""
        data = await self.call(next_url or f"{INGEST_PATH}/", "GET")
        return JobList.model_validate(data)

    async def _job_results(self, job_id: str, kind: str) -> Any:
        options = self._csv_options("text/csv")
        return await self.call(f"{INGEST_PATH}/{job_id}/{kind}/", "GET", options=options, stream=True)

    async def get_successful_job_records(self, job_id: str) -> Any:
        return await self._job_results(job_id, "successfulResults")

    async def get_failed_job_records(self, job_id: str) -> Any:
        return await self._job_results(job_id, "failedResults")

    async def get_unprocessed_job_records(self, job_id: str) -> Any:
        return await self._job_results(job_id, "unprocessedrecords")

    async def query_create_job(self, bulk_query: BulkQuery, query_all: bool = False) -> Job:
        """Run a query as a bulk job; query_all includes deleted records"""
        body = {
            "operation": "queryAll" if query_all else "query",
            "contentType": "CSV",
            **bulk_query.model_dump(by_alias=True, exclude_none=True),
        }
        data = await self.call(QUERY_PATH, "POST", body)
        return Job.model_validate(data)

    async def get_query_job_results(self, job_id: str) -> Any:
        options = self._csv_options("text/csv")
        return await self.call(f"{QUERY_PATH}/{job_id}/results", "GET", options=options, stream=True)

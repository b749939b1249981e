"""Salesforce REST and Bulk API service."""
from sforce.sources.external.salesforce.batch_logger import BatchLogger
from sforce.sources.external.salesforce.batching import split_batches
from sforce.sources.external.salesforce.bulk import BulkQuery, Job, JobDefinition, JobList, read_csv_records
from sforce.sources.external.salesforce.options import BatchLogFunc, ServiceOptions
from sforce.sources.external.salesforce.query import QueryReader, QueryResult, RecordList, RecordSink
from sforce.sources.external.salesforce.results import (
    CollectionResult,
    FailedRecord,
    OpResponse,
    OpResponses,
    RecordError,
    filter_failures,
)
from sforce.sources.external.salesforce.service import HTTPBody, Service
from sforce.sources.external.salesforce.sobject import (
    Attributes,
    DeleteID,
    RecordMap,
    SObject,
    SObjectModel,
    decode_any,
    register_sobject_types,
)

__all__ = [
    "Attributes",
    "BatchLogFunc",
    "BatchLogger",
    "BulkQuery",
    "CollectionResult",
    "DeleteID",
    "FailedRecord",
    "HTTPBody",
    "Job",
    "JobDefinition",
    "JobList",
    "OpResponse",
    "OpResponses",
    "QueryReader",
    "QueryResult",
    "RecordError",
    "RecordList",
    "RecordMap",
    "RecordSink",
    "SObject",
    "SObjectModel",
    "Service",
    "ServiceOptions",
    "decode_any",
    "filter_failures",
    "read_csv_records",
    "register_sobject_types",
    "split_batches",
]

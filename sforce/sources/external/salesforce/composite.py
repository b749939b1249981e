"""SObject Collections calls: create, update, upsert and delete in batches.

Every call splits its input into batches no larger than the service's
write batch size, sends the batches one after another and collects the
per-record outcomes in input order. A configured BatchLogFunc runs after
each batch. The first exception, from the transport or from the log
function, ends the call; it is returned together with the outcomes
gathered so far.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from sforce.exceptions.salesforce_exceptions import SalesforceDecodeError, ZeroRecordsError
from sforce.sources.external.salesforce.batching import split_batches
from sforce.sources.external.salesforce.options import BatchLogFunc, ServiceOptions
from sforce.sources.external.salesforce.results import CollectionResult, OpResponse
from sforce.sources.external.salesforce.sobject import DeleteID, SObject

logger = logging.getLogger(__name__)

COLLECTIONS_PATH = "composite/sobjects"

SendBatch = Callable[[List[SObject]], Awaitable[Any]]


def decode_op_responses(data: Any, expected: int) -> List[OpResponse]:
    """Decode one batch's JSON answer; Salesforce returns one entry per record, in order"""
    if not isinstance(data, list):
        raise SalesforceDecodeError(f"expected a list of record results, got {type(data).__name__}")
    try:
        responses = [OpResponse.model_validate(item) for item in data]
    except ValueError as e:
        raise SalesforceDecodeError("invalid record result", cause=e) from e
    if len(responses) != expected:
        raise SalesforceDecodeError(f"expected {expected} record results, got {len(responses)}")
    return responses


async def invoke_batch_logger(
    batch_logger: Optional[BatchLogFunc],
    offset: int,
    records: List[SObject],
    responses: List[OpResponse],
) -> None:
    if batch_logger is None:
        return
    result = batch_logger(offset, records, responses)
    if inspect.isawaitable(result):
        await result


async def run_batches(
    options: ServiceOptions,
    records: List[SObject],
    send: SendBatch,
    log: Optional[logging.Logger] = None,
) -> CollectionResult:
    """Send records batch by batch, strictly in order.

    options is the snapshot taken when the call started, so services
    derived while the call is running do not affect it. Progress is traced
    at DEBUG on log (default: this module's logger).
    """
    log = log or logger
    result = CollectionResult()
    batch_size = options.max_batch_size(is_query=False)

    for offset, batch in split_batches(records, batch_size):
        log.debug("Sending batch of %d records at offset %d", len(batch), offset)
        try:
            data = await send(batch)
            responses = decode_op_responses(data, len(batch))
        except Exception as e:
            result.error = e
            return result

        result.results.extend(responses)

        try:
            await invoke_batch_logger(options.logger, offset, batch, responses)
        except Exception as e:
            result.error = e
            return result

    return result


class CompositeOperations:
    """Collection calls shared by Service. Relies on Service.call and Service.options."""

    options: ServiceOptions
    logger: logging.Logger

    async def create_records(self, all_or_none: bool, records: Sequence[SObject]) -> CollectionResult:
        """Insert records. Salesforce rejects records that already carry an Id;
        successful outcomes hold the new record ids.
        """
        return await self.composite_call(all_or_none, COLLECTIONS_PATH, "POST", records)

    async def update_records(self, all_or_none: bool, records: Sequence[SObject]) -> CollectionResult:
        """Update records; every record must carry its Id"""
        return await self.composite_call(all_or_none, COLLECTIONS_PATH, "PATCH", records)

    async def upsert_records(
        self,
        all_or_none: bool,
        external_id_field: str,
        records: Sequence[SObject],
    ) -> CollectionResult:
        """Insert or update records matched on external_id_field.

        All records must be of one object type; the type is read from the
        first record. OpResponse.created tells inserts from updates.
        """
        if not records:
            return CollectionResult(error=ZeroRecordsError())
        sobject_name = records[0].sobject_name()
        path = f"{COLLECTIONS_PATH}/{sobject_name}/{external_id_field}"
        return await self.composite_call(all_or_none, path, "PATCH", records)

    async def delete_records(self, all_or_none: bool, ids: Sequence[str]) -> CollectionResult:
        """Delete records by id. The batch log function receives DeleteID records."""
        if not ids:
            return CollectionResult(error=ZeroRecordsError())
        options = self.options
        flag = "true" if all_or_none else "false"

        async def send(batch: List[SObject]) -> Any:
            path = f"{COLLECTIONS_PATH}?ids={','.join(batch)}&allOrNone={flag}"
            return await self.call(path, "DELETE", options=options)

        return await run_batches(options, [DeleteID(i) for i in ids], send, self.logger)

    async def composite_call(
        self,
        all_or_none: bool,
        path: str,
        method: str,
        records: Sequence[SObject],
    ) -> CollectionResult:
        """Create, update or upsert records in batches of the service's batch size"""
        if not records:
            return CollectionResult(error=ZeroRecordsError())
        options = self.options

        async def send(batch: List[SObject]) -> Any:
            body = {"allOrNone": all_or_none, "records": batch}
            return await self.call(path, method, body, options=options)

        tagged = [record.with_attr("") for record in records]
        return await run_batches(options, tagged, send, self.logger)

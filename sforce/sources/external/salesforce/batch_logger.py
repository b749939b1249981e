import logging
from typing import List, Optional

from sforce.exceptions.salesforce_exceptions import BatchLimitExceeded
from sforce.sources.external.salesforce.results import FailedRecord, OpResponse, filter_failures
from sforce.sources.external.salesforce.sobject import SObject
from sforce.utils.logger import create_logger


class BatchLogger:
    """BatchLogFunc that logs progress and record failures as batches complete.

        service = service.with_logger(BatchLogger(max_failures=50))

    Args:
        logger: Logger to write to (default: create_logger("sforce.batch"))
        max_failures: stop the call once more records than this have failed (None = never)
    """

    def __init__(self, logger: Optional[logging.Logger] = None, max_failures: Optional[int] = None) -> None:
        self.logger = logger or create_logger("sforce.batch")
        self.max_failures = max_failures
        self.processed = 0
        self.failures: List[FailedRecord] = []

    def __call__(self, offset: int, records: List[SObject], responses: List[OpResponse]) -> None:
        failed = filter_failures(responses, records, offset)
        self.processed = offset + len(responses)
        self.failures.extend(failed)

        self.logger.info(
            "Batch at offset %d: %d records, %d failed (%d processed so far)",
            offset, len(responses), len(failed), self.processed,
        )
        for failure in failed:
            messages = "; ".join(
                f"{e.status_code}: {e.message}" + (f" [{', '.join(e.fields)}]" if e.fields else "")
                for e in failure.response.errors
            )
            self.logger.warning("Record %d failed: %s", failure.index, messages or "no error detail")

        if self.max_failures is not None and len(self.failures) > self.max_failures:
            raise BatchLimitExceeded(len(self.failures), self.max_failures)

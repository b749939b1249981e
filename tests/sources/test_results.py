"""Tests for per-record outcomes and failure filtering."""
import pytest

from sforce.exceptions.salesforce_exceptions import ZeroRecordsError
from sforce.sources.external.salesforce.results import (
    CollectionResult,
    OpResponse,
    OpResponses,
    RecordError,
    filter_failures,
)


def outcome(success: bool) -> OpResponse:
    if success:
        return OpResponse(id="001", success=True)
    return OpResponse(success=False, errors=[RecordError(status_code="INVALID_FIELD", message="bad")])


class TestFilterFailures:
    def test_reports_original_positions(self):
        results = [outcome(i not in (2, 5)) for i in range(7)]
        records = [f"rec-{i}" for i in range(7)]

        failures = filter_failures(results, records)

        assert [f.index for f in failures] == [2, 5]
        assert [f.sobject for f in failures] == ["rec-2", "rec-5"]

    def test_start_index_offsets_batch_positions(self):
        failures = filter_failures([outcome(True), outcome(False)], start_index=300)

        assert [f.index for f in failures] == [301]
        assert failures[0].sobject is None

    def test_all_successful(self):
        assert filter_failures([outcome(True)] * 3) == []

    def test_op_responses_errors(self):
        responses = OpResponses([outcome(False), outcome(True)])

        assert [f.index for f in responses.errors()] == [0]

    def test_record_error_reads_api_names(self):
        error = RecordError.model_validate({"statusCode": "DUPLICATE_VALUE", "message": "dup", "fields": ["Email"]})

        assert error.status_code == "DUPLICATE_VALUE"
        assert error.fields == ["Email"]


class TestCollectionResult:
    def test_success(self):
        result = CollectionResult(OpResponses([outcome(True)]))

        assert result.success
        assert result.raise_for_error() == result.results

    def test_error_keeps_partial_results(self):
        result = CollectionResult(OpResponses([outcome(True)]), ZeroRecordsError())

        assert not result.success
        assert len(result.results) == 1
        with pytest.raises(ZeroRecordsError):
            result.raise_for_error()

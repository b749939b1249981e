from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field  # type: ignore

from sforce.sources.external.salesforce.sobject import SObject


class RecordError(BaseModel):
    """One error reported for a single record"""
    model_config = ConfigDict(populate_by_name=True)

    status_code: Optional[str] = Field(default=None, alias="statusCode")
    message: Optional[str] = None
    fields: List[str] = Field(default_factory=list)


class OpResponse(BaseModel):
    """Outcome of one record in a create, update, upsert or delete call"""
    id: Optional[str] = None
    success: bool = False
    created: bool = False
    errors: List[RecordError] = Field(default_factory=list)


class OpResponses(list):
    """Ordered outcomes of a collection call, aligned with the submitted records"""

    def errors(self, start_index: int = 0, sobjects: Optional[Sequence[Any]] = None) -> List["FailedRecord"]:
        return filter_failures(self, sobjects, start_index)


@dataclass
class FailedRecord:
    """An unsuccessful outcome paired with its position and source record"""
    index: int
    response: OpResponse
    sobject: Optional[Any] = None


def filter_failures(
    results: Sequence[OpResponse],
    sobjects: Optional[Sequence[Any]] = None,
    start_index: int = 0,
) -> List[FailedRecord]:
    """Return the failed outcomes with their original index and source record.

    start_index is added to every index; use it when results is a single
    batch taken from a larger call. sobjects is aligned with results.
    """
    sobjects = sobjects or []
    failures = []
    for i, response in enumerate(results):
        if response.success:
            continue
        source = sobjects[i] if i < len(sobjects) else None
        failures.append(FailedRecord(index=i + start_index, response=response, sobject=source))
    return failures


@dataclass
class CollectionResult:
    """Results of a collection call together with the error that stopped it.

    results always holds every outcome collected before the call ended, so
    len(results) tells how many records were attempted when error is set.
    """
    results: OpResponses = field(default_factory=OpResponses)
    error: Optional[Exception] = None

    @property
    def success(self) -> bool:
        return self.error is None

    def failures(self, sobjects: Optional[Sequence[SObject]] = None) -> List[FailedRecord]:
        return filter_failures(self.results, sobjects)

    def raise_for_error(self) -> OpResponses:
        if self.error is not None:
            raise self.error
        return self.results

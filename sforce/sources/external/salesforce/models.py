from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field  # type: ignore


class _SalesforceModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class PicklistValue(_SalesforceModel):
    active: bool = False
    default_value: bool = Field(default=False, alias="defaultValue")
    label: Optional[str] = None
    value: Optional[str] = None


class FieldDefinition(_SalesforceModel):
    """Describe metadata for one field. Unlisted attributes are kept as extras."""
    name: str
    label: Optional[str] = None
    type: Optional[str] = None
    soap_type: Optional[str] = Field(default=None, alias="soapType")
    length: int = 0
    precision: int = 0
    scale: int = 0
    nillable: bool = False
    createable: bool = False
    updateable: bool = False
    custom: bool = False
    external_id: bool = Field(default=False, alias="externalId")
    id_lookup: bool = Field(default=False, alias="idLookup")
    unique: bool = False
    reference_to: List[str] = Field(default_factory=list, alias="referenceTo")
    relationship_name: Optional[str] = Field(default=None, alias="relationshipName")
    picklist_values: List[PicklistValue] = Field(default_factory=list, alias="picklistValues")


class SObjectDefinition(_SalesforceModel):
    """Describe (or describeGlobal) metadata for an object"""
    name: str
    label: Optional[str] = None
    label_plural: Optional[str] = Field(default=None, alias="labelPlural")
    key_prefix: Optional[str] = Field(default=None, alias="keyPrefix")
    custom: bool = False
    createable: bool = False
    updateable: bool = False
    deletable: bool = False
    queryable: bool = False
    retrieveable: bool = False
    searchable: bool = False
    fields: List[FieldDefinition] = Field(default_factory=list)
    urls: dict = Field(default_factory=dict)

    def field(self, name: str) -> Optional[FieldDefinition]:
        for f in self.fields:
            if f.name == name:
                return f
        return None


class DeletedRecord(_SalesforceModel):
    id: str
    deleted_date: Optional[str] = Field(default=None, alias="deletedDate")


class GetDeletedResponse(_SalesforceModel):
    deleted_records: List[DeletedRecord] = Field(default_factory=list, alias="deletedRecords")
    earliest_date_available: Optional[str] = Field(default=None, alias="earliestDateAvailable")
    latest_date_covered: Optional[str] = Field(default=None, alias="latestDateCovered")


class GetUpdatedResponse(_SalesforceModel):
    ids: List[str] = Field(default_factory=list)
    latest_date_covered: Optional[str] = Field(default=None, alias="latestDateCovered")


class DescribeGlobalResponse(_SalesforceModel):
    encoding: Optional[str] = None
    max_batch_size: int = Field(default=0, alias="maxBatchSize")
    sobjects: List[SObjectDefinition] = Field(default_factory=list)

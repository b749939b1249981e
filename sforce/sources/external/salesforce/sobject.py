import threading
from typing import Any, ClassVar, Dict, Optional, Protocol, Type, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field  # type: ignore


@runtime_checkable
class SObject(Protocol):
    """A record that knows its object type and can be tagged for submission"""

    def sobject_name(self) -> str:
        ...

    def with_attr(self, ref: str) -> "SObject":
        ...


class Attributes(BaseModel):
    """The attributes block Salesforce attaches to every record"""
    model_config = ConfigDict(populate_by_name=True)

    type: Optional[str] = Field(default=None, description="SObject type name")
    url: Optional[str] = Field(default=None, description="Record resource URL")
    reference_id: Optional[str] = Field(default=None, alias="referenceId", description="Caller correlation reference")


def make_attributes(sobject_type: str, ref: str = "") -> Attributes:
    if ref:
        return Attributes(type=sobject_type, reference_id=ref)
    return Attributes(type=sobject_type)


class SObjectModel(BaseModel):
    """Base class for typed records

    Subclasses name their object type and declare fields under their API names:

        class Contact(SObjectModel):
            sobject_type: ClassVar[str] = "Contact"
            id: Optional[str] = Field(default=None, alias="Id")
            last_name: Optional[str] = Field(default=None, alias="LastName")

    Only explicitly set fields are sent, so assigning None sends a JSON null.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    sobject_type: ClassVar[str] = ""

    attributes: Optional[Attributes] = None

    def sobject_name(self) -> str:
        if self.sobject_type:
            return self.sobject_type
        if self.attributes is not None and self.attributes.type:
            return self.attributes.type
        return type(self).__name__

    def with_attr(self, ref: str) -> "SObjectModel":
        return self.model_copy(update={"attributes": make_attributes(self.sobject_name(), ref)})

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class RecordMap(dict):
    """Untyped record; its object type lives in attributes.type"""

    def sobject_name(self) -> str:
        attrs = self.get("attributes")
        if isinstance(attrs, Attributes):
            return attrs.type or ""
        if isinstance(attrs, dict):
            return attrs.get("type") or ""
        return ""

    def with_attr(self, ref: str) -> "RecordMap":
        tagged = RecordMap(self)
        tagged["attributes"] = make_attributes(self.sobject_name(), ref).model_dump(by_alias=True, exclude_none=True)
        return tagged


class DeleteID(str):
    """A bare record id presented as an SObject to batch log functions"""

    def sobject_name(self) -> str:
        return "DeleteID"

    def with_attr(self, ref: str) -> "DeleteID":
        return self


def to_payload(value: Any) -> Any:
    """Convert records (and containers of records) into JSON-ready values"""
    if isinstance(value, SObjectModel):
        return value.to_payload()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, dict):
        return {k: to_payload(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_payload(v) for v in value]
    return value


class _Catalog:
    def __init__(self) -> None:
        self.sobjects: Dict[str, Type[SObjectModel]] = {}
        self.lock = threading.Lock()

    def register(self, model: Type[SObjectModel]) -> None:
        name = model.sobject_type or model.__name__
        with self.lock:
            self.sobjects[name] = model

    def lookup(self, name: str) -> Optional[Type[SObjectModel]]:
        with self.lock:
            return self.sobjects.get(name)


_catalog = _Catalog()


def register_sobject_types(*models: Type[SObjectModel]) -> None:
    """Catalog typed models so decode_any can pick them by attributes.type"""
    for model in models:
        _catalog.register(model)


def decode_any(payload: Dict[str, Any]) -> SObject:
    """Decode a record payload into its registered model, or a RecordMap"""
    attrs = payload.get("attributes")
    if not isinstance(attrs, dict) or "type" not in attrs:
        raise ValueError("attributes not found in record")
    model = _catalog.lookup(attrs["type"])
    if model is None:
        return RecordMap(payload)
    return model.model_validate(payload)

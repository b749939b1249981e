"""
Test data factory for generating Salesforce records.

Records are generated with Faker so each test run exercises different
names and e-mail addresses.
"""

from typing import ClassVar, List, Optional

from faker import Faker  # type: ignore
from pydantic import Field  # type: ignore

from sforce.sources.external.salesforce.sobject import SObjectModel

fake: Faker = Faker()

# LastName value the fake server rejects with FIELD_CUSTOM_VALIDATION_EXCEPTION
REJECTED_LAST_NAME = "REJECT-ME"


class Contact(SObjectModel):
    sobject_type: ClassVar[str] = "Contact"

    id: Optional[str] = Field(default=None, alias="Id")
    first_name: Optional[str] = Field(default=None, alias="FirstName")
    last_name: Optional[str] = Field(default=None, alias="LastName")
    email: Optional[str] = Field(default=None, alias="Email")
    external_key: Optional[str] = Field(default=None, alias="External_Key__c")


class Account(SObjectModel):
    sobject_type: ClassVar[str] = "Account"

    id: Optional[str] = Field(default=None, alias="Id")
    name: Optional[str] = Field(default=None, alias="Name")


class TestDataFactory:
    """Factory for generating test records."""

    @staticmethod
    def contact(**kwargs) -> Contact:
        data = {
            "FirstName": fake.first_name(),
            "LastName": fake.last_name(),
            "Email": fake.email(),
            "External_Key__c": fake.uuid4(),
        }
        data.update(kwargs)
        return Contact(**data)

    @staticmethod
    def contacts(count: int, reject: Optional[List[int]] = None) -> List[Contact]:
        """Generate count contacts; positions listed in reject will fail server side"""
        reject = reject or []
        return [
            TestDataFactory.contact(LastName=REJECTED_LAST_NAME) if i in reject else TestDataFactory.contact()
            for i in range(count)
        ]

    @staticmethod
    def record_ids(count: int) -> List[str]:
        return [f"003{i:015d}" for i in range(count)]

    @staticmethod
    def query_rows(count: int, start: int = 0) -> List[dict]:
        return [
            {
                "attributes": {"type": "Contact", "url": f"/services/data/v59.0/sobjects/Contact/003{i:015d}"},
                "Id": f"003{i:015d}",
                "LastName": fake.last_name(),
            }
            for i in range(start, start + count)
        ]

"""
Salesforce fixtures for tests.

FakeSalesforce answers SObject Collections and query requests the way the
REST API does, recording every request it receives. Tests install custom
responders for anything else.
"""

import json
from typing import Any, Callable, Dict, Generator, List, Optional
from urllib.parse import parse_qs, urlsplit

import httpx  # type: ignore
import pytest  # type: ignore

from sforce.sources.client.salesforce.salesforce import SalesforceRESTClient
from sforce.sources.external.salesforce.service import Service
from tests.utils.test_data_factory import REJECTED_LAST_NAME

INSTANCE_URL = "https://acme.my.salesforce.com"
API_VERSION = "59.0"
BASE_PATH = f"/services/data/v{API_VERSION}/"
ACCESS_TOKEN = "00Dxx0000000000!AQ0AQ.test-token"

Responder = Callable[[httpx.Request], httpx.Response]


class FakeSalesforce:
    """In-memory stand-in for the REST API, wired in through httpx.MockTransport."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.responder: Optional[Responder] = None
        self.next_id = 0
        # request number (1-based) -> response overriding the default answer
        self.failures: Dict[int, httpx.Response] = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.requests) in self.failures:
            return self.failures[len(self.requests)]
        if self.responder is not None:
            return self.responder(request)
        return self.collections(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def new_id(self, prefix: str = "003") -> str:
        self.next_id += 1
        return f"{prefix}{self.next_id:015d}"

    def collections(self, request: httpx.Request) -> httpx.Response:
        """Default answer for composite/sobjects create, update, upsert and delete"""
        if "/composite/sobjects" not in request.url.path:
            return httpx.Response(404, json=[{"errorCode": "NOT_FOUND", "message": "unknown resource"}])

        if request.method == "DELETE":
            ids = request.url.params.get("ids", "").split(",")
            return httpx.Response(200, json=[{"id": i, "success": True, "errors": []} for i in ids])

        body = json.loads(request.content)
        results = []
        for record in body["records"]:
            if record.get("LastName") == REJECTED_LAST_NAME:
                results.append({
                    "id": None,
                    "success": False,
                    "errors": [{
                        "statusCode": "FIELD_CUSTOM_VALIDATION_EXCEPTION",
                        "message": "Last name rejected",
                        "fields": ["LastName"],
                    }],
                })
            else:
                created = request.method == "POST" or "Id" not in record
                results.append({
                    "id": record.get("Id") or self.new_id(),
                    "success": True,
                    "created": created,
                    "errors": [],
                })
        return httpx.Response(200, json=results)

    # helpers for assertions

    def bodies(self) -> List[Any]:
        return [json.loads(r.content) if r.content else None for r in self.requests]

    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]

    def query_params(self, index: int) -> Dict[str, List[str]]:
        return parse_qs(urlsplit(str(self.requests[index].url)).query)


def query_pages(pages: List[List[dict]], total_size: Optional[int] = None) -> Responder:
    """Responder serving pages in order, chaining them with nextRecordsUrl"""
    total = total_size if total_size is not None else sum(len(p) for p in pages)

    def respond(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/query/") or request.url.path.endswith("/queryAll/"):
            index = 0
        else:
            index = int(request.url.path.rsplit("-", 1)[1])
        done = index == len(pages) - 1
        payload = {"totalSize": total, "done": done, "records": pages[index]}
        if not done:
            payload["nextRecordsUrl"] = f"{BASE_PATH}query/01gD0000002HU6KIAW-{index + 1}"
        return httpx.Response(200, json=payload)

    return respond


@pytest.fixture
def fake_salesforce() -> FakeSalesforce:
    return FakeSalesforce()


@pytest.fixture
def rest_client(fake_salesforce: FakeSalesforce) -> SalesforceRESTClient:
    return SalesforceRESTClient(
        instance_url=INSTANCE_URL,
        access_token=ACCESS_TOKEN,
        api_version=API_VERSION,
        transport=fake_salesforce.transport(),
    )


@pytest.fixture
def service(rest_client: SalesforceRESTClient) -> Generator[Service, None, None]:
    yield Service(rest_client)

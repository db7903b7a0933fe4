"""
Pytest configuration and shared fixtures for the test suite.
"""

import itertools
import re
from typing import Any, Callable, Dict, List, Optional

import pytest

from quotegen.config import AppConfig, Environment
from quotegen.context import ClientContext, UserContext
from quotegen.store.interface import QueryResult, Record, RecordStore


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_config() -> AppConfig:
    """Create a test configuration."""
    return AppConfig(
        environment=Environment.TEST,
        api_version="62.0",
        max_batch_operations=25,
        enable_discount_overrides=False,
        default_region="US",
        log_level="DEBUG",
    )


@pytest.fixture
def client_context() -> ClientContext:
    """Create a request context for a test org."""
    return ClientContext(
        access_token="00Dxx0000001gPL!AQ4AQFakeAccessToken",
        org_domain_url="https://test-org.my.salesforce.com",
        org_id="00Dxx0000001gPLEAY",
        api_version="62.0",
        request_id="req-0001",
        namespace="demo",
        user=UserContext(user_id="005xx000001X8Uz", username="admin@test-org.example"),
    )


# ============================================================================
# Test Data Generators
# ============================================================================

OPPORTUNITY_ID = "006xx000004TmiQAAS"


def make_line_item(
    index: int,
    quantity: Any = 2,
    unit_price: Any = 100.0,
    discount_override: Any = None,
) -> Record:
    """Create an OpportunityLineItem record as returned by a query."""
    fields = {
        "Id": f"00kxx00000{index:08d}",
        "Product2Id": f"01txx00000{index:08d}",
        "Quantity": quantity,
        "UnitPrice": unit_price,
        "PricebookEntryId": f"01uxx00000{index:08d}",
    }
    if discount_override is not None:
        fields["DiscountOverride__c"] = discount_override
    return Record(record_type="OpportunityLineItem", fields=fields)


@pytest.fixture
def sample_line_items() -> List[Record]:
    """Three line items for the sample opportunity."""
    return [
        make_line_item(1, quantity=1, unit_price=100.0),
        make_line_item(2, quantity=2, unit_price=50.0),
        make_line_item(3, quantity=10, unit_price=12.5),
    ]


# ============================================================================
# Fake Record Store
# ============================================================================

_REFERENCE = re.compile(r"^@\{(\w+)\.id\}$")
_OPPORTUNITY_FILTER = re.compile(r"OpportunityId = '([^']*)'")

ID_PREFIXES = {"Quote": "0Q0", "QuoteLineItem": "0QL"}


class FakeRecordStore(RecordStore):
    """
    In-memory record store for testing.

    Executes composite requests the way the real store does: subrequests in
    order, with ``@{ref.id}`` expressions translated to the ids created
    earlier in the same request.
    """

    def __init__(self):
        self.records: Dict[str, Dict[str, Any]] = {}
        self.line_items: Dict[str, List[Record]] = {}
        self.queries: List[str] = []
        self.submitted: List[Dict[str, Any]] = []
        self.connected = False

        # Failure injection
        self.fail_when: Optional[Callable[[Dict[str, Any]], Optional[List[dict]]]] = None
        self.raise_on_submit: Optional[BaseException] = None
        self.raise_on_query: Optional[BaseException] = None
        self.response_hook: Optional[Callable[[List[dict]], List[dict]]] = None

        self._ids = itertools.count(1)

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    def data_path(self, context: ClientContext) -> str:
        return f"/services/data/v{context.api_version or '62.0'}"

    async def query(self, soql: str, context: ClientContext) -> QueryResult:
        self.queries.append(soql)
        if self.raise_on_query is not None:
            raise self.raise_on_query
        match = _OPPORTUNITY_FILTER.search(soql)
        records = list(self.line_items.get(match.group(1), [])) if match else []
        return QueryResult(records=records, total_size=len(records))

    def _resolve(self, value: Any, resolved: Dict[str, str]) -> Any:
        if isinstance(value, str):
            match = _REFERENCE.match(value)
            if match:
                return resolved[match.group(1)]
        return value

    def _new_id(self, record_type: str) -> str:
        prefix = ID_PREFIXES.get(record_type, "a00")
        return f"{prefix}xx{next(self._ids):010d}AAA"

    async def submit_composite(self, payload: Dict[str, Any], context: ClientContext) -> Dict[str, Any]:
        self.submitted.append(payload)
        if self.raise_on_submit is not None:
            raise self.raise_on_submit

        resolved: Dict[str, str] = {}
        responses: List[dict] = []

        for sub in payload["compositeRequest"]:
            reference_id = sub["referenceId"]
            path = sub["url"].split("/sobjects/", 1)[1].split("/")
            record_type = path[0]

            errors = self.fail_when(sub) if self.fail_when else None
            if errors:
                responses.append({
                    "body": errors,
                    "httpHeaders": {},
                    "httpStatusCode": 400,
                    "referenceId": reference_id,
                })
                continue

            body = {k: self._resolve(v, resolved) for k, v in (sub.get("body") or {}).items()}

            if sub["method"] == "POST":
                record_id = self._new_id(record_type)
                self.records[record_id] = {"type": record_type, **body}
                resolved[reference_id] = record_id
                responses.append({
                    "body": {"id": record_id, "success": True, "errors": []},
                    "httpHeaders": {"Location": f"{sub['url']}/{record_id}"},
                    "httpStatusCode": 201,
                    "referenceId": reference_id,
                })
                continue

            record_id = self._resolve(path[1], resolved)
            if sub["method"] == "PATCH":
                self.records.setdefault(record_id, {"type": record_type}).update(body)
            else:
                self.records.pop(record_id, None)
            responses.append({
                "body": None,
                "httpHeaders": {},
                "httpStatusCode": 204,
                "referenceId": reference_id,
            })

        if self.response_hook is not None:
            responses = self.response_hook(responses)
        return {"compositeResponse": responses}

    def records_of_type(self, record_type: str) -> Dict[str, Dict[str, Any]]:
        return {k: v for k, v in self.records.items() if v["type"] == record_type}


@pytest.fixture
def fake_store() -> FakeRecordStore:
    """Create an empty fake record store."""
    return FakeRecordStore()


@pytest.fixture
def fake_store_with_line_items(fake_store, sample_line_items) -> FakeRecordStore:
    """Create a fake store holding line items for the sample opportunity."""
    fake_store.line_items[OPPORTUNITY_ID] = sample_line_items
    return fake_store

"""
Test suite for quote generation.

Tests the discount calculation and the end-to-end flow from line item query
to committed Quote.
"""

from unittest.mock import AsyncMock

import pytest

from quotegen.core.errors import (
    BackingStoreError,
    StoreAuthenticationError,
    TransportError,
    ValidationError,
)
from quotegen.pricing.discounts import (
    discounted_unit_price,
    effective_discount_rate,
    get_discount_for_region,
)
from quotegen.pricing.engine import PricingEngine, QuoteGenerationError
from tests.conftest import OPPORTUNITY_ID, make_line_item


# ============================================================================
# Test Discounts
# ============================================================================

class TestDiscounts:
    """Tests for discount helpers."""

    @pytest.mark.parametrize("region,rate", [("US", 0.10), ("EU", 0.15), ("APAC", 0.12), ("LATAM", 0.0)])
    def test_region_lookup(self, test_config, region, rate):
        """Test the regional rate table."""
        assert get_discount_for_region(region, test_config.region_discounts) == rate

    def test_override_replaces_regional_rate(self):
        """Test an override percentage wins over the regional rate."""
        assert effective_discount_rate(0.10, 25) == 0.25
        assert effective_discount_rate(0.10, "5") == 0.05
        assert effective_discount_rate(0.10, 0) == 0.0

    def test_missing_override_keeps_regional_rate(self):
        """Test absent overrides fall back."""
        assert effective_discount_rate(0.10, None) == 0.10
        assert effective_discount_rate(0.10, "") == 0.10

    @pytest.mark.parametrize("value", [-1, 101, "lots"])
    def test_invalid_override(self, value):
        """Test out-of-range or non-numeric overrides."""
        with pytest.raises(ValidationError):
            effective_discount_rate(0.10, value)

    def test_discounted_unit_price(self):
        """Test the per-unit discount."""
        assert discounted_unit_price(100.0, 0.10) == pytest.approx(90.0)
        assert discounted_unit_price(12.5, 0.0) == 12.5


# ============================================================================
# Test Quote Generation
# ============================================================================

class TestGenerateQuote:
    """Tests for the quote generation flow."""

    @pytest.mark.asyncio
    async def test_quote_created_with_line_items(
        self, fake_store_with_line_items, client_context, test_config,
    ):
        """Test the Quote and one line item per opportunity line item."""
        store = fake_store_with_line_items
        engine = PricingEngine(store, test_config)

        result = await engine.generate_quote(OPPORTUNITY_ID, client_context)

        quote = store.records[result.quote_id]
        assert quote == {"type": "Quote", "Name": "New Quote", "OpportunityId": OPPORTUNITY_ID}

        line_items = store.records_of_type("QuoteLineItem")
        assert len(line_items) == 3
        assert sorted(result.line_item_ids) == sorted(line_items)
        assert all(item["QuoteId"] == result.quote_id for item in line_items.values())

        by_entry = {item["PricebookEntryId"]: item for item in line_items.values()}
        assert by_entry["01uxx0000000000001"]["UnitPrice"] == pytest.approx(90.0)
        assert by_entry["01uxx0000000000002"]["UnitPrice"] == pytest.approx(45.0)
        assert by_entry["01uxx0000000000003"]["Quantity"] == 10.0
        assert by_entry["01uxx0000000000003"]["UnitPrice"] == pytest.approx(11.25)

    @pytest.mark.asyncio
    async def test_query_filters_by_opportunity(self, fake_store_with_line_items, client_context, test_config):
        """Test the line item query."""
        engine = PricingEngine(fake_store_with_line_items, test_config)

        await engine.generate_quote(OPPORTUNITY_ID, client_context)

        assert fake_store_with_line_items.queries == [
            "SELECT Id, Product2Id, Quantity, UnitPrice, PricebookEntryId "
            f"FROM OpportunityLineItem WHERE OpportunityId = '{OPPORTUNITY_ID}'"
        ]

    @pytest.mark.asyncio
    async def test_discount_overrides_when_enabled(self, fake_store, client_context, test_config):
        """Test the override field is queried and applied when the flag is on."""
        test_config.enable_discount_overrides = True
        fake_store.line_items[OPPORTUNITY_ID] = [
            make_line_item(1, quantity=1, unit_price=200.0, discount_override=25),
            make_line_item(2, quantity=1, unit_price=200.0),
        ]
        engine = PricingEngine(fake_store, test_config)

        await engine.generate_quote(OPPORTUNITY_ID, client_context)

        assert "DiscountOverride__c" in fake_store.queries[0]
        prices = sorted(i["UnitPrice"] for i in fake_store.records_of_type("QuoteLineItem").values())
        assert prices == [pytest.approx(150.0), pytest.approx(180.0)]

    @pytest.mark.asyncio
    async def test_discount_overrides_ignored_when_disabled(self, fake_store, client_context, test_config):
        """Test overrides have no effect while the flag is off."""
        fake_store.line_items[OPPORTUNITY_ID] = [
            make_line_item(1, quantity=1, unit_price=200.0, discount_override=25),
        ]
        engine = PricingEngine(fake_store, test_config)

        await engine.generate_quote(OPPORTUNITY_ID, client_context)

        assert "DiscountOverride__c" not in fake_store.queries[0]
        (item,) = fake_store.records_of_type("QuoteLineItem").values()
        assert item["UnitPrice"] == pytest.approx(180.0)

    @pytest.mark.asyncio
    async def test_opportunity_id_is_escaped(self, fake_store, client_context, test_config):
        """Test a hostile opportunity id cannot alter the query."""
        engine = PricingEngine(fake_store, test_config)

        with pytest.raises(QuoteGenerationError):
            await engine.generate_quote("x' OR Name != '", client_context)

        assert fake_store.queries[0].endswith("WHERE OpportunityId = 'x\\' OR Name != \\''")


# ============================================================================
# Test Failure Scenarios
# ============================================================================

class TestGenerateQuoteFailures:
    """Tests for how failures map to status codes."""

    @pytest.mark.asyncio
    async def test_no_line_items(self, fake_store, client_context, test_config):
        """Test an opportunity without line items is a 404 and builds no batch."""
        committer = AsyncMock()
        engine = PricingEngine(fake_store, test_config, committer=committer)

        with pytest.raises(QuoteGenerationError) as exc_info:
            await engine.generate_quote(OPPORTUNITY_ID, client_context)

        assert exc_info.value.status_code == 404
        assert OPPORTUNITY_ID in exc_info.value.message
        committer.commit.assert_not_called()
        assert fake_store.submitted == []

    @pytest.mark.asyncio
    async def test_rejected_line_item(self, fake_store_with_line_items, client_context, test_config):
        """Test a store rejection of one of four operations is a 400 with the store's reason."""
        store = fake_store_with_line_items

        def restricted_field(sub):
            if sub["url"].endswith("/QuoteLineItem") and sub["body"]["PricebookEntryId"].endswith("2"):
                return [{
                    "errorCode": "INSUFFICIENT_ACCESS_ON_CROSS_REFERENCE_ENTITY",
                    "message": "insufficient access rights on cross-reference id",
                    "fields": [],
                }]
            return None

        store.fail_when = restricted_field
        engine = PricingEngine(store, test_config)

        with pytest.raises(QuoteGenerationError) as exc_info:
            await engine.generate_quote(OPPORTUNITY_ID, client_context)

        assert exc_info.value.status_code == 400
        assert exc_info.value.message.startswith("Failed to create quote:")
        assert "INSUFFICIENT_ACCESS_ON_CROSS_REFERENCE_ENTITY" in exc_info.value.message
        assert "insufficient access rights" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_transport_timeout_not_retried(self, fake_store_with_line_items, client_context, test_config):
        """Test a commit timeout is a 500 with unknown outcome and a single attempt."""
        store = fake_store_with_line_items
        store.raise_on_submit = TransportError("Salesforce request timed out")
        engine = PricingEngine(store, test_config)

        with pytest.raises(QuoteGenerationError) as exc_info:
            await engine.generate_quote(OPPORTUNITY_ID, client_context)

        assert exc_info.value.status_code == 500
        assert exc_info.value.outcome_unknown is True
        assert len(store.submitted) == 1

    @pytest.mark.asyncio
    async def test_rejected_credentials(self, fake_store, client_context, test_config):
        """Test the store rejecting the token is a 401."""
        fake_store.raise_on_query = StoreAuthenticationError(
            "INVALID_SESSION_ID: Session expired or invalid", status_code=401,
        )
        engine = PricingEngine(fake_store, test_config)

        with pytest.raises(QuoteGenerationError) as exc_info:
            await engine.generate_quote(OPPORTUNITY_ID, client_context)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_rejected_query(self, fake_store, client_context, test_config):
        """Test a query rejected by the store is a 400."""
        fake_store.raise_on_query = BackingStoreError("INVALID_FIELD: No such column")
        engine = PricingEngine(fake_store, test_config)

        with pytest.raises(QuoteGenerationError) as exc_info:
            await engine.generate_quote(OPPORTUNITY_ID, client_context)

        assert exc_info.value.status_code == 400
        assert "INVALID_FIELD" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_non_numeric_quantity(self, fake_store, client_context, test_config):
        """Test malformed line items are a 400 and nothing is written."""
        fake_store.line_items[OPPORTUNITY_ID] = [make_line_item(1, quantity=None)]
        engine = PricingEngine(fake_store, test_config)

        with pytest.raises(QuoteGenerationError) as exc_info:
            await engine.generate_quote(OPPORTUNITY_ID, client_context)

        assert exc_info.value.status_code == 400
        assert "Quantity" in exc_info.value.message
        assert fake_store.submitted == []

    @pytest.mark.asyncio
    async def test_too_many_line_items(self, fake_store, client_context, test_config):
        """Test an opportunity too large for one transaction is a 400."""
        test_config.max_batch_operations = 3
        fake_store.line_items[OPPORTUNITY_ID] = [make_line_item(i) for i in range(3)]
        engine = PricingEngine(fake_store, test_config)

        with pytest.raises(QuoteGenerationError) as exc_info:
            await engine.generate_quote(OPPORTUNITY_ID, client_context)

        assert exc_info.value.status_code == 400
        assert "limit per transaction is 3" in exc_info.value.message
        assert fake_store.submitted == []

    @pytest.mark.asyncio
    async def test_unexpected_error(self, fake_store, client_context, test_config):
        """Test anything else is a 500."""
        fake_store.raise_on_query = RuntimeError("boom")
        engine = PricingEngine(fake_store, test_config)

        with pytest.raises(QuoteGenerationError) as exc_info:
            await engine.generate_quote(OPPORTUNITY_ID, client_context)

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "An unexpected error occurred: boom"

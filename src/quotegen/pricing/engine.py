"""
Pricing Engine - generates quotes for opportunities.

Reads an opportunity's line items, applies the discount and writes the Quote
and its QuoteLineItems in a single unit of work.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import structlog

from quotegen.config import AppConfig, get_config
from quotegen.context import ClientContext
from quotegen.composite.committer import UnitOfWorkCommitter
from quotegen.core.errors import (
    BackingStoreError,
    ProtocolError,
    StoreAuthenticationError,
    TransportError,
    ValidationError,
)
from quotegen.core.reference import PendingReference
from quotegen.core.unit_of_work import UnitOfWork
from quotegen.pricing.discounts import (
    discounted_unit_price,
    effective_discount_rate,
    get_discount_for_region,
    parse_number,
)
from quotegen.store.interface import Record, RecordStore, soql_quote

logger = structlog.get_logger(__name__)

LINE_ITEM_FIELDS = ["Id", "Product2Id", "Quantity", "UnitPrice", "PricebookEntryId"]


class QuoteGenerationError(Exception):
    """
    Raised when a quote cannot be generated.

    Attributes:
        status_code: HTTP status the failure maps to
        outcome_unknown: True when the quote may have been created anyway
    """

    def __init__(self, message: str, status_code: int = 500, outcome_unknown: bool = False):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.outcome_unknown = outcome_unknown


@dataclass
class QuoteResult:
    """A generated quote."""
    quote_id: str
    line_item_ids: List[str] = field(default_factory=list)


class PricingEngine:
    """
    Generates quotes from opportunity line items.

    Every call is independent: the unit of work is created per request and
    the client context is passed through explicitly.
    """

    def __init__(
        self,
        store: RecordStore,
        config: Optional[AppConfig] = None,
        committer: Optional[UnitOfWorkCommitter] = None,
    ):
        """
        Initialize the pricing engine.

        Args:
            store: Record store to read line items from and write quotes to
            config: Application configuration
            committer: Custom unit-of-work committer
        """
        self.store = store
        self.config = config or get_config()
        self.committer = committer or UnitOfWorkCommitter(store, self.config)

    def line_item_query(self, opportunity_id: str) -> str:
        """Build the line item query for an opportunity."""
        fields = list(LINE_ITEM_FIELDS)
        if self.config.enable_discount_overrides:
            fields.append(self.config.discount_override_field)
        return (
            f"SELECT {', '.join(fields)} FROM OpportunityLineItem "
            f"WHERE OpportunityId = {soql_quote(opportunity_id)}"
        )

    async def fetch_line_items(self, opportunity_id: str, context: ClientContext) -> List[Record]:
        """Read the line items of an opportunity."""
        result = await self.store.query(self.line_item_query(opportunity_id), context)
        return result.records

    def build_unit_of_work(
        self,
        opportunity_id: str,
        line_items: List[Record],
    ) -> Tuple[UnitOfWork, PendingReference]:
        """
        Register the Quote and one QuoteLineItem per line item.

        Returns:
            The unit of work and the Quote's pending reference
        """
        base_rate = get_discount_for_region(
            self.config.default_region,
            self.config.region_discounts,
        )

        uow = UnitOfWork()
        quote_ref = uow.register_create("Quote", {
            "Name": self.config.quote_name,
            "OpportunityId": opportunity_id,
        })

        for record in line_items:
            label = f"Line item {record.id or '?'}"
            quantity = parse_number(record.get("Quantity"), f"{label} Quantity")
            unit_price = parse_number(record.get("UnitPrice"), f"{label} UnitPrice")

            rate = base_rate
            if self.config.enable_discount_overrides:
                rate = effective_discount_rate(
                    base_rate,
                    record.get(self.config.discount_override_field),
                )

            uow.register_create("QuoteLineItem", {
                "QuoteId": quote_ref.embed(),
                "PricebookEntryId": record.get("PricebookEntryId"),
                "Quantity": quantity,
                "UnitPrice": discounted_unit_price(unit_price, rate),
            })

        return uow, quote_ref

    async def generate_quote(self, opportunity_id: str, context: ClientContext) -> QuoteResult:
        """
        Generate a quote for an opportunity.

        Args:
            opportunity_id: Record id of the opportunity
            context: Request credentials

        Returns:
            QuoteResult with the new Quote's id

        Raises:
            QuoteGenerationError: Carrying the HTTP status for the failure
        """
        log = logger.bind(opportunity_id=opportunity_id, **context.log_context())

        try:
            line_items = await self.fetch_line_items(opportunity_id, context)
            if not line_items:
                raise QuoteGenerationError(
                    f"No OpportunityLineItems found for Opportunity ID: {opportunity_id}",
                    status_code=404,
                )

            uow, quote_ref = self.build_unit_of_work(opportunity_id, line_items)
            log.info("quote_batch_built", batch_id=uow.batch_id, operations=uow.size)

            result = await self.committer.commit(uow, context)
            result.raise_for_errors()

            quote_result = result.get(quote_ref)
            if quote_result is None or not quote_result.id:
                raise ProtocolError("Quote creation result not found in response")

            line_item_ids = [
                r.id for r in result.values()
                if r.token != quote_ref.token
            ]
            log.info("quote_generated", quote_id=quote_result.id, line_items=len(line_item_ids))
            return QuoteResult(quote_id=quote_result.id, line_item_ids=line_item_ids)

        except QuoteGenerationError:
            raise
        except StoreAuthenticationError as e:
            raise QuoteGenerationError(f"Record store rejected the credentials: {e}", status_code=401)
        except ValidationError as e:
            raise QuoteGenerationError(f"Failed to create quote: {e}", status_code=400)
        except BackingStoreError as e:
            raise QuoteGenerationError(f"Failed to create quote: {e}", status_code=400)
        except TransportError as e:
            raise QuoteGenerationError(
                f"Record store request failed; the quote may or may not have been created: {e}",
                status_code=500,
                outcome_unknown=True,
            )
        except ProtocolError as e:
            log.error("quote_protocol_error", error=str(e))
            raise QuoteGenerationError(f"Unexpected record store response: {e}", status_code=500)
        except Exception as e:
            log.exception("quote_generation_unexpected_error")
            raise QuoteGenerationError(f"An unexpected error occurred: {e}", status_code=500)

"""
API routes.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from quotegen.api.schemas import (
    ErrorResponse,
    QuoteGenerationRequest,
    QuoteGenerationResponse,
)
from quotegen.context import CLIENT_CONTEXT_HEADER, ClientContext
from quotegen.pricing.engine import PricingEngine

router = APIRouter(tags=["Pricing Engine"])


def get_client_context(
    x_client_context: Optional[str] = Header(default=None, alias=CLIENT_CONTEXT_HEADER),
) -> ClientContext:
    """Decode the request's client context; raises ClientContextError (401) when invalid."""
    return ClientContext.from_header(x_client_context)


def get_pricing_engine(request: Request) -> PricingEngine:
    return request.app.state.engine


@router.post(
    "/generatequote",
    response_model=QuoteGenerationResponse,
    summary="Generate a Quote for a given Opportunity",
    description="Calculate pricing and generate an associated Quote.",
    operation_id="generateQuote",
    responses={
        400: {"model": ErrorResponse, "description": "Invalid request or rejected write"},
        401: {"model": ErrorResponse, "description": "Client context missing or invalid"},
        404: {"model": ErrorResponse, "description": "No line items for the opportunity"},
        500: {"model": ErrorResponse, "description": "Unexpected error"},
    },
)
async def generate_quote(
    body: QuoteGenerationRequest,
    context: ClientContext = Depends(get_client_context),
    engine: PricingEngine = Depends(get_pricing_engine),
) -> QuoteGenerationResponse:
    result = await engine.generate_quote(body.opportunity_id, context)
    return QuoteGenerationResponse(quote_id=result.quote_id)

"""
Request and response schemas for the HTTP API.
"""

from pydantic import BaseModel, ConfigDict, Field


class QuoteGenerationRequest(BaseModel):
    """Request to generate a quote, includes the opportunity ID to extract product information."""

    model_config = ConfigDict(populate_by_name=True)

    opportunity_id: str = Field(
        ...,
        alias="opportunityId",
        min_length=1,
        description="A record Id for the opportunity",
    )


class QuoteGenerationResponse(BaseModel):
    """Response includes the record Id of the generated quote."""

    model_config = ConfigDict(populate_by_name=True)

    quote_id: str = Field(
        ...,
        alias="quoteId",
        description="A record Id for the generated quote",
    )


class ErrorResponse(BaseModel):
    """Error body returned for every failed request."""

    error: bool = True
    message: str = Field(..., description="Human-readable error message")

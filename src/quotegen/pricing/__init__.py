"""
Pricing components.

Discount calculation and quote generation.
"""

from quotegen.pricing.engine import PricingEngine, QuoteGenerationError, QuoteResult

__all__ = [
    "PricingEngine",
    "QuoteGenerationError",
    "QuoteResult",
]

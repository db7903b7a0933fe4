"""
Discount calculation.

Regional rates are a placeholder lookup; a line item may carry its own
override percentage that replaces the regional rate.
"""

from typing import Any, Mapping, Optional

from quotegen.core.errors import ValidationError


def get_discount_for_region(region: str, discounts: Mapping[str, float]) -> float:
    """
    Get the discount rate for a region.

    Args:
        region: Region code (US, EU, APAC)
        discounts: Rate per region as a decimal fraction

    Returns:
        The discount rate, 0.0 for unknown regions
    """
    return float(discounts.get(region, 0.0))


def parse_number(value: Any, name: str) -> float:
    """Read a numeric record field, rejecting missing or non-numeric values."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{name} is missing or not a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} is not a number: {value!r}")


def effective_discount_rate(base_rate: float, override_percent: Optional[Any] = None) -> float:
    """
    Pick the discount rate for one line item.

    Args:
        base_rate: Regional rate as a decimal fraction
        override_percent: Line item override as a percentage (15 means 15%)

    Returns:
        Rate as a decimal fraction
    """
    if override_percent is None or override_percent == "":
        return base_rate

    percent = parse_number(override_percent, "Discount override")
    if not 0.0 <= percent <= 100.0:
        raise ValidationError(f"Discount override must be between 0 and 100, got {percent}")
    return percent / 100.0


def discounted_unit_price(unit_price: float, rate: float) -> float:
    """Apply a discount rate to a unit price."""
    return unit_price * (1.0 - rate)

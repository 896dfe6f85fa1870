"""
Pricing calculations and rate management.

Estimates input cost for the usage report from per-model input rates.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_UP
from typing import Dict, Optional


@dataclass(frozen=True)
class ModelPricing:
    """Input pricing for a specific model."""
    input_cost_per_1m: Decimal  # Cost per 1M input tokens


@dataclass(frozen=True)
class PricingTable:
    """Fixed pricing table with a fallback rate for unknown models."""
    prices: Dict[str, ModelPricing]
    default: ModelPricing

    def get_pricing(self, model: Optional[str]) -> ModelPricing:
        """Get pricing for a model, falling back to the default rate.

        Args:
            model: Model identifier (may be None when the log lacks one)

        Returns:
            ModelPricing for the model
        """
        if model and model in self.prices:
            return self.prices[model]
        return self.default


# Fixed pricing table - no dynamic fetching
PRICING_TABLE = PricingTable(
    prices={
        "gpt-4o": ModelPricing(input_cost_per_1m=Decimal("2.50")),
        "gpt-4o-mini": ModelPricing(input_cost_per_1m=Decimal("0.15")),
        "gpt-4.1": ModelPricing(input_cost_per_1m=Decimal("2.00")),
        "claude-3-5-sonnet": ModelPricing(input_cost_per_1m=Decimal("3.00")),
        "claude-3-opus": ModelPricing(input_cost_per_1m=Decimal("15.00")),
    },
    default=ModelPricing(input_cost_per_1m=Decimal("2.50")),
)


def estimate_input_cost(tokens: int, model: Optional[str] = None) -> float:
    """Estimate input cost with conservative rounding.

    Args:
        tokens: Number of input tokens
        model: Optional model identifier; unknown models use the default rate

    Returns:
        Cost rounded UP to 2 decimal places
    """
    if tokens <= 0:
        return 0.0
    pricing = PRICING_TABLE.get_pricing(model)
    cost = (Decimal(tokens) / Decimal("1000000")) * pricing.input_cost_per_1m
    return float(cost.quantize(Decimal("0.01"), rounding=ROUND_UP))

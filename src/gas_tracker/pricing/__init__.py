"""Pricing layer -- USD reference price, cost estimation, and transaction simulation."""

from gas_tracker.pricing.cost_estimator import CostEstimator, require_price
from gas_tracker.pricing.price_oracle import (
    DemoPriceOracle,
    PriceOracle,
    UniswapPriceOracle,
    usd_price_from_sqrt_price_x96,
)

__all__ = [
    "CostEstimator",
    "DemoPriceOracle",
    "PriceOracle",
    "UniswapPriceOracle",
    "require_price",
    "usd_price_from_sqrt_price_x96",
]

"""Tests for CostEstimator.

All test cases use exact Decimal values to verify precision.
"""

from decimal import Decimal

import pytest

from gas_tracker.exceptions import PriceUnavailableError
from gas_tracker.models import CostEstimate
from gas_tracker.pricing.cost_estimator import CostEstimator, require_price

GWEI = 10**9


@pytest.fixture
def estimator() -> CostEstimator:
    """CostEstimator with the standard 21000 gas floor."""
    return CostEstimator(gas_limit_floor=21000)


class TestGasCost:
    """Test gas_cost: total_fee * gas_limit / 1e18 * price."""

    def test_simple_transfer(self, estimator: CostEstimator) -> None:
        """30 gwei, 21000 gas, $2000/ETH."""
        cost = estimator.gas_cost(30 * GWEI, 21000, Decimal("2000"))
        # 30e9 * 21000 = 6.3e14 wei = 0.00063 ETH -> $1.26
        assert cost == Decimal("1.26")

    def test_contract_call(self, estimator: CostEstimator) -> None:
        """12.5 gwei, 150000 gas, $2500/ETH."""
        cost = estimator.gas_cost(12_500_000_000, 150_000, Decimal("2500"))
        # 12.5e9 * 150000 = 1.875e15 wei = 0.001875 ETH -> $4.6875
        assert cost == Decimal("4.6875")

    def test_tiny_fee_keeps_precision(self, estimator: CostEstimator) -> None:
        cost = estimator.gas_cost(1, 21000, Decimal("2000"))
        assert cost == Decimal("0.000000000042")

    @pytest.mark.parametrize("price", [None, Decimal("0"), Decimal("-1")])
    def test_unknown_price_returns_none(self, estimator: CostEstimator, price) -> None:
        assert estimator.gas_cost(30 * GWEI, 21000, price) is None


class TestGasLimitFloor:
    """Gas limits below the floor are raised to it."""

    @pytest.mark.parametrize("requested,expected", [
        (None, 21000),
        (0, 21000),
        (-5, 21000),
        (20999, 21000),
        (21000, 21000),
        (100000, 100000),
    ])
    def test_effective_gas_limit(self, estimator, requested, expected) -> None:
        assert estimator.effective_gas_limit(requested) == expected

    def test_below_floor_priced_at_floor(self, estimator: CostEstimator) -> None:
        low = estimator.gas_cost(30 * GWEI, 5000, Decimal("2000"))
        floor = estimator.gas_cost(30 * GWEI, 21000, Decimal("2000"))
        assert low == floor

    def test_custom_floor(self) -> None:
        estimator = CostEstimator(gas_limit_floor=50000)
        assert estimator.gas_limit_floor == 50000
        assert estimator.effective_gas_limit(21000) == 50000


class TestEstimate:
    """Test estimate: gas cost plus transfer value."""

    def test_full_breakdown(self, estimator: CostEstimator) -> None:
        """Send 0.5 ETH at 32 gwei, $2000/ETH."""
        estimate = estimator.estimate(32 * GWEI, 21000, Decimal("0.5"), Decimal("2000"))
        # gas: 32e9 * 21000 = 0.000672 ETH -> $1.344
        # value: 0.5 * 2000 = $1000
        assert estimate == CostEstimate(
            gas_cost_usd=Decimal("1.344"),
            transaction_cost_usd=Decimal("1000"),
            total_cost_usd=Decimal("1001.344"),
        )

    def test_total_is_sum_of_parts(self, estimator: CostEstimator) -> None:
        estimate = estimator.estimate(7 * GWEI, 65000, Decimal("1.25"), Decimal("2222.22"))
        assert estimate.total_cost_usd == estimate.gas_cost_usd + estimate.transaction_cost_usd

    def test_zero_value_is_gas_only(self, estimator: CostEstimator) -> None:
        estimate = estimator.estimate(30 * GWEI, 21000, Decimal("0"), Decimal("2000"))
        assert estimate.transaction_cost_usd == Decimal("0")
        assert estimate.total_cost_usd == Decimal("1.26")

    @pytest.mark.parametrize("value", [None, Decimal("-0.1")])
    def test_unset_or_negative_value_returns_none(self, estimator, value) -> None:
        assert estimator.estimate(30 * GWEI, 21000, value, Decimal("2000")) is None

    def test_unknown_price_returns_none(self, estimator: CostEstimator) -> None:
        assert estimator.estimate(30 * GWEI, 21000, Decimal("1"), None) is None

    def test_never_negative(self, estimator: CostEstimator) -> None:
        estimate = estimator.estimate(0, 21000, Decimal("0"), Decimal("2000"))
        assert estimate.total_cost_usd == Decimal("0")

    def test_overflowing_value_returns_none(self, estimator: CostEstimator) -> None:
        assert estimator.estimate(30 * GWEI, 21000, Decimal("1e999999"), Decimal("2000")) is None

    def test_decimals_scale_gas_cost(self, estimator: CostEstimator) -> None:
        wei_based = estimator.estimate(30 * GWEI, 21000, Decimal("0"), Decimal("2000"))
        six_decimals = estimator.estimate(
            30 * GWEI, 21000, Decimal("0"), Decimal("2000"), decimals=6
        )
        assert six_decimals.gas_cost_usd == wei_based.gas_cost_usd * 10**12


class TestRequirePrice:

    def test_positive_price_passes_through(self) -> None:
        assert require_price(Decimal("2000.5")) == Decimal("2000.5")

    @pytest.mark.parametrize("price", [None, Decimal("0"), Decimal("-3")])
    def test_missing_price_raises(self, price) -> None:
        with pytest.raises(PriceUnavailableError):
            require_price(price)

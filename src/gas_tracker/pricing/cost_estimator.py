"""USD cost estimation for a transaction at the current fee level.

All calculations use Decimal arithmetic. Fee inputs are wei; the conversion
to native units divides by 10**decimals, the network's native_decimals.

Cost = total_fee * gas_limit / 10**decimals * usd_price   (gas)
     + transaction_value * usd_price                     (value)
"""

from decimal import Decimal

from gas_tracker.exceptions import PriceUnavailableError
from gas_tracker.logging import get_logger
from gas_tracker.models import CostEstimate

logger = get_logger(__name__)

DEFAULT_GAS_LIMIT_FLOOR = 21000
DEFAULT_DECIMALS = 18


def require_price(usd_price: Decimal | None) -> Decimal:
    """Return usd_price if it is known and positive.

    Raises:
        PriceUnavailableError: If the price is absent or not positive.
    """
    if usd_price is None or usd_price <= 0:
        raise PriceUnavailableError("USD reference price is not available")
    return usd_price


class CostEstimator:
    """Combines a fee level, gas limit, transaction value and USD price.

    Never fabricates a price and never raises on its inputs: every method
    returns None instead of a zero, negative or unrepresentable amount.

    Args:
        gas_limit_floor: Minimum gas limit; smaller requests are raised to it.
    """

    def __init__(self, gas_limit_floor: int = DEFAULT_GAS_LIMIT_FLOOR) -> None:
        self._gas_limit_floor = gas_limit_floor

    @property
    def gas_limit_floor(self) -> int:
        return self._gas_limit_floor

    def effective_gas_limit(self, gas_limit: int | None) -> int:
        """Clamp a requested gas limit to the configured floor."""
        if gas_limit is None or gas_limit < self._gas_limit_floor:
            return self._gas_limit_floor
        return gas_limit

    def gas_cost(
        self,
        total_fee: int,
        gas_limit: int | None,
        usd_price: Decimal | None,
        decimals: int = DEFAULT_DECIMALS,
    ) -> Decimal | None:
        """USD cost of gas alone, or None when the price is unknown."""
        try:
            price = require_price(usd_price)
        except PriceUnavailableError:
            return None
        unit = Decimal(10) ** decimals
        native = Decimal(max(total_fee, 0)) * self.effective_gas_limit(gas_limit) / unit
        return native * price

    def estimate(
        self,
        total_fee: int,
        gas_limit: int | None,
        transaction_value: Decimal | None,
        usd_price: Decimal | None,
        decimals: int = DEFAULT_DECIMALS,
    ) -> CostEstimate | None:
        """Full cost breakdown.

        Args:
            total_fee: Fee per gas in wei (base + priority).
            gas_limit: Gas units the transaction may consume.
            transaction_value: Amount transferred, in native units.
            usd_price: USD per native unit, or None when unknown.
            decimals: Decimal exponent of the native token's smallest unit.

        Returns:
            CostEstimate, or None when the price is unknown, the transaction
            value is unset or negative, or the amounts overflow Decimal.
        """
        if transaction_value is None or transaction_value < 0:
            return None
        try:
            gas_cost_usd = self.gas_cost(total_fee, gas_limit, usd_price, decimals)
            if gas_cost_usd is None:
                return None
            transaction_cost_usd = transaction_value * usd_price  # type: ignore[operator]
            total_cost_usd = gas_cost_usd + transaction_cost_usd
        except ArithmeticError as e:
            # decimal.Overflow / InvalidOperation on absurd inputs
            logger.warning(
                "cost_estimate_out_of_range",
                transaction_value=str(transaction_value),
                error=type(e).__name__,
            )
            return None
        return CostEstimate(
            gas_cost_usd=gas_cost_usd,
            transaction_cost_usd=transaction_cost_usd,
            total_cost_usd=total_cost_usd,
        )

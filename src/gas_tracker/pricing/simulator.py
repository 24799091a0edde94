"""Transaction simulator -- user-supplied value and gas limit per network.

Holds the live/simulation mode flag. In simulation mode, costs() prices the
user's transaction on every tracked network at the current fee level; in
live mode it returns nothing and consumers show fees only.
"""

from decimal import Decimal, InvalidOperation

from gas_tracker.logging import get_logger
from gas_tracker.models import CostEstimate, Mode, Network, SimulationInput
from gas_tracker.telemetry.engine import TelemetryEngine

logger = get_logger(__name__)


class TransactionSimulator:
    """Simulation inputs and mode for the cost view.

    Args:
        engine: Source of fee snapshots and the reference price.
        gas_limit_floor: Default and minimum gas limit.
        default_transaction_value: Initial value for every network.
    """

    def __init__(
        self,
        engine: TelemetryEngine,
        gas_limit_floor: int = 21000,
        default_transaction_value: Decimal | None = None,
    ) -> None:
        self._engine = engine
        self._gas_limit_floor = gas_limit_floor
        self._mode = Mode.LIVE
        self._inputs: dict[Network, SimulationInput] = {
            network: SimulationInput(
                transaction_value=default_transaction_value,
                gas_limit=gas_limit_floor,
            )
            for network in Network
        }

    @property
    def mode(self) -> Mode:
        return self._mode

    def set_mode(self, mode: Mode | str) -> Mode:
        self._mode = Mode(mode)
        logger.info("simulation_mode_changed", mode=self._mode.value)
        return self._mode

    def inputs(self) -> dict[Network, SimulationInput]:
        return {
            network: SimulationInput(value.transaction_value, value.gas_limit)
            for network, value in self._inputs.items()
        }

    def _targets(self, network: Network | None) -> list[Network]:
        return list(Network) if network is None else [network]

    def set_transaction_value(
        self, value: Decimal | str | None, network: Network | None = None
    ) -> None:
        """Set the transfer amount in native units; unparsable or negative clears it.

        Args:
            value: Amount, or None to clear.
            network: Network to update, or None for all networks.
        """
        parsed: Decimal | None
        try:
            parsed = Decimal(str(value)) if value is not None and value != "" else None
        except InvalidOperation:
            parsed = None
        if parsed is not None and (not parsed.is_finite() or parsed < 0):
            parsed = None
        for target in self._targets(network):
            self._inputs[target].transaction_value = parsed

    def set_gas_limit(self, gas_limit: int | str | None, network: Network | None = None) -> None:
        """Set the gas limit; missing or invalid values fall back to the floor."""
        try:
            parsed = int(gas_limit) if gas_limit is not None and gas_limit != "" else 0
        except (TypeError, ValueError):
            parsed = 0
        effective = max(parsed, self._gas_limit_floor)
        for target in self._targets(network):
            self._inputs[target].gas_limit = effective

    def costs(self) -> dict[Network, CostEstimate | None]:
        """Per-network cost estimates; empty in live mode."""
        if self._mode is not Mode.SIMULATION:
            return {}
        result: dict[Network, CostEstimate | None] = {}
        for network in self._engine.tracked_networks:
            sim = self._inputs[network]
            result[network] = self._engine.estimate_cost(
                network, sim.gas_limit, sim.transaction_value
            )
        return result

"""Fee sample normalization -- raw per-network fee reads into FeeSample.

EIP-1559 networks report a base fee on every block header and a separately
estimated priority fee. Legacy networks report a single gas price, which is
treated as the base fee with no priority component.
"""

from dataclasses import dataclass

from gas_tracker.exceptions import QueryError
from gas_tracker.models import FeeSample, Network
from gas_tracker.rpc.types import parse_quantity


@dataclass(frozen=True)
class RawFeeObservation:
    """Fee fields as read from a node, before the network's fee model is applied."""

    base_fee: int | None = None
    gas_price: int | None = None
    priority_fee: int | None = None


def observation_from_header(header: dict) -> RawFeeObservation:
    """Extract the base fee from a block header, if the header carries one."""
    raw = header.get("baseFeePerGas")
    if raw is None:
        return RawFeeObservation()
    return RawFeeObservation(base_fee=parse_quantity(raw, "baseFeePerGas"))


def normalize(network: Network, observation: RawFeeObservation, timestamp_ms: int) -> FeeSample:
    """Build a canonical FeeSample for a network.

    Args:
        network: Network the observation came from; decides the fee model.
        observation: Raw fee fields read from the node.
        timestamp_ms: Wall-clock time of the observation in Unix milliseconds.

    Returns:
        FeeSample with total_fee = base_fee + priority_fee.

    Raises:
        QueryError: If the field the fee model needs is missing or negative.
    """
    if network.supports_priority_fee:
        if observation.base_fee is None:
            raise QueryError(f"{network.value}: observation has no base fee")
        base_fee = observation.base_fee
        priority_fee = observation.priority_fee or 0
    else:
        base_fee = observation.gas_price if observation.gas_price is not None else observation.base_fee
        if base_fee is None:
            raise QueryError(f"{network.value}: observation has no gas price")
        priority_fee = 0

    if base_fee < 0 or priority_fee < 0:
        raise QueryError(f"{network.value}: negative fee in observation {observation}")

    return FeeSample.create(timestamp_ms, base_fee, priority_fee)

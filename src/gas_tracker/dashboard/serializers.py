"""JSON serialization of telemetry models for the dashboard.

Wei amounts and Decimals are emitted as strings to survive JSON number
precision limits in browsers.
"""

from __future__ import annotations

from typing import Any

from gas_tracker.models import (
    CostEstimate,
    FeeSample,
    Network,
    NetworkState,
    OHLCBucket,
    wei_to_gwei,
)
from gas_tracker.pricing.simulator import TransactionSimulator
from gas_tracker.telemetry.store import TelemetryStore


def sample_to_dict(sample: FeeSample | None) -> dict[str, Any] | None:
    if sample is None:
        return None
    return {
        "timestamp_ms": sample.timestamp_ms,
        "base_fee": str(sample.base_fee),
        "priority_fee": str(sample.priority_fee),
        "total_fee": str(sample.total_fee),
        "total_fee_gwei": str(wei_to_gwei(sample.total_fee)),
    }


def live_state_to_dict(state: NetworkState) -> dict[str, Any]:
    return {
        "network": state.network.value,
        "display_name": state.network.display_name,
        "connected": state.connected,
        "last_updated_ms": state.last_updated_ms,
        "latest": sample_to_dict(state.latest),
    }


def state_to_dict(state: NetworkState, include_history: bool = False) -> dict[str, Any]:
    result = live_state_to_dict(state)
    result["samples"] = len(state.history)
    if include_history:
        result["history"] = [sample_to_dict(s) for s in state.history]
    return result


def bucket_to_dict(bucket: OHLCBucket) -> dict[str, Any]:
    return {
        "time": bucket.bucket_start_ms // 1000,  # seconds, for charting libraries
        "bucket_start_ms": bucket.bucket_start_ms,
        "open": str(bucket.open),
        "high": str(bucket.high),
        "low": str(bucket.low),
        "close": str(bucket.close),
    }


def estimate_to_dict(estimate: CostEstimate | None) -> dict[str, str] | None:
    if estimate is None:
        return None
    return {
        "gas_cost_usd": str(estimate.gas_cost_usd),
        "transaction_cost_usd": str(estimate.transaction_cost_usd),
        "total_cost_usd": str(estimate.total_cost_usd),
    }


def simulation_to_dict(simulator: TransactionSimulator) -> dict[str, Any]:
    costs = simulator.costs()
    return {
        "mode": simulator.mode.value,
        "inputs": {
            network.value: {
                "transaction_value": (
                    str(sim.transaction_value) if sim.transaction_value is not None else None
                ),
                "gas_limit": sim.gas_limit,
            }
            for network, sim in simulator.inputs().items()
        },
        "costs": {network.value: estimate_to_dict(cost) for network, cost in costs.items()},
    }


def dashboard_payload(
    store: TelemetryStore,
    simulator: TransactionSimulator,
    new_samples: dict[Network, list[FeeSample]] | None = None,
) -> dict[str, Any]:
    """Snapshot pushed to WebSocket clients, read from the store.

    Args:
        store: Read model holding the last state of each network.
        simulator: Source of mode, inputs and cost estimates.
        new_samples: Block samples appended since the previous push.
    """
    reference = store.reference_price
    return {
        "networks": [live_state_to_dict(s) for s in store.network_states().values()],
        "new_samples": {
            network.value: [sample_to_dict(s) for s in samples]
            for network, samples in (new_samples or {}).items()
        },
        "reference_price": str(reference.price) if reference else None,
        "simulation": simulation_to_dict(simulator),
    }

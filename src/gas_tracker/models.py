"""Shared data models for the gas tracker.

CRITICAL: Fee values are integers in wei. Never use float for fees; USD amounts
use Decimal. Conversion to gwei for display is a lossy one-way helper.
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

WEI_PER_GWEI = 10**9


class FeeModel(str, Enum):
    """How a network prices computation."""

    EIP1559 = "eip1559"  # base fee + priority-fee market
    LEGACY = "legacy"  # single gas price, no priority fee


class Network(str, Enum):
    """Supported networks."""

    ETHEREUM = "ethereum"
    POLYGON = "polygon"
    ARBITRUM = "arbitrum"

    @property
    def fee_model(self) -> FeeModel:
        if self is Network.ETHEREUM:
            return FeeModel.EIP1559
        return FeeModel.LEGACY

    @property
    def supports_priority_fee(self) -> bool:
        return self.fee_model is FeeModel.EIP1559

    @property
    def native_decimals(self) -> int:
        return 18

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class Mode(str, Enum):
    """Presentation mode: live fees only, or fees plus simulated transaction costs."""

    LIVE = "live"
    SIMULATION = "simulation"


@dataclass(frozen=True)
class FeeSample:
    """One observed fee level for a network.

    total_fee is always base_fee + priority_fee; construct through
    FeeSample.create() so the sum is never computed by callers.
    """

    timestamp_ms: int
    base_fee: int
    priority_fee: int
    total_fee: int

    @classmethod
    def create(cls, timestamp_ms: int, base_fee: int, priority_fee: int = 0) -> "FeeSample":
        return cls(
            timestamp_ms=timestamp_ms,
            base_fee=base_fee,
            priority_fee=priority_fee,
            total_fee=base_fee + priority_fee,
        )


@dataclass(frozen=True)
class NetworkState:
    """Point-in-time view of one network.

    connected reflects current link health, not whether latest is still valid.
    history is a copy of the retention ring at the time the snapshot was taken.
    """

    network: Network
    latest: FeeSample | None = None
    history: tuple[FeeSample, ...] = ()
    connected: bool = False
    last_updated_ms: int = 0


@dataclass(frozen=True)
class OHLCBucket:
    """Open/high/low/close of total_fee over one fixed-width interval."""

    bucket_start_ms: int
    open: int
    high: int
    low: int
    close: int


@dataclass(frozen=True)
class CostEstimate:
    """USD cost breakdown for a transaction at the current fee level."""

    gas_cost_usd: Decimal
    transaction_cost_usd: Decimal
    total_cost_usd: Decimal


@dataclass(frozen=True)
class ReferencePrice:
    """Latest known USD price of the native token."""

    price: Decimal
    updated_at: float = field(default_factory=time.time)


@dataclass
class SimulationInput:
    """User-supplied transaction parameters for one network."""

    transaction_value: Decimal | None = None
    gas_limit: int = 21000


def now_ms() -> int:
    """Current wall-clock time in Unix milliseconds."""
    return int(time.time() * 1000)


def wei_to_gwei(value: int) -> Decimal:
    """Convert wei to gwei for display."""
    return Decimal(value) / Decimal(WEI_PER_GWEI)

"""Telemetry engine -- owns one monitor and retention ring per tracked network.

The engine is an explicitly constructed object: main.py builds it and hands
it to whatever needs it (price oracle callback, simulator, dashboard). There
is no process-wide instance.

Networks are independent. A network with a bad configuration is reported once
and skipped; the rest start normally. Snapshots of different networks are
taken independently, so a multi-network read may be slightly skewed in time.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from decimal import Decimal

from gas_tracker.config import NetworkConfig
from gas_tracker.exceptions import ConfigError, NetworkNotTrackedError
from gas_tracker.logging import get_logger
from gas_tracker.models import CostEstimate, Network, NetworkState, OHLCBucket, ReferencePrice
from gas_tracker.pricing.cost_estimator import CostEstimator
from gas_tracker.rpc.client import RpcClient
from gas_tracker.rpc.demo_client import DemoRpcClient
from gas_tracker.rpc.websocket_client import WebSocketRpcClient
from gas_tracker.telemetry.aggregator import aggregate
from gas_tracker.telemetry.monitor import NetworkMonitor
from gas_tracker.telemetry.retention import RetentionRing
from gas_tracker.telemetry.store import StateSink

logger = get_logger(__name__)

ClientFactory = Callable[[NetworkConfig], RpcClient]


def default_client_factory(config: NetworkConfig) -> RpcClient:
    """Build a WebSocket client for the network, or a demo client in demo mode."""
    if config.demo:
        return DemoRpcClient(config.network, block_interval=config.demo_block_interval)
    return WebSocketRpcClient(
        config.endpoint,
        request_timeout=config.request_timeout,
        heartbeat=config.heartbeat,
    )


class TelemetryEngine:
    """Coordinates per-network monitors and exposes read-only views.

    Args:
        client_factory: Builds the RPC client for a network config.
        sink: Optional update sink shared by all monitors.
        cost_estimator: Cost estimator used by estimate_cost().
        sort_history_by_timestamp: Sort samples by timestamp before bucketing
            instead of trusting arrival order.
    """

    def __init__(
        self,
        client_factory: ClientFactory = default_client_factory,
        sink: StateSink | None = None,
        cost_estimator: CostEstimator | None = None,
        sort_history_by_timestamp: bool = False,
    ) -> None:
        self._client_factory = client_factory
        self._sink = sink
        self._cost_estimator = cost_estimator or CostEstimator()
        self._sort_history_by_timestamp = sort_history_by_timestamp
        self._monitors: dict[Network, NetworkMonitor] = {}
        self._config_errors: dict[Network, ConfigError] = {}
        self._reference_price: ReferencePrice | None = None
        self._running = False
        self._lifecycle_lock = asyncio.Lock()

    # ──────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────

    async def start(self, networks: Iterable[NetworkConfig]) -> dict[Network, ConfigError]:
        """Build and start one monitor per network config.

        Monitors start concurrently; one network failing to start does not
        block or abort the others.

        Returns:
            Configuration errors keyed by network, for networks that were skipped.
        """
        async with self._lifecycle_lock:
            if self._running:
                logger.warning("telemetry_engine_already_running")
                return dict(self._config_errors)

            self._monitors = {}
            self._config_errors = {}
            for config in networks:
                if config.network in self._monitors:
                    logger.warning("duplicate_network_config", network=config.network.value)
                    continue
                try:
                    config.validate()
                    ring = RetentionRing(config.capacity)
                    client = self._client_factory(config)
                except ConfigError as e:
                    self._config_errors[config.network] = e
                    logger.error("network_config_invalid", network=config.network.value, error=str(e))
                    continue
                self._monitors[config.network] = NetworkMonitor(config, client, ring, self._sink)

            monitors = list(self._monitors.values())
            results = await asyncio.gather(*(m.start() for m in monitors), return_exceptions=True)
            for monitor, result in zip(monitors, results):
                if isinstance(result, Exception):
                    logger.error(
                        "network_monitor_start_failed",
                        network=monitor.network.value,
                        error=str(result),
                    )
                    del self._monitors[monitor.network]

            self._running = True
            logger.info(
                "telemetry_engine_started",
                networks=[n.value for n in self._monitors],
                skipped=[n.value for n in self._config_errors],
            )
            return dict(self._config_errors)

    async def stop(self) -> None:
        """Stop every monitor. Safe to call more than once."""
        async with self._lifecycle_lock:
            if not self._running:
                return
            self._running = False
            monitors = list(self._monitors.values())
            results = await asyncio.gather(*(m.stop() for m in monitors), return_exceptions=True)
            for monitor, result in zip(monitors, results):
                if isinstance(result, Exception):
                    logger.warning(
                        "network_monitor_stop_failed",
                        network=monitor.network.value,
                        error=str(result),
                    )
            logger.info("telemetry_engine_stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def tracked_networks(self) -> list[Network]:
        return list(self._monitors)

    @property
    def config_errors(self) -> dict[Network, ConfigError]:
        return dict(self._config_errors)

    # ──────────────────────────────────────────────
    # Read views
    # ──────────────────────────────────────────────

    def _monitor(self, network: Network) -> NetworkMonitor:
        monitor = self._monitors.get(network)
        if monitor is None:
            raise NetworkNotTrackedError(network)
        return monitor

    def snapshot(self, network: Network) -> NetworkState:
        """Current fee and connection view of one network."""
        return self._monitor(network).snapshot()

    def snapshots(self) -> dict[Network, NetworkState]:
        """Independent snapshots of every tracked network."""
        return {network: monitor.snapshot() for network, monitor in self._monitors.items()}

    def history(self, network: Network, bucket_width_ms: int | None = None) -> list[OHLCBucket]:
        """OHLC candles over the network's retained samples.

        Args:
            network: Network to aggregate.
            bucket_width_ms: Candle width; defaults to the network's configured width.
        """
        monitor = self._monitor(network)
        width = bucket_width_ms if bucket_width_ms is not None else monitor.config.bucket_width_ms
        return aggregate(
            monitor.snapshot().history,
            width,
            sort_by_timestamp=self._sort_history_by_timestamp,
        )

    # ──────────────────────────────────────────────
    # Reference price and cost
    # ──────────────────────────────────────────────

    @property
    def reference_price(self) -> ReferencePrice | None:
        return self._reference_price

    @property
    def cost_estimator(self) -> CostEstimator:
        return self._cost_estimator

    def set_reference_price(self, price: Decimal | None) -> None:
        """Record the USD price of the native token. None or <= 0 means unknown."""
        if price is None or price <= 0:
            self._reference_price = None
        else:
            self._reference_price = ReferencePrice(price=price)
        if self._sink is not None:
            try:
                self._sink.set_reference_price(price if self._reference_price else None)
            except Exception:
                logger.warning("state_sink_failed", exc_info=True)

    def estimate_cost(
        self,
        network: Network,
        gas_limit: int | None,
        transaction_value: Decimal | None,
    ) -> CostEstimate | None:
        """Cost of a transaction at the network's latest fee level.

        Returns None when no fee has been observed yet, the price is unknown,
        or the transaction value is unset.
        """
        latest = self.snapshot(network).latest
        if latest is None:
            return None
        price = self._reference_price.price if self._reference_price else None
        return self._cost_estimator.estimate(
            latest.total_fee, gas_limit, transaction_value, price, network.native_decimals
        )

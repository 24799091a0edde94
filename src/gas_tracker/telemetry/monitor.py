"""Network monitor -- one live fee feed per network with fallback polling.

Two independent producers write into the same state cell:
  1. The subscription task: one sample per new block header, appended to the
     retention ring.
  2. The fallback poll task: a direct fee query every fallback_poll_interval
     seconds regardless of subscription health. It refreshes latest and
     connected but does not append to the ring, so history stays block-driven.
Whichever writes last wins.

Failure asymmetry: a transport/subscription failure flips connected to False
immediately; a failed individual query is logged and skipped without touching
connected (stale-but-not-disconnected).
"""

from __future__ import annotations

import asyncio
import dataclasses
import threading
from collections.abc import Callable

from gas_tracker.config import NetworkConfig
from gas_tracker.exceptions import TransportError
from gas_tracker.logging import bind_network_context, get_logger
from gas_tracker.models import FeeSample, Network, NetworkState, now_ms
from gas_tracker.rpc.client import RpcClient
from gas_tracker.rpc.types import parse_quantity
from gas_tracker.telemetry.normalizer import RawFeeObservation, normalize, observation_from_header
from gas_tracker.telemetry.retention import RetentionRing
from gas_tracker.telemetry.store import StateSink

logger = get_logger(__name__)


class NetworkMonitor:
    """Maintains one network's live fee subscription and state.

    Owns the network's RetentionRing and NetworkState for writes; everyone
    else reads through snapshot().

    Args:
        config: Resolved network configuration.
        client: RPC client for the network. The monitor connects and closes it.
        ring: Retention ring to append block samples to.
        sink: Optional update sink notified after every state change.
        clock: Wall-clock source in Unix milliseconds.
    """

    def __init__(
        self,
        config: NetworkConfig,
        client: RpcClient,
        ring: RetentionRing,
        sink: StateSink | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._config = config
        self._network = config.network
        self._client = client
        self._ring = ring
        self._sink = sink
        self._clock = clock
        self._state = NetworkState(network=config.network)
        self._lock = threading.Lock()
        self._running = False
        self._subscription_task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._poll_task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._poll_query: asyncio.Task | None = None  # type: ignore[type-arg]
        self._log = logger.bind(network=config.network.value)

    @property
    def network(self) -> Network:
        return self._network

    @property
    def config(self) -> NetworkConfig:
        return self._config

    @property
    def running(self) -> bool:
        return self._running

    def snapshot(self) -> NetworkState:
        """Return a consistent copy of current state including retained history."""
        with self._lock:
            return dataclasses.replace(self._state, history=self._ring.snapshot())

    # ──────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────

    async def start(self) -> None:
        """Begin the subscription and fallback poll tasks in the background."""
        if self._running:
            self._log.warning("network_monitor_already_running")
            return
        self._running = True
        # Announce the network to the sink before any sample arrives
        self._publish(self.snapshot(), None)
        name = self._network.value
        self._subscription_task = asyncio.create_task(
            self._subscription_loop(), name=f"{name}-subscription"
        )
        self._poll_task = asyncio.create_task(self._poll_loop(), name=f"{name}-fallback-poll")
        self._log.info(
            "network_monitor_started",
            capacity=self._ring.capacity,
            poll_interval=self._config.fallback_poll_interval,
        )

    async def stop(self) -> None:
        """Cancel all tasks and release the transport.

        No state is written after this returns. Tasks that ignore cancellation
        for longer than shutdown_timeout are abandoned with a warning.
        """
        was_running = self._running
        self._running = False

        tasks = [
            t for t in (self._subscription_task, self._poll_task, self._poll_query)
            if t is not None and not t.done()
        ]
        self._subscription_task = self._poll_task = self._poll_query = None
        for task in tasks:
            task.cancel()
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=self._config.shutdown_timeout)
            if pending:
                self._log.warning("network_monitor_tasks_stuck", count=len(pending))

        try:
            await asyncio.wait_for(self._client.close(), timeout=self._config.shutdown_timeout)
        except asyncio.CancelledError:
            raise
        except Exception:
            self._log.warning("transport_close_failed", exc_info=True)

        if was_running:
            with self._lock:
                self._state = dataclasses.replace(self._state, connected=False)
                state = self._state
            self._publish(state, None)
            self._log.info("network_monitor_stopped")

    # ──────────────────────────────────────────────
    # Producers
    # ──────────────────────────────────────────────

    async def _subscription_loop(self) -> None:
        """Keep a newHeads subscription open, reconnecting on a fixed delay."""
        bind_network_context(self._network.value)
        while self._running:
            try:
                await self._client.connect()
                async for header in self._client.subscribe_new_heads():
                    if not self._running:
                        return
                    await self._handle_new_head(header)
                if self._running:
                    raise TransportError("subscription ended")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._on_transport_error(e)
            if self._running:
                await asyncio.sleep(self._config.reconnect_delay)

    async def _handle_new_head(self, header: dict) -> None:
        """Turn one block header into a sample; query failures are logged and skipped."""
        try:
            sample = await self._fetch_sample(header)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._log.warning("block_fee_query_failed", error=str(e), block=header.get("number"))
            return
        self._record(sample, append=True)

    async def _poll_loop(self) -> None:
        """Fire a fallback fee query every period, skipping while one is outstanding."""
        bind_network_context(self._network.value)
        while self._running:
            if self._poll_query is not None and not self._poll_query.done():
                self._log.debug("fallback_poll_skipped")
            else:
                self._poll_query = asyncio.create_task(self._poll_once())
            await asyncio.sleep(self._config.fallback_poll_interval)

    async def _poll_once(self) -> None:
        try:
            sample = await self._fetch_sample(None)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._log.warning("fallback_poll_failed", error=str(e))
            return
        self._record(sample, append=False)

    async def _fetch_sample(self, header: dict | None) -> FeeSample:
        """Query current fee data and normalize it.

        Args:
            header: New block header, or None to read the latest block directly.
        """
        if self._network.supports_priority_fee:
            observation = observation_from_header(header) if header else RawFeeObservation()
            if observation.base_fee is None:
                block_ref = header.get("number", "latest") if header else "latest"
                block = await self._client.get_block(block_ref)
                observation = observation_from_header(block)
            priority_fee = await self._estimate_priority_fee()
            observation = dataclasses.replace(observation, priority_fee=priority_fee)
        else:
            gas_price = parse_quantity(await self._client.get_gas_price(), "gasPrice")
            observation = RawFeeObservation(gas_price=gas_price)
        return normalize(self._network, observation, self._clock())

    async def _estimate_priority_fee(self) -> int:
        """Query the suggested priority fee; a failure counts as zero tip."""
        try:
            return parse_quantity(await self._client.get_max_priority_fee(), "maxPriorityFeePerGas")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._log.warning("priority_fee_query_failed", error=str(e))
            return 0

    # ──────────────────────────────────────────────
    # State writes
    # ──────────────────────────────────────────────

    def _record(self, sample: FeeSample, append: bool) -> None:
        if not self._running:
            return
        with self._lock:
            if append:
                self._ring.append(sample)
            self._state = dataclasses.replace(
                self._state,
                latest=sample,
                connected=True,
                last_updated_ms=sample.timestamp_ms,
            )
            state = self._state
        self._publish(state, sample if append else None)
        self._log.debug("fee_sample_recorded", total_fee=sample.total_fee, appended=append)

    def _on_transport_error(self, error: Exception) -> None:
        self._log.warning("transport_error", error=str(error), error_type=type(error).__name__)
        if not self._running:
            return
        with self._lock:
            if not self._state.connected:
                return
            self._state = dataclasses.replace(self._state, connected=False)
            state = self._state
        self._publish(state, None)

    def _publish(self, state: NetworkState, sample: FeeSample | None) -> None:
        if self._sink is None:
            return
        try:
            self._sink.set_network_state(
                self._network,
                latest=state.latest,
                connected=state.connected,
                last_updated_ms=state.last_updated_ms,
            )
            if sample is not None:
                self._sink.append_sample(self._network, sample)
        except Exception:
            self._log.warning("state_sink_failed", exc_info=True)

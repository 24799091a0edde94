"""Update sink interface and an in-memory store with change notifications.

The engine pushes every state change through a StateSink. TelemetryStore is
the default sink and the dashboard's read model: it keeps the last-written
value for each network and the reference price, and fans every change out to
subscriber queues so the dashboard pushes on change instead of polling.
Retained history lives in the monitors' rings, not here.

Writes are last-write-wins with no transactional guarantee across calls.
"""

from __future__ import annotations

import asyncio
import dataclasses
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from gas_tracker.logging import get_logger
from gas_tracker.models import FeeSample, Network, NetworkState, ReferencePrice

logger = get_logger(__name__)

_STATE_FIELDS = {"latest", "connected", "last_updated_ms"}


class StateSink(ABC):
    """Fire-and-forget destination for telemetry updates."""

    @abstractmethod
    def set_network_state(self, network: Network, **partial: Any) -> None:
        """Overwrite some of latest / connected / last_updated_ms for a network."""
        ...

    @abstractmethod
    def append_sample(self, network: Network, sample: FeeSample) -> None:
        """Record a new history sample for a network."""
        ...

    @abstractmethod
    def set_reference_price(self, price: Decimal | None) -> None:
        """Record the latest USD reference price, or None when unknown."""
        ...


@dataclass(frozen=True)
class StateChange:
    """One change event delivered to subscribers."""

    kind: str  # "network_state" | "sample" | "reference_price"
    network: Network | None
    value: Any


class TelemetryStore(StateSink):
    """In-memory StateSink with a broadcast change channel.

    Args:
        subscriber_buffer: Max queued events per subscriber. A slow subscriber
            loses its oldest events rather than blocking producers.
    """

    def __init__(self, subscriber_buffer: int = 100) -> None:
        self._subscriber_buffer = subscriber_buffer
        self._states: dict[Network, NetworkState] = {}
        self._reference_price: ReferencePrice | None = None
        self._subscribers: list[asyncio.Queue[StateChange]] = []
        self._lock = threading.Lock()

    # ──────────────────────────────────────────────
    # StateSink
    # ──────────────────────────────────────────────

    def set_network_state(self, network: Network, **partial: Any) -> None:
        unknown = set(partial) - _STATE_FIELDS
        if unknown:
            raise TypeError(f"unknown network state fields: {sorted(unknown)}")
        with self._lock:
            current = self._states.get(network, NetworkState(network=network))
            updated = dataclasses.replace(current, **partial)
            self._states[network] = updated
        self._broadcast(StateChange("network_state", network, updated))

    def append_sample(self, network: Network, sample: FeeSample) -> None:
        self._broadcast(StateChange("sample", network, sample))

    def set_reference_price(self, price: Decimal | None) -> None:
        with self._lock:
            self._reference_price = (
                ReferencePrice(price=price) if price is not None and price > 0 else None
            )
            reference = self._reference_price
        self._broadcast(StateChange("reference_price", None, reference))

    # ──────────────────────────────────────────────
    # Readers
    # ──────────────────────────────────────────────

    def network_states(self) -> dict[Network, NetworkState]:
        """Last-written state of every network the store has heard from, in Network order."""
        with self._lock:
            return {n: self._states[n] for n in Network if n in self._states}

    @property
    def reference_price(self) -> ReferencePrice | None:
        with self._lock:
            return self._reference_price

    # ──────────────────────────────────────────────
    # Change channel
    # ──────────────────────────────────────────────

    def subscribe(self) -> asyncio.Queue[StateChange]:
        """Register a subscriber and return its event queue."""
        queue: asyncio.Queue[StateChange] = asyncio.Queue(maxsize=self._subscriber_buffer)
        with self._lock:
            self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[StateChange]) -> None:
        with self._lock:
            if queue in self._subscribers:
                self._subscribers.remove(queue)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def _broadcast(self, change: StateChange) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for queue in subscribers:
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                logger.debug("store_subscriber_lagging", kind=change.kind)
            queue.put_nowait(change)

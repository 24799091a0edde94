"""Change-driven WebSocket update loop for real-time dashboard refresh."""

from __future__ import annotations

import asyncio

import structlog
from fastapi import FastAPI

from gas_tracker.dashboard.serializers import dashboard_payload
from gas_tracker.models import FeeSample, Network
from gas_tracker.telemetry.store import StateChange

log = structlog.get_logger(__name__)


def _drain(queue: asyncio.Queue[StateChange]) -> list[StateChange]:
    changes = []
    while not queue.empty():
        changes.append(queue.get_nowait())
    return changes


def _new_samples(changes: list[StateChange]) -> dict[Network, list[FeeSample]]:
    samples: dict[Network, list[FeeSample]] = {}
    for change in changes:
        if change.kind == "sample" and change.network is not None:
            samples.setdefault(change.network, []).append(change.value)
    return samples


async def dashboard_update_loop(app: FastAPI) -> None:
    """Push a store snapshot to WebSocket clients whenever telemetry changes.

    Waits on the store's change channel, then holds for update_interval
    seconds so a burst of changes (several networks hitting a block at once)
    goes out as one message. Nothing is sent while the dashboard is idle or
    nobody is connected.

    Args:
        app: FastAPI application whose state holds hub, store and simulator.
    """
    update_interval = getattr(app.state, "update_interval", 5)
    store = app.state.store
    changes_queue = store.subscribe()

    log.info(
        "dashboard_update_loop_started",
        interval=update_interval,
        subscribers=store.subscriber_count,
    )

    try:
        while True:
            try:
                changes = [await changes_queue.get()]
                await asyncio.sleep(update_interval)
                changes.extend(_drain(changes_queue))

                hub = app.state.hub
                if not hub.connections:
                    continue

                payload = dashboard_payload(store, app.state.simulator, _new_samples(changes))
                await hub.broadcast(payload)

            except asyncio.CancelledError:
                log.info("dashboard_update_loop_cancelled")
                break
            except Exception:
                log.warning("dashboard_update_loop_error", exc_info=True)
                # Continue loop on error -- don't crash the update loop
                await asyncio.sleep(1)
    finally:
        store.unsubscribe(changes_queue)

"""JSON API endpoints exposing read-only telemetry snapshots and the simulator."""

from __future__ import annotations

from decimal import Decimal

import structlog
from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from gas_tracker.dashboard.serializers import (
    bucket_to_dict,
    simulation_to_dict,
    state_to_dict,
)
from gas_tracker.exceptions import NetworkNotTrackedError
from gas_tracker.models import Mode, Network

log = structlog.get_logger(__name__)

router = APIRouter()


class SimulationUpdate(BaseModel):
    """Body of POST /api/simulation. Omitted fields are left unchanged."""

    mode: Mode | None = None
    network: Network | None = None  # None applies value/gas limit to all networks
    transaction_value: Decimal | str | None = None  # JSON number or decimal string
    gas_limit: int | None = None


def _parse_network(name: str) -> Network:
    try:
        return Network(name.lower())
    except ValueError:
        raise HTTPException(status_code=404, detail=f"unknown network {name!r}") from None


@router.get("/networks")
async def get_networks(request: Request) -> JSONResponse:
    """Current state of every tracked network."""
    engine = request.app.state.engine
    return JSONResponse({
        "networks": [state_to_dict(s) for s in engine.snapshots().values()],
        "skipped": {n.value: str(e) for n, e in engine.config_errors.items()},
    })


@router.get("/networks/{network}")
async def get_network(request: Request, network: str) -> JSONResponse:
    """Current state of one network including its raw retained samples."""
    engine = request.app.state.engine
    try:
        state = engine.snapshot(_parse_network(network))
    except NetworkNotTrackedError:
        raise HTTPException(status_code=404, detail=f"network {network!r} is not tracked") from None
    return JSONResponse(state_to_dict(state, include_history=True))


@router.get("/networks/{network}/history")
async def get_history(
    request: Request,
    network: str,
    bucket_seconds: int | None = Query(default=None, gt=0),
) -> JSONResponse:
    """OHLC candles of total fee for one network."""
    engine = request.app.state.engine
    width_ms = bucket_seconds * 1000 if bucket_seconds is not None else None
    try:
        buckets = engine.history(_parse_network(network), width_ms)
    except NetworkNotTrackedError:
        raise HTTPException(status_code=404, detail=f"network {network!r} is not tracked") from None
    return JSONResponse({
        "network": network.lower(),
        "buckets": [bucket_to_dict(b) for b in buckets],
    })


@router.get("/price")
async def get_price(request: Request) -> JSONResponse:
    """Latest USD reference price, or null when unknown."""
    reference = request.app.state.engine.reference_price
    if reference is None:
        return JSONResponse({"price": None, "updated_at": None})
    return JSONResponse({"price": str(reference.price), "updated_at": reference.updated_at})


@router.get("/simulation")
async def get_simulation(request: Request) -> JSONResponse:
    """Mode, simulation inputs, and per-network cost estimates."""
    return JSONResponse(simulation_to_dict(request.app.state.simulator))


@router.post("/simulation")
async def update_simulation(request: Request, update: SimulationUpdate) -> JSONResponse:
    """Change mode and/or simulation inputs."""
    simulator = request.app.state.simulator
    if update.mode is not None:
        simulator.set_mode(update.mode)
    if "transaction_value" in update.model_fields_set:
        simulator.set_transaction_value(update.transaction_value, update.network)
    if "gas_limit" in update.model_fields_set:
        simulator.set_gas_limit(update.gas_limit, update.network)
    log.info(
        "simulation_updated",
        mode=simulator.mode.value,
        network=update.network.value if update.network else "all",
    )
    return JSONResponse(simulation_to_dict(simulator))

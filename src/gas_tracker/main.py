"""Entry point for the cross-chain gas tracker.

Wires all components together, optionally embeds the FastAPI dashboard,
and starts the telemetry engine. When the dashboard is enabled (default),
the engine and dashboard share a single asyncio event loop via uvicorn's
programmatic API and FastAPI's lifespan context manager.

Handles SIGINT/SIGTERM for graceful shutdown.

Component wiring order (in _build_components):
1. AppSettings (configuration)
2. Logging setup
3. NetworkConfigs (validated per network at engine start)
4. TelemetryStore (update sink + change channel)
5. CostEstimator
6. TelemetryEngine
7. PriceOracle (Uniswap or demo)
8. TransactionSimulator
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from gas_tracker.config import AppSettings, NetworkConfig, build_network_configs
from gas_tracker.exceptions import ConfigError
from gas_tracker.logging import get_logger, setup_logging
from gas_tracker.models import Network
from gas_tracker.pricing.cost_estimator import CostEstimator
from gas_tracker.pricing.price_oracle import DemoPriceOracle, PriceOracle, UniswapPriceOracle
from gas_tracker.pricing.simulator import TransactionSimulator
from gas_tracker.rpc.websocket_client import WebSocketRpcClient
from gas_tracker.telemetry.engine import TelemetryEngine
from gas_tracker.telemetry.store import TelemetryStore


def _build_price_oracle(
    settings: AppSettings, engine: TelemetryEngine
) -> PriceOracle | None:
    """Pick the reference price source.

    Demo mode gets random prices. Otherwise the Uniswap pool is read through
    its own Ethereum connection; without a usable Ethereum endpoint the price
    stays unknown and cost estimates are absent.
    """
    logger = get_logger("gas_tracker.main")
    if settings.telemetry.demo_mode:
        return DemoPriceOracle(engine.set_reference_price, settings.telemetry.demo_block_interval)

    endpoint = settings.rpc.endpoint_for(Network.ETHEREUM)
    oracle_config = NetworkConfig(network=Network.ETHEREUM, endpoint=endpoint)
    try:
        oracle_config.validate()
    except ConfigError as e:
        logger.warning("price_oracle_disabled", reason=str(e))
        return None

    client = WebSocketRpcClient(
        endpoint,
        request_timeout=settings.rpc.request_timeout,
        heartbeat=settings.rpc.heartbeat,
    )
    return UniswapPriceOracle(
        client,
        settings.pricing.uniswap_pool,
        engine.set_reference_price,
        poll_interval=settings.pricing.poll_interval,
    )


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all components from settings.

    Does NOT start anything -- that happens in the lifespan (dashboard mode)
    or run() (headless mode).

    Raises:
        ConfigError: If the network list itself is malformed.
    """
    network_configs = build_network_configs(settings)

    store = TelemetryStore()
    cost_estimator = CostEstimator(gas_limit_floor=settings.pricing.gas_limit_floor)
    engine = TelemetryEngine(
        sink=store,
        cost_estimator=cost_estimator,
        sort_history_by_timestamp=settings.telemetry.sort_history_by_timestamp,
    )
    price_oracle = _build_price_oracle(settings, engine)
    simulator = TransactionSimulator(
        engine,
        gas_limit_floor=settings.pricing.gas_limit_floor,
        default_transaction_value=settings.pricing.default_transaction_value,
    )

    return {
        "network_configs": network_configs,
        "store": store,
        "cost_estimator": cost_estimator,
        "engine": engine,
        "price_oracle": price_oracle,
        "simulator": simulator,
    }


async def _start_components(components: dict[str, Any]) -> None:
    logger = get_logger("gas_tracker.main")
    errors = await components["engine"].start(components["network_configs"])
    if Network.ETHEREUM in errors:
        logger.warning(
            "ethereum_not_configured",
            note="Set RPC_INFURA_API_KEY, or TELEMETRY_DEMO_MODE=true for synthetic data.",
        )
    if components["price_oracle"] is not None:
        await components["price_oracle"].start()


async def _stop_components(components: dict[str, Any]) -> None:
    if components["price_oracle"] is not None:
        await components["price_oracle"].stop()
    await components["engine"].stop()


def _setup_signal_handlers(stop_event: asyncio.Event) -> None:
    """Register SIGINT/SIGTERM to request a graceful stop.

    Must be called after the asyncio event loop is running.
    """
    logger = get_logger("gas_tracker.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage component lifecycle within the FastAPI application.

    On startup: stores components on app.state, starts the engine, the price
    oracle and the dashboard update loop.

    On shutdown: cancels the update loop, stops the oracle and the engine.
    """
    from gas_tracker.dashboard.update_loop import dashboard_update_loop

    logger = get_logger("gas_tracker.main")
    settings = app.state.settings
    components = app.state.components

    app.state.engine = components["engine"]
    app.state.simulator = components["simulator"]
    app.state.store = components["store"]
    app.state.update_interval = settings.dashboard.update_interval

    await _start_components(components)

    update_task = asyncio.create_task(dashboard_update_loop(app))

    logger.info("lifespan_started", demo=settings.telemetry.demo_mode)

    yield

    update_task.cancel()
    try:
        await update_task
    except asyncio.CancelledError:
        pass

    await _stop_components(components)

    logger.info("gas_tracker_stopped")


async def run() -> None:
    """Run the gas tracker.

    When dashboard is enabled (DASHBOARD_ENABLED=true, the default):
    - Creates the FastAPI dashboard app with lifespan
    - Runs engine and dashboard in a single asyncio event loop via uvicorn
    - Lifespan manages all component startup/shutdown

    When dashboard is disabled (DASHBOARD_ENABLED=false):
    - Runs the engine headless until SIGINT/SIGTERM
    """
    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("gas_tracker.main")

    # 3-8. Build all components
    try:
        components = _build_components(settings)
    except ConfigError as e:
        logger.error("invalid_configuration", error=str(e))
        raise SystemExit(2) from e

    if settings.dashboard.enabled:
        from gas_tracker.dashboard.app import create_dashboard_app

        app = create_dashboard_app(lifespan=lifespan)
        app.state.settings = settings
        app.state.components = components

        logger.info(
            "starting_with_dashboard",
            host=settings.dashboard.host,
            port=settings.dashboard.port,
            demo=settings.telemetry.demo_mode,
        )

        config = uvicorn.Config(
            app,
            host=settings.dashboard.host,
            port=settings.dashboard.port,
            log_level="warning",  # Suppress uvicorn access logs
        )
        server = uvicorn.Server(config)
        await server.serve()
    else:
        stop_event = asyncio.Event()
        _setup_signal_handlers(stop_event)

        logger.info(
            "starting_without_dashboard",
            networks=settings.telemetry.networks,
            demo=settings.telemetry.demo_mode,
        )

        try:
            await _start_components(components)
            await stop_event.wait()
        finally:
            await _stop_components(components)
            logger.info("gas_tracker_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()

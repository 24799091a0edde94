"""Tests for TelemetryEngine: multi-network coordination and read views."""

from decimal import Decimal

import pytest

from gas_tracker.exceptions import NetworkNotTrackedError
from gas_tracker.models import Network
from gas_tracker.pricing.cost_estimator import CostEstimator
from gas_tracker.telemetry.engine import TelemetryEngine, default_client_factory
from gas_tracker.rpc.demo_client import DemoRpcClient
from gas_tracker.rpc.websocket_client import WebSocketRpcClient
from gas_tracker.telemetry.store import TelemetryStore

GWEI = 10**9


@pytest.fixture
def clients(fake_client_cls):
    return {network: fake_client_cls() for network in Network}


@pytest.fixture
def engine(clients) -> TelemetryEngine:
    return TelemetryEngine(
        client_factory=lambda config: clients[config.network],
        sink=TelemetryStore(),
    )


@pytest.fixture
def all_configs(config_factory):
    return [config_factory(network) for network in Network]


class TestEngineLifecycle:

    @pytest.mark.asyncio
    async def test_start_tracks_every_network(self, engine, all_configs) -> None:
        errors = await engine.start(all_configs)
        try:
            assert errors == {}
            assert engine.is_running is True
            assert set(engine.tracked_networks) == set(Network)
        finally:
            await engine.stop()

    @pytest.mark.asyncio
    async def test_invalid_network_config_isolated(self, engine, config_factory) -> None:
        configs = [
            config_factory(Network.ETHEREUM, endpoint="wss://mainnet.infura.io/ws/v3/{api_key}"),
            config_factory(Network.POLYGON),
            config_factory(Network.ARBITRUM, retention_window_ms=0),
        ]
        errors = await engine.start(configs)
        try:
            assert set(errors) == {Network.ETHEREUM, Network.ARBITRUM}
            assert engine.tracked_networks == [Network.POLYGON]
            assert set(engine.config_errors) == {Network.ETHEREUM, Network.ARBITRUM}
        finally:
            await engine.stop()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, engine, all_configs, clients) -> None:
        await engine.start(all_configs)
        await engine.stop()
        await engine.stop()
        assert engine.is_running is False
        assert all(client.close_calls == 1 for client in clients.values())

    @pytest.mark.asyncio
    async def test_double_start_keeps_monitors(self, engine, all_configs) -> None:
        await engine.start(all_configs)
        try:
            before = engine.tracked_networks
            await engine.start(all_configs)
            assert engine.tracked_networks == before
        finally:
            await engine.stop()

    @pytest.mark.asyncio
    async def test_snapshot_after_stop_is_disconnected(self, engine, all_configs) -> None:
        await engine.start(all_configs)
        await engine.stop()
        assert all(not state.connected for state in engine.snapshots().values())


class TestNetworkIndependence:

    @pytest.mark.asyncio
    async def test_transport_error_only_affects_its_network(
        self, engine, all_configs, clients, until
    ) -> None:
        await engine.start(all_configs)
        try:
            for client in clients.values():
                client.push_head({"number": "0x1", "baseFeePerGas": hex(30 * GWEI)})
            await until(
                lambda: all(len(s.history) == 1 for s in engine.snapshots().values())
            )
            assert all(s.connected for s in engine.snapshots().values())

            clients[Network.POLYGON].fail()
            clients[Network.ETHEREUM].push_head({"number": "0x2"})
            clients[Network.ARBITRUM].push_head({"number": "0x2"})
            await until(lambda: not engine.snapshot(Network.POLYGON).connected)
            await until(
                lambda: len(engine.snapshot(Network.ETHEREUM).history) == 2
                and len(engine.snapshot(Network.ARBITRUM).history) == 2
            )

            assert engine.snapshot(Network.ETHEREUM).connected is True
            assert engine.snapshot(Network.ARBITRUM).connected is True
            polygon = engine.snapshot(Network.POLYGON)
            assert polygon.connected is False
            assert len(polygon.history) == 1
        finally:
            await engine.stop()


class TestReadViews:

    @pytest.mark.asyncio
    async def test_untracked_network_raises(self, engine, config_factory) -> None:
        await engine.start([config_factory(Network.POLYGON)])
        try:
            with pytest.raises(NetworkNotTrackedError):
                engine.snapshot(Network.ETHEREUM)
            with pytest.raises(KeyError):
                engine.history(Network.ARBITRUM)
        finally:
            await engine.stop()

    @pytest.mark.asyncio
    async def test_history_uses_configured_bucket_width(
        self, engine, config_factory, clients, until
    ) -> None:
        await engine.start([config_factory(Network.POLYGON, bucket_width_ms=60_000)])
        try:
            client = clients[Network.POLYGON]
            for fee in (10, 30, 20):
                client.gas_price.return_value = fee
                client.push_head({})
                await until(lambda: engine.snapshot(Network.POLYGON).latest.total_fee == fee)
            await until(lambda: len(engine.snapshot(Network.POLYGON).history) == 3)

            # Samples use the wall clock and may straddle a minute boundary
            buckets = engine.history(Network.POLYGON)
            assert 1 <= len(buckets) <= 2
            assert buckets[0].open == 10
            assert buckets[-1].close == 20
            assert max(b.high for b in buckets) == 30
            assert min(b.low for b in buckets) == 10
            assert all(b.bucket_start_ms % 60_000 == 0 for b in buckets)
        finally:
            await engine.stop()

    @pytest.mark.asyncio
    async def test_history_empty_before_any_block(self, engine, config_factory) -> None:
        await engine.start([config_factory(Network.POLYGON)])
        try:
            assert engine.history(Network.POLYGON, bucket_width_ms=1000) == []
        finally:
            await engine.stop()


class TestReferencePriceAndCost:

    @pytest.mark.parametrize("price", [None, Decimal("0"), Decimal("-5")])
    def test_non_positive_price_is_unknown(self, price) -> None:
        store = TelemetryStore()
        engine = TelemetryEngine(sink=store)
        engine.set_reference_price(Decimal("2000"))
        engine.set_reference_price(price)
        assert engine.reference_price is None
        assert store.reference_price is None

    def test_price_forwarded_to_sink(self) -> None:
        store = TelemetryStore()
        engine = TelemetryEngine(sink=store)
        engine.set_reference_price(Decimal("2000"))
        assert engine.reference_price.price == Decimal("2000")
        assert store.reference_price.price == Decimal("2000")

    @pytest.mark.asyncio
    async def test_estimate_cost_without_latest_is_none(self, engine, config_factory) -> None:
        await engine.start([config_factory(Network.POLYGON)])
        try:
            engine.set_reference_price(Decimal("2000"))
            assert engine.estimate_cost(Network.POLYGON, 21000, Decimal("1")) is None
        finally:
            await engine.stop()

    @pytest.mark.asyncio
    async def test_estimate_cost_out_of_range_value_is_none(
        self, fake_client_cls, config_factory, until
    ) -> None:
        client = fake_client_cls()
        engine = TelemetryEngine(client_factory=lambda config: client)
        await engine.start([config_factory(Network.POLYGON)])
        try:
            client.push_head({})
            await until(lambda: engine.snapshot(Network.POLYGON).latest is not None)
            engine.set_reference_price(Decimal("2000"))
            assert engine.estimate_cost(Network.POLYGON, 21000, Decimal("1e999999")) is None
        finally:
            await engine.stop()

    @pytest.mark.asyncio
    async def test_estimate_cost_uses_latest_total_fee(
        self, fake_client_cls, config_factory, until
    ) -> None:
        client = fake_client_cls(gas_price=50 * GWEI)
        engine = TelemetryEngine(
            client_factory=lambda config: client,
            cost_estimator=CostEstimator(gas_limit_floor=21000),
        )
        await engine.start([config_factory(Network.POLYGON)])
        try:
            client.push_head({})
            await until(lambda: engine.snapshot(Network.POLYGON).latest is not None)
            engine.set_reference_price(Decimal("2000"))

            estimate = engine.estimate_cost(Network.POLYGON, 21000, Decimal("0.5"))
            # 50 gwei * 21000 = 0.00105 ETH
            assert estimate.gas_cost_usd == Decimal("2.1")
            assert estimate.transaction_cost_usd == Decimal("1000")
            assert estimate.total_cost_usd == Decimal("1002.1")
        finally:
            await engine.stop()

    @pytest.mark.asyncio
    async def test_estimate_cost_without_price_is_none(
        self, fake_client_cls, config_factory, until
    ) -> None:
        client = fake_client_cls()
        engine = TelemetryEngine(client_factory=lambda config: client)
        await engine.start([config_factory(Network.POLYGON)])
        try:
            client.push_head({})
            await until(lambda: engine.snapshot(Network.POLYGON).latest is not None)
            assert engine.estimate_cost(Network.POLYGON, 21000, Decimal("1")) is None
        finally:
            await engine.stop()


class TestDefaultClientFactory:

    def test_demo_config_gets_demo_client(self, config_factory) -> None:
        client = default_client_factory(config_factory(Network.POLYGON, demo=True))
        assert isinstance(client, DemoRpcClient)

    def test_live_config_gets_websocket_client(self, config_factory) -> None:
        client = default_client_factory(config_factory(Network.ETHEREUM))
        assert isinstance(client, WebSocketRpcClient)

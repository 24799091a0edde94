"""Shared test fixtures for the gas tracker."""

import asyncio
import itertools
from collections.abc import AsyncIterator, Callable
from unittest.mock import AsyncMock

import pytest

from gas_tracker.config import AppSettings, NetworkConfig, RpcSettings, TelemetrySettings
from gas_tracker.exceptions import TransportError
from gas_tracker.models import FeeSample, Network
from gas_tracker.rpc.client import RpcClient

GWEI = 10**9


class FakeRpcClient(RpcClient):
    """Scriptable RpcClient: tests push headers or errors into the subscription."""

    def __init__(
        self,
        base_fee: int = 30 * GWEI,
        gas_price: int = 40 * GWEI,
        priority_fee: int = 2 * GWEI,
    ) -> None:
        self.connected = False
        self.heads: asyncio.Queue = asyncio.Queue()
        self.connect_calls = 0
        self.close_calls = 0
        self.block = AsyncMock(return_value={"number": "0x1", "baseFeePerGas": hex(base_fee)})
        self.gas_price = AsyncMock(return_value=gas_price)
        self.priority_fee = AsyncMock(return_value=priority_fee)
        self.logs = AsyncMock(return_value=[])

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def connect(self) -> None:
        self.connect_calls += 1
        self.connected = True

    async def close(self) -> None:
        self.close_calls += 1
        self.connected = False

    def push_head(self, header: dict) -> None:
        self.heads.put_nowait(header)

    def fail(self, error: Exception | None = None) -> None:
        self.heads.put_nowait(error or TransportError("socket dropped"))

    async def subscribe_new_heads(self) -> AsyncIterator[dict]:
        if not self.connected:
            raise TransportError("not connected")
        while True:
            item = await self.heads.get()
            if isinstance(item, Exception):
                self.connected = False
                raise item
            yield item

    async def get_block(self, block: int | str = "latest") -> dict:
        return await self.block(block)

    async def get_gas_price(self) -> int:
        return await self.gas_price()

    async def get_max_priority_fee(self) -> int:
        return await self.priority_fee()

    async def get_logs(self, address, topics, from_block="latest", to_block="latest") -> list[dict]:
        return await self.logs(address, topics, from_block, to_block)


def make_config(network: Network = Network.ETHEREUM, **overrides) -> NetworkConfig:
    """NetworkConfig with slow background timers so tests drive every event."""
    values = {
        "network": network,
        "endpoint": f"wss://{network.value}.example.org/ws",
        "fallback_poll_interval": 60.0,
        "reconnect_delay": 60.0,
        "shutdown_timeout": 1.0,
        "request_timeout": 1.0,
    }
    values.update(overrides)
    return NetworkConfig(**values)


def make_samples(*points: tuple[int, int]) -> list[FeeSample]:
    """Build samples from (timestamp_ms, total_fee) pairs."""
    return [FeeSample.create(t, fee) for t, fee in points]


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the event loop until predicate() holds or fail after timeout."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture
def clock() -> Callable[[], int]:
    """Deterministic millisecond clock: 1000, 2000, 3000, ..."""
    counter = itertools.count(1)
    return lambda: next(counter) * 1000


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with test defaults (demo off, dummy API key)."""
    return AppSettings(
        log_level="DEBUG",
        rpc=RpcSettings(infura_api_key="test-key"),  # type: ignore[arg-type]
        telemetry=TelemetrySettings(),
    )


@pytest.fixture
def fake_client_cls() -> type[FakeRpcClient]:
    """The scriptable fake RPC client class."""
    return FakeRpcClient


@pytest.fixture
def config_factory() -> Callable[..., NetworkConfig]:
    return make_config


@pytest.fixture
def samples_factory() -> Callable[..., list[FeeSample]]:
    return make_samples


@pytest.fixture
def until() -> Callable:
    return wait_until

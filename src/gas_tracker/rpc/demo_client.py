"""Synthetic RPC client for running without node credentials.

Emits a new block header every block_interval seconds with randomized fee
levels in a realistic range, so the full monitor/ring/aggregator pipeline can
be exercised end to end with no network access.
"""

import asyncio
import random
import time
from collections.abc import AsyncIterator

from gas_tracker.exceptions import TransportError
from gas_tracker.models import WEI_PER_GWEI, Network
from gas_tracker.rpc.client import RpcClient


class DemoRpcClient(RpcClient):
    """RpcClient that fabricates fee data instead of talking to a node.

    Base fee: 20-50 gwei. Priority fee: 1-6 gwei on networks with a
    priority-fee market, otherwise the node reports a single gas price.
    """

    def __init__(
        self,
        network: Network,
        block_interval: float = 6.0,
        rng: random.Random | None = None,
    ) -> None:
        self._network = network
        self._block_interval = block_interval
        self._rng = rng or random.Random()
        self._connected = False
        self._block_number = 0

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._connected = True

    async def close(self) -> None:
        self._connected = False

    def _base_fee(self) -> int:
        return int(self._rng.uniform(20, 50) * WEI_PER_GWEI)

    def _header(self) -> dict:
        self._block_number += 1
        # Same shape as a web3.py-formatted header: ints, not hex strings
        header = {
            "number": self._block_number,
            "timestamp": int(time.time()),
        }
        if self._network.supports_priority_fee:
            header["baseFeePerGas"] = self._base_fee()
        return header

    async def subscribe_new_heads(self) -> AsyncIterator[dict]:
        if not self._connected:
            raise TransportError("not connected")
        while self._connected:
            await asyncio.sleep(self._block_interval)
            if not self._connected:
                break
            yield self._header()

    async def get_block(self, block: int | str = "latest") -> dict:
        if not self._connected:
            raise TransportError("not connected")
        return self._header()

    async def get_gas_price(self) -> int:
        if not self._connected:
            raise TransportError("not connected")
        return self._base_fee()

    async def get_max_priority_fee(self) -> int:
        if not self._connected:
            raise TransportError("not connected")
        return int(self._rng.uniform(1, 6) * WEI_PER_GWEI)

    async def get_logs(
        self,
        address: str,
        topics: list[str],
        from_block: int | str = "latest",
        to_block: int | str = "latest",
    ) -> list[dict]:
        return []

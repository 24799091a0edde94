"""Ethereum JSON-RPC client over a persistent WebSocket, backed by web3.py.

AsyncWeb3 with a WebSocketProvider owns framing, request ids and subscription
routing. This adapter translates web3's failures into the two kinds the
monitor cares about: TransportError when the link is gone and QueryError when
one call failed. Block headers and logs are handed out as plain dicts.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable
from typing import Any, TypeVar

from web3 import AsyncWeb3, Web3, WebSocketProvider
from web3.exceptions import ProviderConnectionError, TimeExhausted, Web3Exception
from websockets.exceptions import WebSocketException

from gas_tracker.exceptions import QueryError, TransportError
from gas_tracker.logging import get_logger
from gas_tracker.rpc.client import RpcClient
from gas_tracker.rpc.types import parse_quantity

logger = get_logger(__name__)

T = TypeVar("T")

# TimeoutError is an OSError subclass, so timeouts must be matched first
_TIMEOUT_ERRORS = (TimeExhausted, asyncio.TimeoutError)
_CONNECTION_ERRORS = (ProviderConnectionError, WebSocketException, OSError)


class WebSocketRpcClient(RpcClient):
    """web3.py client for a single network's WebSocket endpoint.

    Args:
        endpoint: ws:// or wss:// URL of the node.
        request_timeout: Seconds to wait for any single response.
        heartbeat: Seconds between WebSocket pings; a missed pong drops the link.
    """

    def __init__(
        self,
        endpoint: str,
        request_timeout: float = 10.0,
        heartbeat: float = 20.0,
    ) -> None:
        self._endpoint = endpoint
        self._request_timeout = request_timeout
        self._heartbeat = heartbeat
        self._w3: AsyncWeb3 | None = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._w3 is not None and self._connected

    def _build_web3(self) -> AsyncWeb3:
        provider = WebSocketProvider(
            self._endpoint,
            websocket_kwargs={"ping_interval": self._heartbeat, "ping_timeout": self._heartbeat},
            request_timeout=self._request_timeout,
        )
        return AsyncWeb3(provider)

    async def connect(self) -> None:
        """Open the WebSocket. A stale provider from a dropped link is discarded first."""
        if self.is_connected:
            return
        await self._teardown()

        w3 = self._build_web3()
        try:
            await w3.provider.connect()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise TransportError(f"connect failed: {e}") from e

        self._w3 = w3
        self._connected = True
        logger.debug("rpc_connected", endpoint=_redact(self._endpoint))

    async def close(self) -> None:
        await self._teardown()

    async def _teardown(self) -> None:
        w3, self._w3 = self._w3, None
        self._connected = False
        if w3 is None:
            return
        try:
            await w3.provider.disconnect()
        except asyncio.CancelledError:
            raise
        except Exception:
            # Disconnecting a socket the peer already dropped routinely fails
            logger.debug("rpc_disconnect_failed", endpoint=_redact(self._endpoint), exc_info=True)

    @property
    def _eth(self) -> Any:
        if self._w3 is None or not self._connected:
            raise TransportError("not connected")
        return self._w3.eth

    async def _call(self, method: str, call: Awaitable[T]) -> T:
        """Await one web3 call, mapping its failures onto Transport/QueryError."""
        try:
            return await call
        except asyncio.CancelledError:
            raise
        except _TIMEOUT_ERRORS as e:
            raise QueryError(f"{method} timed out after {self._request_timeout}s") from e
        except _CONNECTION_ERRORS as e:
            self._connected = False
            raise TransportError(f"{method}: connection lost: {e}") from e
        except (Web3Exception, ValueError) as e:
            raise QueryError(f"{method} failed: {e}") from e

    async def subscribe_new_heads(self) -> AsyncIterator[dict]:
        w3 = self._w3
        subscription_id = await self._call("eth_subscribe", self._eth.subscribe("newHeads"))
        logger.debug("rpc_subscribed", subscription=subscription_id)
        try:
            async for message in w3.socket.process_subscriptions():  # type: ignore[union-attr]
                if message.get("subscription") != subscription_id:
                    continue
                yield dict(message["result"])
        except asyncio.CancelledError:
            raise
        except (*_CONNECTION_ERRORS, Web3Exception) as e:
            self._connected = False
            raise TransportError(f"subscription failed: {e}") from e
        # The provider stops yielding only when the socket is gone
        self._connected = False

    async def get_block(self, block: int | str = "latest") -> dict:
        return dict(await self._call("eth_getBlockByNumber", self._eth.get_block(block)))

    async def get_gas_price(self) -> int:
        return parse_quantity(await self._call("eth_gasPrice", self._eth.gas_price), "gasPrice")

    async def get_max_priority_fee(self) -> int:
        return parse_quantity(
            await self._call("eth_maxPriorityFeePerGas", self._eth.max_priority_fee),
            "maxPriorityFeePerGas",
        )

    async def get_logs(
        self,
        address: str,
        topics: list[str],
        from_block: int | str = "latest",
        to_block: int | str = "latest",
    ) -> list[dict]:
        try:
            checksum_address = Web3.to_checksum_address(address)
        except ValueError as e:
            raise QueryError(f"invalid log address {address!r}") from e
        logs = await self._call("eth_getLogs", self._eth.get_logs({
            "address": checksum_address,
            "topics": topics,
            "fromBlock": from_block,
            "toBlock": to_block,
        }))
        return [dict(log) for log in logs]


def _redact(endpoint: str) -> str:
    """Strip the path (which often carries an API key) from an endpoint for logging."""
    scheme, _, rest = endpoint.partition("://")
    host = rest.split("/", 1)[0]
    return f"{scheme}://{host}"

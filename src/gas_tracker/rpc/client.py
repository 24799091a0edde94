"""Abstract RPC client interface.

Defines the contract the telemetry engine needs from a network node.
Monitor and oracle code depend only on this interface, keeping WebSocket
and demo details isolated in the concrete implementations.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator


class RpcClient(ABC):
    """Abstract base class for per-network node clients.

    Implementations raise TransportError when the connection is unusable and
    QueryError when a single call fails.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open the underlying connection. No-op if already connected."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the connection. Safe to call multiple times."""
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the underlying connection is currently open."""
        ...

    @abstractmethod
    def subscribe_new_heads(self) -> AsyncIterator[dict]:
        """Yield new block headers as they are announced.

        The iterator raises TransportError (or simply ends) when the
        connection is lost.
        """
        ...

    @abstractmethod
    async def get_block(self, block: int | str = "latest") -> dict:
        """Fetch a block header by number or tag."""
        ...

    @abstractmethod
    async def get_gas_price(self) -> int:
        """Return the node's current legacy gas price in wei."""
        ...

    @abstractmethod
    async def get_max_priority_fee(self) -> int:
        """Return the node's suggested priority fee per gas in wei."""
        ...

    @abstractmethod
    async def get_logs(
        self,
        address: str,
        topics: list[str],
        from_block: int | str = "latest",
        to_block: int | str = "latest",
    ) -> list[dict]:
        """Fetch event logs matching an address and topic filter."""
        ...

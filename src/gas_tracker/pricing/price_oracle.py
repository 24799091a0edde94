"""USD reference price oracles.

UniswapPriceOracle reads the most recent Swap event of the Uniswap V3
USDC/WETH pool and derives ETH/USD from its sqrtPriceX96. DemoPriceOracle
produces a random price for demo mode. Both poll on a fixed interval and
push each new price through a callback; failures are logged, never raised,
and leave the last known price in place.
"""

import asyncio
import random
from abc import ABC, abstractmethod
from collections.abc import Callable
from decimal import Decimal

from gas_tracker.exceptions import QueryError
from gas_tracker.logging import get_logger
from gas_tracker.rpc.client import RpcClient
from gas_tracker.rpc.types import UNISWAP_V3_SWAP_TOPIC, decode_swap_sqrt_price

logger = get_logger(__name__)

# token0 = USDC (6 decimals), token1 = WETH (18 decimals)
_DECIMAL_ADJUSTMENT = 10 ** (18 - 6)
_Q192 = 2**192
_USD_QUANTUM = Decimal("0.000001")

PriceCallback = Callable[[Decimal | None], None]


def usd_price_from_sqrt_price_x96(sqrt_price_x96: int) -> Decimal:
    """Convert a USDC/WETH pool sqrtPriceX96 into USD per ETH.

    The pool price is token1 per token0 in raw units, (sqrtPriceX96 / 2**96)**2.
    USD per ETH is its inverse, rescaled for the 12-decimal gap.

    Raises:
        QueryError: If sqrt_price_x96 is zero.
    """
    if sqrt_price_x96 <= 0:
        raise QueryError("sqrtPriceX96 must be positive")
    price = Decimal(_DECIMAL_ADJUSTMENT * _Q192) / Decimal(sqrt_price_x96 * sqrt_price_x96)
    return price.quantize(_USD_QUANTUM)


class PriceOracle(ABC):
    """Periodically fetches a reference price and hands it to a callback.

    Args:
        on_price: Called with every successfully fetched price.
        poll_interval: Seconds between fetches.
    """

    def __init__(self, on_price: PriceCallback, poll_interval: float = 30.0) -> None:
        self._on_price = on_price
        self._poll_interval = poll_interval
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]

    @abstractmethod
    async def fetch_price(self) -> Decimal | None:
        """Return the current price, or None when no fresh price is observable."""
        ...

    async def start(self) -> None:
        """Begin polling in the background."""
        if self._running:
            logger.warning("price_oracle_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info("price_oracle_started", poll_interval=self._poll_interval)

    async def stop(self) -> None:
        """Stop polling."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("price_oracle_stopped")

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("price_oracle_poll_error", exc_info=True)
            if self._running:
                await asyncio.sleep(self._poll_interval)

    async def poll_once(self) -> Decimal | None:
        """Fetch once and, if a price was observed, publish it."""
        price = await self.fetch_price()
        if price is None:
            logger.debug("price_unchanged")
            return None
        self._on_price(price)
        logger.debug("reference_price_updated", price=str(price))
        return price


class UniswapPriceOracle(PriceOracle):
    """ETH/USD from the latest Swap on a Uniswap V3 USDC/WETH pool.

    Args:
        client: Ethereum mainnet RPC client. The oracle connects and closes it.
        pool_address: Pool contract address.
        on_price: Price callback.
        poll_interval: Seconds between fetches.
    """

    def __init__(
        self,
        client: RpcClient,
        pool_address: str,
        on_price: PriceCallback,
        poll_interval: float = 30.0,
    ) -> None:
        super().__init__(on_price, poll_interval)
        self._client = client
        self._pool_address = pool_address

    async def fetch_price(self) -> Decimal | None:
        if not self._client.is_connected:
            await self._client.connect()
        logs = await self._client.get_logs(self._pool_address, [UNISWAP_V3_SWAP_TOPIC])
        if not logs:
            return None
        sqrt_price_x96 = decode_swap_sqrt_price(logs[-1].get("data", b""))
        return usd_price_from_sqrt_price_x96(sqrt_price_x96)

    async def stop(self) -> None:
        await super().stop()
        try:
            await self._client.close()
        except Exception:
            logger.warning("price_oracle_close_failed", exc_info=True)


class DemoPriceOracle(PriceOracle):
    """Random ETH/USD price between $2000 and $2500."""

    def __init__(
        self,
        on_price: PriceCallback,
        poll_interval: float = 6.0,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(on_price, poll_interval)
        self._rng = rng or random.Random()

    async def fetch_price(self) -> Decimal | None:
        return Decimal(str(round(self._rng.uniform(2000, 2500), 2)))

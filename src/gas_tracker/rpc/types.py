"""Ethereum value helpers shared by all RPC client implementations.

web3.py returns formatted ints for block fields and fee reads; raw hex
quantities still turn up in demo headers and hand-built fixtures, so both are
accepted.
"""

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from hexbytes import HexBytes
from web3 import Web3

from gas_tracker.exceptions import QueryError

SWAP_EVENT_SIGNATURE = "Swap(address,address,int256,int256,uint160,uint128,int24)"
UNISWAP_V3_SWAP_TOPIC = Web3.to_hex(Web3.keccak(text=SWAP_EVENT_SIGNATURE))

# Non-indexed Swap fields: amount0, amount1, sqrtPriceX96, liquidity, tick
SWAP_DATA_TYPES = ["int256", "int256", "uint160", "uint128", "int24"]


def parse_quantity(value: object, field: str = "quantity") -> int:
    """Return a fee quantity as a non-negative int.

    Raises:
        QueryError: If the value is missing, not an int or 0x-hex string, or negative.
    """
    if isinstance(value, bool):
        raise QueryError(f"invalid {field}: {value!r}")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str) and value[:2].lower() == "0x":
        try:
            result = Web3.to_int(hexstr=value)
        except ValueError:
            raise QueryError(f"invalid {field}: {value!r}") from None
    else:
        raise QueryError(f"invalid {field}: {value!r}")
    if result < 0:
        raise QueryError(f"negative {field}: {value!r}")
    return result


def decode_swap_sqrt_price(data: bytes | str) -> int:
    """Decode sqrtPriceX96 from the data section of a Uniswap V3 Swap log.

    Raises:
        QueryError: If the data is not a well-formed Swap payload.
    """
    try:
        _, _, sqrt_price_x96, _, _ = abi_decode(SWAP_DATA_TYPES, bytes(HexBytes(data)))
    except (DecodingError, ValueError, TypeError) as e:
        raise QueryError(f"malformed Swap log data: {e}") from e
    return sqrt_price_x96

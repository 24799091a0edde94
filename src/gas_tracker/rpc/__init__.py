"""RPC client layer -- Ethereum JSON-RPC over WebSocket via web3.py."""

from gas_tracker.rpc.client import RpcClient
from gas_tracker.rpc.demo_client import DemoRpcClient
from gas_tracker.rpc.types import UNISWAP_V3_SWAP_TOPIC, decode_swap_sqrt_price, parse_quantity
from gas_tracker.rpc.websocket_client import WebSocketRpcClient

__all__ = [
    "UNISWAP_V3_SWAP_TOPIC",
    "DemoRpcClient",
    "RpcClient",
    "WebSocketRpcClient",
    "decode_swap_sqrt_price",
    "parse_quantity",
]

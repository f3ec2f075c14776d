"""
Adenine SDK - signed Node RPC client for Elastos blockchain nodes.
"""
from .node_rpc import (
    NodeRpc, Chain, CallDescriptor, NO_RESULT, hex_to_decimal,
    NodeRpcError, NodeRpcConnectionError, NodeRpcEncodingError,
    NodeRpcTransportError, NodeRpcTimeoutError, NodeRpcAuthenticationError,
    TokenExpiredError, ReplyMismatchError, NodeRpcShapeError
)
from .version import __version__

__all__ = [
    "NodeRpc",
    "Chain",
    "CallDescriptor",
    "NO_RESULT",
    "hex_to_decimal",
    "NodeRpcError",
    "NodeRpcConnectionError",
    "NodeRpcEncodingError",
    "NodeRpcTransportError",
    "NodeRpcTimeoutError",
    "NodeRpcAuthenticationError",
    "TokenExpiredError",
    "ReplyMismatchError",
    "NodeRpcShapeError",
    "__version__",
]

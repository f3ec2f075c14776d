"""
Node RPC module for the Adenine SDK.

This module provides the signed-envelope client for the Node RPC service,
which answers balance, height, state and block queries for the mainchain
and the did, token and eth sidechains.
"""

from .client import NodeRpc, hex_to_decimal
from .envelope import (
    CallDescriptor, NO_RESULT, encode_request, decode_reply,
    decode_request, encode_reply
)
from .exceptions import (
    Chain, NodeRpcError, NodeRpcConnectionError, NodeRpcEncodingError,
    NodeRpcTransportError, NodeRpcTimeoutError, NodeRpcAuthenticationError,
    TokenExpiredError, ReplyMismatchError, NodeRpcShapeError
)
from .transport import NodeRpcTransport, RpcReply
from .grpc_transport import GrpcTransport
from .stub_transport import StubTransport

__all__ = [
    'NodeRpc', 'hex_to_decimal',
    'CallDescriptor', 'NO_RESULT', 'encode_request', 'decode_reply',
    'decode_request', 'encode_reply',
    'Chain', 'NodeRpcError', 'NodeRpcConnectionError', 'NodeRpcEncodingError',
    'NodeRpcTransportError', 'NodeRpcTimeoutError', 'NodeRpcAuthenticationError',
    'TokenExpiredError', 'ReplyMismatchError', 'NodeRpcShapeError',
    'NodeRpcTransport', 'RpcReply', 'GrpcTransport', 'StubTransport',
]


"""
Exceptions for the Node RPC module.
"""
from enum import Enum
from typing import Optional


class Chain(str, Enum):
    """
    Ledgers reachable through the Node RPC service.

    The values are the chain identifiers carried in the signed call
    descriptor and must match the service's expectations exactly.
    """
    MAINCHAIN = "mainchain"
    DID = "did"
    TOKEN = "token"
    ETH = "eth"


class NodeRpcError(Exception):
    """Base exception for Node RPC errors."""
    pass


class NodeRpcConnectionError(NodeRpcError):
    """Raised when the Node RPC endpoint cannot be reached."""
    pass


class NodeRpcEncodingError(NodeRpcError):
    """Raised when a call descriptor cannot be turned into a signed credential."""
    pass


class NodeRpcTransportError(NodeRpcError):
    """Raised when a single call fails in transit."""

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[str] = None):
        self.code = code
        self.details = details
        super().__init__(message)


class NodeRpcTimeoutError(NodeRpcTransportError):
    """Raised when a call exceeds its deadline."""
    pass


class NodeRpcAuthenticationError(NodeRpcError):
    """Raised when a reply credential fails verification."""
    pass


class TokenExpiredError(NodeRpcAuthenticationError):
    """Raised when a reply credential is past its expiration."""
    pass


class ReplyMismatchError(NodeRpcAuthenticationError):
    """Raised when a verified reply echoes a different network, chain or method."""

    def __init__(self, message: str, field: str, expected: str, received: str):
        self.field = field
        self.expected = expected
        self.received = received
        super().__init__(message)


class NodeRpcShapeError(NodeRpcError):
    """Raised when a verified reply lacks the fields the wire contract requires."""
    pass

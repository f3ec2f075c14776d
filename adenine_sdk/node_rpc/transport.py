"""
Transport layer for the Node RPC service.

A transport owns one channel to one endpoint and moves an opaque signed
credential there and back. It knows nothing about the envelope inside.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

# Configure logger
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RpcReply:
    """
    What the endpoint returns for one call.

    ``output`` is the signed reply credential; ``status`` False means the
    endpoint produced no result and ``output`` must not be interpreted.
    """
    output: str = ""
    status: bool = False
    status_message: str = ""


class NodeRpcTransport(ABC):
    """
    Abstract base class for Node RPC transport implementations.

    Implementations must allow concurrent ``invoke`` calls from several
    threads once ``initialize`` has returned.
    """

    @abstractmethod
    def initialize(
        self,
        host: str,
        port: int,
        production: bool = False,
        verify_ssl: bool = False,
        connect_timeout: Optional[float] = None
    ) -> None:
        """
        Open the channel to ``host:port``.

        Args:
            host: Endpoint host name
            port: Endpoint port
            production: Use an encrypted channel instead of a plaintext one
            verify_ssl: Validate the endpoint's certificate (encrypted channel only)
            connect_timeout: If set, wait up to this many seconds for the channel to be ready

        Raises:
            NodeRpcConnectionError: If the channel cannot be established
        """
        pass

    @abstractmethod
    def invoke(self, credential: str, did: str, timeout: float) -> RpcReply:
        """
        Send one signed credential and wait for the reply.

        Args:
            credential: Signed request string
            did: Caller identity, sent as call metadata
            timeout: Deadline for this call in seconds

        Returns:
            The endpoint's reply

        Raises:
            NodeRpcTimeoutError: If the deadline is exceeded
            NodeRpcConnectionError: If the endpoint is unavailable
            NodeRpcTransportError: For other transmission failures
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the channel. Calling it more than once is harmless."""
        pass

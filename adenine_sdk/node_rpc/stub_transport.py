"""
In-process transport for the Node RPC service.

StubTransport plays the endpoint: it verifies each request credential with
the shared API key, dispatches on (chain, method) to a registered handler,
and signs the handler's return value as the reply. It is used for tests and
offline development.
"""
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .envelope import CallDescriptor, decode_request, encode_reply
from .transport import NodeRpcTransport, RpcReply
from .exceptions import Chain, NodeRpcConnectionError, NodeRpcError

# Configure logger
logger = logging.getLogger(__name__)

# handler(params, network) -> result
Handler = Callable[[Any, str], Any]


class StubTransport(NodeRpcTransport):
    """
    A loopback implementation of the Node RPC transport.

    Unknown (chain, method) pairs and requests that fail verification are
    answered with ``status=False``, the way the service reports "no data".
    """

    def __init__(self, api_key: Union[str, bytes], echo: bool = True):
        """
        Initialize the stub transport.

        Args:
            api_key: Secret the simulated endpoint shares with its callers
            echo: Echo network, chain and method in replies
        """
        self.api_key = api_key
        self.echo = echo
        self.initialized = False
        self.target: Optional[str] = None
        self.handlers: Dict[Tuple[str, str], Handler] = {}
        self.calls: List[Tuple[str, CallDescriptor]] = []
        self._calls_lock = threading.Lock()

    def register(self, chain: Union[Chain, str], method: str, handler: Union[Handler, Any]) -> None:
        """
        Register the answer for ``method`` on ``chain``.

        Args:
            chain: Chain the handler serves
            method: Remote procedure name
            handler: Callable taking (params, network), or a constant result
        """
        key = (chain.value if isinstance(chain, Chain) else chain, method)
        self.handlers[key] = handler if callable(handler) else (lambda _p, _n, value=handler: value)

    def initialize(
        self,
        host: str,
        port: int,
        production: bool = False,
        verify_ssl: bool = False,
        connect_timeout: Optional[float] = None
    ) -> None:
        """Mark the stub as connected to ``host:port`` (nothing is opened)."""
        self.target = f"{host}:{port}"
        self.initialized = True
        logger.debug(f"Initialized stub transport for {self.target}")

    def invoke(self, credential: str, did: str, timeout: float) -> RpcReply:
        """
        Answer one call in-process.

        Raises:
            NodeRpcConnectionError: If the stub is not initialized
        """
        if not self.initialized:
            raise NodeRpcConnectionError("Stub transport not initialized")

        try:
            descriptor = decode_request(self.api_key, credential)
        except NodeRpcError as e:
            logger.debug(f"StubTransport rejected request: {e}")
            return RpcReply(status=False, status_message=f"Unauthorized: {e}")

        with self._calls_lock:
            self.calls.append((did, descriptor))

        handler = self.handlers.get((descriptor.chain, descriptor.method))
        if handler is None:
            logger.debug(f"StubTransport has no handler for {descriptor.chain}/{descriptor.method}")
            return RpcReply(status=False, status_message=f"Method '{descriptor.method}' not available")

        result = handler(descriptor.params, descriptor.network)
        output = encode_reply(self.api_key, result, descriptor if self.echo else None)
        return RpcReply(output=output, status=True, status_message="Successfully called the method")

    def close(self) -> None:
        """Close the stub transport."""
        self.initialized = False

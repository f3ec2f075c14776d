"""
Node RPC client implementation for the Adenine SDK.

This module provides a client for querying blockchain nodes through the
Node RPC service. Every call is signed with the caller's API key and every
reply is verified with it before its result is used.
"""
import os
import time
import random
import logging
from typing import Optional, Dict, Any, Union

from web3 import Web3

from .envelope import CallDescriptor, NO_RESULT, encode_request, decode_reply
from .exceptions import Chain, NodeRpcConnectionError, NodeRpcShapeError
from .transport import NodeRpcTransport
from .grpc_transport import GrpcTransport
from ._rate_limited_log import rate_limited_log

logger = logging.getLogger(__name__)

DEFAULT_RPC_TIMEOUT = 30.0
DEFAULT_MAX_RETRIES = 2


def hex_to_decimal(value: str) -> str:
    """
    Render a 0x-prefixed hex quantity as a decimal string.

    Args:
        value: Hex string such as "0x1a"

    Returns:
        Decimal string such as "26"

    Raises:
        NodeRpcShapeError: If ``value`` is not a hex quantity
    """
    if not isinstance(value, str):
        raise NodeRpcShapeError(f"Expected a hex string, got {type(value).__name__}")
    try:
        return str(Web3.to_int(hexstr=value))
    except (TypeError, ValueError) as e:
        raise NodeRpcShapeError(f"Invalid hex quantity {value!r}: {e}") from e


def _chain_name(chain: Union[Chain, str]) -> str:
    return chain.value if isinstance(chain, Chain) else chain


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid {name} value: {raw}, using {default}")
        return default


class NodeRpc:
    """
    Client for the Node RPC service.

    One instance owns one channel to one endpoint. The API key and caller
    DID are passed per call, so a single instance can serve several
    callers, including from several threads.
    """

    def __init__(
        self,
        host: str,
        port: int,
        production: bool = False,
        *,
        verify_ssl: bool = False,
        timeout: Optional[float] = None,
        token_ttl: Optional[int] = None,
        connect_timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_base: float = 0.5,
        verify_echo: bool = True,
        transport: Optional[NodeRpcTransport] = None
    ):
        """
        Initialize the Node RPC client.

        Args:
            host: Endpoint host name
            port: Endpoint port
            production: Use an encrypted channel (certificate identity not checked
                unless ``verify_ssl`` is set)
            verify_ssl: Validate the endpoint's certificate on encrypted channels
            timeout: Per-call deadline in seconds (default: ADENINE_RPC_TIMEOUT or 30)
            token_ttl: Credential lifetime in seconds (default: ADENINE_TOKEN_TTL or 60)
            connect_timeout: If set, fail fast when the endpoint is not ready in time
            max_retries: Retries when the endpoint is unavailable (default: ADENINE_MAX_RETRIES or 2)
            backoff_base: Base delay for exponential backoff in seconds
            verify_echo: Reject replies whose echoed network/chain/method differ from the request
            transport: Transport to use instead of gRPC

        Raises:
            NodeRpcConnectionError: If the channel cannot be established
        """
        self.host = host
        self.port = port
        self.production = production
        self.timeout = timeout if timeout is not None else _env_float("ADENINE_RPC_TIMEOUT", DEFAULT_RPC_TIMEOUT)
        self.token_ttl = token_ttl
        self.max_retries = (
            max_retries if max_retries is not None
            else int(_env_float("ADENINE_MAX_RETRIES", DEFAULT_MAX_RETRIES))
        )
        self.backoff_base = backoff_base
        self.verify_echo = verify_echo

        self.transport = transport or GrpcTransport()
        self.transport.initialize(
            host, port,
            production=production,
            verify_ssl=verify_ssl,
            connect_timeout=connect_timeout
        )
        logger.debug(f"Initialized Node RPC client for {host}:{port} (production={production})")

    def close(self) -> None:
        """Close the underlying channel."""
        self.transport.close()

    def __enter__(self):
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager, ensuring channel closure."""
        self.close()

    def rpc_method(
        self,
        api_key: str,
        did: str,
        network: str,
        chain: Union[Chain, str],
        method: str,
        params: Any
    ) -> Any:
        """
        Call a remote procedure through the signed envelope.

        A fresh credential is signed for every attempt. Only an unavailable
        endpoint is retried; a timed-out call is reported at once.

        Args:
            api_key: Secret shared with the endpoint
            did: Caller identity, sent as call metadata
            network: Network name
            chain: Target chain
            method: Remote procedure name
            params: Mapping, sequence or scalar parameters

        Returns:
            The verified result, or ``NO_RESULT`` if the endpoint had none

        Raises:
            NodeRpcEncodingError: If params cannot be serialized
            NodeRpcConnectionError: If the endpoint stays unavailable
            NodeRpcTransportError: If the call fails in transit
            NodeRpcAuthenticationError: If the reply fails verification
            NodeRpcShapeError: If the reply lacks the expected fields
        """
        descriptor = CallDescriptor(network=network, chain=_chain_name(chain), method=method, params=params)

        attempt = 0
        while True:
            if attempt > 0:
                delay = self.backoff_base * (2 ** (attempt - 1))
                # Add up to 10% jitter
                actual_delay = delay + delay * random.uniform(0, 0.1)
                logger.info(f"Retrying '{method}' (attempt {attempt + 1}/{self.max_retries + 1}) in {actual_delay:.2f}s")
                time.sleep(actual_delay)

            credential = encode_request(api_key, descriptor, ttl=self.token_ttl)
            try:
                reply = self.transport.invoke(credential, did, timeout=self.timeout)
                break
            except NodeRpcConnectionError as e:
                if attempt >= self.max_retries:
                    logger.error(f"'{method}' on {descriptor.chain} failed after {attempt + 1} attempts: {e}")
                    raise
                logger.warning(f"Node RPC endpoint unavailable for '{method}': {e}")
                attempt += 1

        if not reply.status:
            rate_limited_log(
                f"No result for '{method}' on {descriptor.chain}/{network}: {reply.status_message or 'no status message'}",
                level="info",
                logger_instance=logger
            )

        result = decode_reply(
            api_key, reply.output, reply.status,
            expected=descriptor if self.verify_echo else None
        )
        logger.debug(f"'{method}' on {descriptor.chain}/{network} completed")
        return result

    # Common methods for mainchain, did, token and eth sidechains

    def get_current_node_state(self, api_key: str, did: str, network: str,
                               chain: Union[Chain, str]) -> Optional[Dict[str, Any]]:
        """Node state of a mainchain, did or token node (``getnodestate``)."""
        result = self.rpc_method(api_key, did, network, chain, "getnodestate", {})
        if result is NO_RESULT:
            return None
        return result

    def get_current_height(self, api_key: str, did: str, network: str,
                           chain: Union[Chain, str]) -> Optional[str]:
        """
        Current block height as a decimal string.

        The eth sidechain reports a hex quantity through ``eth_blockNumber``;
        the other chains report it in their node state.
        """
        if chain == Chain.ETH:
            height_hex = self.rpc_method(api_key, did, network, chain, "eth_blockNumber", {})
            if height_hex is NO_RESULT:
                return None
            return hex_to_decimal(height_hex)

        node_state = self.get_current_node_state(api_key, did, network, chain)
        if node_state is None:
            return None
        if not isinstance(node_state, dict) or "height" not in node_state:
            raise NodeRpcShapeError("Node state has no 'height' field")
        height = node_state["height"]
        if isinstance(height, bool) or not isinstance(height, (int, float)):
            raise NodeRpcShapeError(f"Node state height is not a number: {height!r}")
        return f"{height:.0f}"

    def get_block_info(self, api_key: str, did: str, network: str,
                       chain: Union[Chain, str], height: str) -> Optional[Dict[str, Any]]:
        """
        Block at ``height`` (a decimal string).

        Args:
            api_key: Secret shared with the endpoint
            did: Caller identity
            network: Network name
            chain: Target chain
            height: Decimal block height

        Returns:
            The block object as returned by the node, or None if there is none
        """
        if chain == Chain.ETH:
            try:
                height_int = int(height)
            except (TypeError, ValueError) as e:
                raise ValueError(f"Block height must be a decimal integer, got {height!r}") from e
            params = [Web3.to_hex(height_int), True]
            result = self.rpc_method(api_key, did, network, chain, "eth_getBlockByNumber", params)
        else:
            result = self.rpc_method(api_key, did, network, chain, "getblockbyheight", {"height": height})
        if result is NO_RESULT:
            return None
        return result

    def get_current_block_info(self, api_key: str, did: str, network: str,
                               chain: Union[Chain, str]) -> Optional[Dict[str, Any]]:
        """Block at the current height; two calls, the second using the first's result."""
        height = self.get_current_height(api_key, did, network, chain)
        if height is None:
            return None
        return self.get_block_info(api_key, did, network, chain, height)

    def get_current_balance(self, api_key: str, did: str, network: str,
                            chain: Union[Chain, str], address: str) -> Union[str, Dict[str, str], None]:
        """
        Balance received by ``address``.

        Returns:
            Decimal string for eth (wei) and the other single-asset chains,
            a mapping of asset id to amount string for the token sidechain,
            or None if the node has no result
        """
        if chain == Chain.ETH:
            if not Web3.is_address(address):
                raise ValueError(f"Invalid eth address: {address}")
            balance_hex = self.rpc_method(api_key, did, network, chain, "eth_getBalance", [address, "latest"])
            if balance_hex is NO_RESULT:
                return None
            return hex_to_decimal(balance_hex)

        result = self.rpc_method(api_key, did, network, chain, "getreceivedbyaddress", {"address": address})
        if result is NO_RESULT:
            return None
        if chain == Chain.TOKEN:
            if not isinstance(result, dict):
                raise NodeRpcShapeError("Token balance must be a mapping of asset to amount")
            return {str(asset): str(amount) for asset, amount in result.items()}
        if isinstance(result, bool) or not isinstance(result, (str, int, float)):
            raise NodeRpcShapeError(f"Balance must be a string or number, got {type(result).__name__}")
        return str(result)

"""
gRPC transport for the Node RPC service.

Plaintext channels are used outside production. In production the channel
is encrypted; by default the endpoint's certificate identity is not
validated, since authenticity comes from the signed envelope rather than
from TLS. The certificate's validity dates are still enforced by gRPC, so a
presented certificate that has expired or is not yet valid is refused up
front with NodeRpcConnectionError.
"""
import os
import ssl
import logging
from datetime import datetime, timezone
from typing import Optional, List, Tuple

import certifi
import grpc
from cryptography import x509
from cryptography.x509.oid import NameOID

from .proto import Request, NodeRpcStub
from .transport import NodeRpcTransport, RpcReply
from .exceptions import (
    NodeRpcConnectionError, NodeRpcTransportError, NodeRpcTimeoutError
)
from ._rate_limited_log import rate_limited_log

# Configure logger
logger = logging.getLogger(__name__)

DEFAULT_CERT_FETCH_TIMEOUT = 10.0

_CHANNEL_OPTIONS: List[Tuple[str, int]] = [
    # Keepalive settings
    ('grpc.keepalive_time_ms', 30000),
    ('grpc.keepalive_timeout_ms', 10000),
    ('grpc.http2.max_pings_without_data', 0),
    ('grpc.http2.min_time_between_pings_ms', 10000),

    # Block responses can be large
    ('grpc.max_send_message_length', 10 * 1024 * 1024),
    ('grpc.max_receive_message_length', 10 * 1024 * 1024),
]


def _certificate_name(cert: x509.Certificate) -> Optional[str]:
    """
    Pick a host name the given certificate is valid for.

    Prefers the first DNS subject alternative name, then the common name.
    Wildcard names are turned into a concrete label.
    """
    name = None
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        dns_names = san.value.get_values_for_type(x509.DNSName)
        if dns_names:
            name = dns_names[0]
    except x509.ExtensionNotFound:
        pass
    if name is None:
        common_names = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        if common_names:
            name = common_names[0].value
    if name and name.startswith("*."):
        name = "node" + name[1:]
    return name


def _check_validity_window(cert: x509.Certificate, target: str) -> None:
    """
    Refuse a certificate outside its validity dates.

    gRPC enforces the dates of a pinned certificate even when it is trusted
    explicitly.
    """
    now = datetime.now(tz=timezone.utc)
    if now > cert.not_valid_after_utc:
        raise NodeRpcConnectionError(
            f"TLS certificate presented by {target} has expired "
            f"(not valid after {cert.not_valid_after_utc.isoformat()})"
        )
    if now < cert.not_valid_before_utc:
        raise NodeRpcConnectionError(
            f"TLS certificate presented by {target} is not yet valid "
            f"(not valid before {cert.not_valid_before_utc.isoformat()})"
        )


class GrpcTransport(NodeRpcTransport):
    """
    gRPC-based transport using the node_rpc protocol buffers.
    """

    def __init__(self):
        """Initialize the gRPC transport."""
        self.channel: Optional[grpc.Channel] = None
        self.stub: Optional[NodeRpcStub] = None
        self.target: Optional[str] = None

    def _fetch_peer_certificate(self, host: str, port: int, timeout: Optional[float]) -> bytes:
        """
        Fetch the certificate the endpoint presents, without validating it.

        Raises:
            NodeRpcConnectionError: If the endpoint cannot be reached over TLS
        """
        try:
            pem = ssl.get_server_certificate(
                (host, port), timeout=timeout or DEFAULT_CERT_FETCH_TIMEOUT
            )
        except (OSError, ssl.SSLError) as e:
            raise NodeRpcConnectionError(f"Failed to fetch TLS certificate from {host}:{port}: {e}") from e
        return pem.encode("ascii")

    def _unverified_credentials(
        self, host: str, port: int, timeout: Optional[float]
    ) -> Tuple[grpc.ChannelCredentials, List[Tuple[str, object]]]:
        """
        Credentials that trust whatever certificate the endpoint presents.

        Raises:
            NodeRpcConnectionError: If the certificate cannot be fetched or is
                outside its validity dates
        """
        peer_pem = self._fetch_peer_certificate(host, port, timeout)

        name = None
        try:
            cert = x509.load_pem_x509_certificate(peer_pem)
        except ValueError as e:
            logger.warning(f"Could not parse TLS certificate from {host}:{port}: {e}")
        else:
            _check_validity_window(cert, f"{host}:{port}")
            name = _certificate_name(cert)

        with open(certifi.where(), 'rb') as f:
            system_roots = f.read()
        creds = grpc.ssl_channel_credentials(root_certificates=system_roots + b'\n' + peer_pem)

        options: List[Tuple[str, object]] = []
        if name and name != host:
            options.append(('grpc.ssl_target_name_override', name))
        rate_limited_log(
            f"TLS channel to {host}:{port} does not verify the endpoint's certificate identity",
            level="warning",
            logger_instance=logger
        )
        return creds, options

    def _verified_credentials(self) -> grpc.ChannelCredentials:
        """
        Credentials that validate the endpoint's certificate.

        ADENINE_NODE_RPC_CA replaces the system roots unless
        ADENINE_NODE_RPC_APPEND_CA=1, in which case it is appended to them.
        """
        ca_path = os.environ.get("ADENINE_NODE_RPC_CA")
        strict_ca = os.environ.get("ADENINE_NODE_RPC_STRICT_CA") == "1"
        append_ca = os.environ.get("ADENINE_NODE_RPC_APPEND_CA") == "1"

        if not ca_path:
            return grpc.ssl_channel_credentials()

        try:
            with open(ca_path, 'rb') as f:
                ca_data = f.read()
        except OSError as e:
            logger.warning(f"Failed to load custom CA certificate from {ca_path}: {e}")
            if strict_ca:
                raise NodeRpcConnectionError(f"Failed to load custom CA certificate from {ca_path}: {e}") from e
            return grpc.ssl_channel_credentials()

        if append_ca:
            with open(certifi.where(), 'rb') as f:
                system_ca_data = f.read()
            logger.info(f"Using custom CA certificate from {ca_path} appended to system roots")
            return grpc.ssl_channel_credentials(root_certificates=system_ca_data + b'\n' + ca_data)

        logger.info(f"Using custom CA certificate from {ca_path} (replacing system roots)")
        return grpc.ssl_channel_credentials(root_certificates=ca_data)

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
        self.target = f"{host}:{port}"

        if not production:
            rate_limited_log(
                f"Creating insecure gRPC channel to {self.target} (not recommended for production)",
                level="warning",
                logger_instance=logger
            )
            self.channel = grpc.insecure_channel(self.target, options=_CHANNEL_OPTIONS)
        else:
            if verify_ssl:
                creds = self._verified_credentials()
                extra_options: List[Tuple[str, object]] = []
            else:
                creds, extra_options = self._unverified_credentials(host, port, connect_timeout)
            self.channel = grpc.secure_channel(self.target, creds, options=_CHANNEL_OPTIONS + extra_options)

        self.stub = NodeRpcStub(self.channel)

        if connect_timeout is not None:
            try:
                grpc.channel_ready_future(self.channel).result(timeout=connect_timeout)
            except grpc.FutureTimeoutError as e:
                self.close()
                raise NodeRpcConnectionError(
                    f"Node RPC endpoint {host}:{port} not reachable within {connect_timeout}s"
                ) from e

        logger.debug(f"Initialized gRPC transport for {self.target}")

    def invoke(self, credential: str, did: str, timeout: float) -> RpcReply:
        """
        Call ``RpcMethod`` with the signed credential.

        Args:
            credential: Signed request string
            did: Caller identity, sent as ``did`` metadata
            timeout: Deadline for this call in seconds

        Returns:
            The endpoint's reply
        """
        if self.stub is None:
            raise NodeRpcConnectionError("gRPC transport is not initialized or already closed")

        metadata = (("did", did),) if did else None
        try:
            response = self.stub.RpcMethod(Request(input=credential), timeout=timeout, metadata=metadata)
        except grpc.RpcError as e:
            raise self._map_rpc_error(e, timeout) from e

        return RpcReply(
            output=response.output,
            status=response.status,
            status_message=response.status_message
        )

    def _map_rpc_error(self, error: grpc.RpcError, timeout: float) -> Exception:
        code = error.code() if callable(getattr(error, "code", None)) else None
        details = error.details() if callable(getattr(error, "details", None)) else str(error)
        code_name = code.name if code is not None else "UNKNOWN"

        if code == grpc.StatusCode.DEADLINE_EXCEEDED:
            return NodeRpcTimeoutError(
                f"Node RPC call to {self.target} timed out after {timeout}s", code_name, details
            )
        if code == grpc.StatusCode.UNAVAILABLE:
            return NodeRpcConnectionError(f"Node RPC service unavailable at {self.target}: {details}")
        return NodeRpcTransportError(f"gRPC error from {self.target}: {code_name} - {details}", code_name, details)

    def close(self) -> None:
        """Close the gRPC channel."""
        channel, self.channel, self.stub = self.channel, None, None
        if channel is not None:
            channel.close()
            logger.debug("gRPC channel closed.")

"""
Tests for plaintext/encrypted channel creation in the gRPC transport.
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch, MagicMock

import grpc
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from adenine_sdk.node_rpc import grpc_transport
from adenine_sdk.node_rpc.grpc_transport import GrpcTransport, _certificate_name
from adenine_sdk.node_rpc.exceptions import (
    NodeRpcConnectionError, NodeRpcTimeoutError, NodeRpcTransportError
)


def _self_signed_pem(common_name, dns_names=(), valid_from=-1, valid_days=30):
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now + timedelta(days=valid_from))
        .not_valid_after(now + timedelta(days=valid_from + valid_days))
    )
    if dns_names:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(n) for n in dns_names]), critical=False
        )
    cert = builder.sign(key, hashes.SHA256())
    return cert.public_bytes(serialization.Encoding.PEM).decode("ascii")


def _load(pem):
    return x509.load_pem_x509_certificate(pem.encode("ascii"))


class _FakeRpcError(grpc.RpcError):
    def __init__(self, code, details):
        self._code = code
        self._details = details

    def code(self):
        return self._code

    def details(self):
        return self._details


class TestChannelSelection:
    """Plaintext outside production, encrypted in production."""

    def test_non_production_uses_insecure_channel(self):
        with patch.object(grpc_transport.grpc, "insecure_channel") as mock_insecure, \
             patch.object(grpc_transport.grpc, "secure_channel") as mock_secure:
            transport = GrpcTransport()
            transport.initialize("node.example.com", 8001, production=False)

            mock_insecure.assert_called_once()
            assert mock_insecure.call_args.args[0] == "node.example.com:8001"
            mock_secure.assert_not_called()

    def test_production_trusts_presented_certificate(self):
        pem = _self_signed_pem("node.example.org", dns_names=["node.example.org"])
        with patch.object(grpc_transport.ssl, "get_server_certificate", return_value=pem) as mock_fetch, \
             patch.object(grpc_transport.grpc, "ssl_channel_credentials") as mock_creds, \
             patch.object(grpc_transport.grpc, "secure_channel") as mock_secure:
            transport = GrpcTransport()
            transport.initialize("10.0.0.5", 443, production=True)

            mock_fetch.assert_called_once()
            assert mock_fetch.call_args.args[0] == ("10.0.0.5", 443)
            roots = mock_creds.call_args.kwargs["root_certificates"]
            assert roots.endswith(pem.encode("ascii"))

            target, _creds = mock_secure.call_args.args[:2]
            assert target == "10.0.0.5:443"
            options = mock_secure.call_args.kwargs["options"]
            assert ("grpc.ssl_target_name_override", "node.example.org") in options

    def test_no_override_when_name_matches_host(self):
        pem = _self_signed_pem("node.example.org", dns_names=["node.example.org"])
        with patch.object(grpc_transport.ssl, "get_server_certificate", return_value=pem), \
             patch.object(grpc_transport.grpc, "ssl_channel_credentials"), \
             patch.object(grpc_transport.grpc, "secure_channel") as mock_secure:
            GrpcTransport().initialize("node.example.org", 443, production=True)

            option_names = [name for name, _ in mock_secure.call_args.kwargs["options"]]
            assert "grpc.ssl_target_name_override" not in option_names

    def test_certificate_fetch_failure_is_connection_error(self):
        with patch.object(grpc_transport.ssl, "get_server_certificate",
                          side_effect=ConnectionRefusedError("refused")):
            with pytest.raises(NodeRpcConnectionError, match="TLS certificate"):
                GrpcTransport().initialize("node.example.com", 443, production=True)

    @pytest.mark.parametrize("valid_from,valid_days,reason", [
        (-30, 10, "has expired"),
        (5, 30, "not yet valid"),
    ])
    def test_certificate_outside_validity_dates_is_refused(self, valid_from, valid_days, reason):
        pem = _self_signed_pem("node.example.org", dns_names=["node.example.org"],
                               valid_from=valid_from, valid_days=valid_days)
        with patch.object(grpc_transport.ssl, "get_server_certificate", return_value=pem), \
             patch.object(grpc_transport.grpc, "secure_channel") as mock_secure:
            with pytest.raises(NodeRpcConnectionError, match=reason):
                GrpcTransport().initialize("10.0.0.5", 443, production=True)

            mock_secure.assert_not_called()

    def test_verify_ssl_uses_system_roots(self):
        with patch.object(grpc_transport.ssl, "get_server_certificate") as mock_fetch, \
             patch.object(grpc_transport.grpc, "ssl_channel_credentials") as mock_creds, \
             patch.object(grpc_transport.grpc, "secure_channel") as mock_secure:
            GrpcTransport().initialize("node.example.com", 443, production=True, verify_ssl=True)

            mock_fetch.assert_not_called()
            mock_creds.assert_called_once_with()
            mock_secure.assert_called_once()

    def test_custom_ca_replaces_roots(self, tmp_path, monkeypatch):
        ca_file = tmp_path / "ca.pem"
        ca_file.write_bytes(b"-----BEGIN CERTIFICATE-----\nca\n-----END CERTIFICATE-----\n")
        monkeypatch.setenv("ADENINE_NODE_RPC_CA", str(ca_file))
        with patch.object(grpc_transport.grpc, "ssl_channel_credentials") as mock_creds, \
             patch.object(grpc_transport.grpc, "secure_channel"):
            GrpcTransport().initialize("node.example.com", 443, production=True, verify_ssl=True)

            mock_creds.assert_called_once_with(root_certificates=ca_file.read_bytes())

    def test_custom_ca_appended_to_roots(self, tmp_path, monkeypatch):
        ca_file = tmp_path / "ca.pem"
        ca_file.write_bytes(b"custom-ca")
        monkeypatch.setenv("ADENINE_NODE_RPC_CA", str(ca_file))
        monkeypatch.setenv("ADENINE_NODE_RPC_APPEND_CA", "1")
        with patch.object(grpc_transport.grpc, "ssl_channel_credentials") as mock_creds, \
             patch.object(grpc_transport.grpc, "secure_channel"):
            GrpcTransport().initialize("node.example.com", 443, production=True, verify_ssl=True)

            roots = mock_creds.call_args.kwargs["root_certificates"]
            assert roots.endswith(b"\ncustom-ca")
            assert len(roots) > len(b"custom-ca") + 1

    def test_missing_custom_ca_strict(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ADENINE_NODE_RPC_CA", str(tmp_path / "missing.pem"))
        monkeypatch.setenv("ADENINE_NODE_RPC_STRICT_CA", "1")
        with pytest.raises(NodeRpcConnectionError, match="custom CA"):
            GrpcTransport().initialize("node.example.com", 443, production=True, verify_ssl=True)

    def test_missing_custom_ca_lenient(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ADENINE_NODE_RPC_CA", str(tmp_path / "missing.pem"))
        with patch.object(grpc_transport.grpc, "ssl_channel_credentials") as mock_creds, \
             patch.object(grpc_transport.grpc, "secure_channel"):
            GrpcTransport().initialize("node.example.com", 443, production=True, verify_ssl=True)

            mock_creds.assert_called_once_with()


class TestCertificateName:
    """Tests for picking the name to validate the peer certificate against."""

    def test_prefers_dns_san(self):
        pem = _self_signed_pem("ignored-cn", dns_names=["rpc.example.net", "alt.example.net"])
        assert _certificate_name(_load(pem)) == "rpc.example.net"

    def test_falls_back_to_common_name(self):
        assert _certificate_name(_load(_self_signed_pem("node.local"))) == "node.local"

    def test_wildcard_made_concrete(self):
        pem = _self_signed_pem("x", dns_names=["*.example.com"])
        assert _certificate_name(_load(pem)) == "node.example.com"


class TestInvoke:
    """Tests for calling RpcMethod through the stub."""

    def _transport(self, side_effect=None, response=None):
        transport = GrpcTransport()
        with patch.object(grpc_transport.grpc, "insecure_channel", return_value=MagicMock()):
            transport.initialize("localhost", 8001)
        transport.stub = MagicMock()
        if side_effect is not None:
            transport.stub.RpcMethod.side_effect = side_effect
        else:
            transport.stub.RpcMethod.return_value = response
        return transport

    def test_sends_credential_did_and_deadline(self):
        response = MagicMock(output="signed", status=True, status_message="ok")
        transport = self._transport(response=response)

        reply = transport.invoke("credential", "did:elastos:abc", timeout=3)

        request = transport.stub.RpcMethod.call_args.args[0]
        assert request.input == "credential"
        kwargs = transport.stub.RpcMethod.call_args.kwargs
        assert kwargs["timeout"] == 3
        assert kwargs["metadata"] == (("did", "did:elastos:abc"),)
        assert (reply.output, reply.status, reply.status_message) == ("signed", True, "ok")

    def test_empty_did_sends_no_metadata(self):
        transport = self._transport(response=MagicMock(output="", status=False, status_message=""))
        transport.invoke("credential", "", timeout=3)
        assert transport.stub.RpcMethod.call_args.kwargs["metadata"] is None

    @pytest.mark.parametrize("code,error_class", [
        (grpc.StatusCode.DEADLINE_EXCEEDED, NodeRpcTimeoutError),
        (grpc.StatusCode.UNAVAILABLE, NodeRpcConnectionError),
        (grpc.StatusCode.PERMISSION_DENIED, NodeRpcTransportError),
        (grpc.StatusCode.INTERNAL, NodeRpcTransportError),
    ])
    def test_status_codes_map_to_errors(self, code, error_class):
        transport = self._transport(side_effect=_FakeRpcError(code, "details"))
        with pytest.raises(error_class):
            transport.invoke("credential", "did", timeout=1)

    def test_close_is_idempotent(self):
        channel = MagicMock()
        transport = GrpcTransport()
        with patch.object(grpc_transport.grpc, "insecure_channel", return_value=channel):
            transport.initialize("localhost", 8001)

        transport.close()
        transport.close()

        channel.close.assert_called_once()
        with pytest.raises(NodeRpcConnectionError):
            transport.invoke("credential", "did", timeout=1)

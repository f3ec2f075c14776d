"""
Pytest fixtures for the Adenine SDK tests.
"""
import types

import pytest

from adenine_sdk.node_rpc import client as client_module
from adenine_sdk.node_rpc import NodeRpc, StubTransport
from adenine_sdk.node_rpc._rate_limited_log import reset_rate_limited_log

API_KEY = "test-api-key-0123456789abcdef0123456789abcdef"
OTHER_API_KEY = "other-api-key-fedcba9876543210fedcba9876543210"
DID = "did:elastos:iouMSXKHNcwdbPzb58pXpmGBDBxrMzfq2c"
NETWORK = "testnet"
ETH_ADDRESS = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"


# Make retry backoff instantaneous without touching time.sleep elsewhere
@pytest.fixture(autouse=True)
def _fast_backoff(monkeypatch):
    monkeypatch.setattr(client_module, "time", types.SimpleNamespace(sleep=lambda *_a, **_kw: None))


@pytest.fixture(autouse=True)
def _reset_log_limits():
    reset_rate_limited_log()
    yield
    reset_rate_limited_log()


@pytest.fixture
def stub_transport():
    """A loopback endpoint sharing API_KEY with the client."""
    return StubTransport(API_KEY)


@pytest.fixture
def node_rpc(stub_transport):
    """A NodeRpc client wired to the stub transport."""
    client = NodeRpc("localhost", 8001, transport=stub_transport, max_retries=0)
    yield client
    client.close()

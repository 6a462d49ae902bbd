"""
Pytest fixtures for the EthQuery SDK tests.
"""
import pytest
from eth_account import Account

from ethquery_sdk import QueryClient
from ethquery_sdk._rate_limited_log import reset_rate_limits
from ethquery_sdk.config import NetworkConfig
from ethquery_sdk.models import EnvelopeKind
from ethquery_sdk.rpc import StubTransport
from tests.test_helpers import MAINNET_CHAIN_ID, TEST_PRIV_KEY, make_transaction

# Constants for testing
TEST_RPC_URL = "https://rpc.example.com"


@pytest.fixture(autouse=True)
def _clean_module_state(monkeypatch):
    """Start every test with empty caches and no endpoint overrides in the environment."""
    for name in ("ETHQUERY_RPC_TIMEOUT", "ETHQUERY_INSECURE_RPC", "MAINNET_RPC_URL", "SEPOLIA_RPC_URL"):
        monkeypatch.delenv(name, raising=False)
    reset_rate_limits()
    NetworkConfig._networks_cache = None
    yield
    NetworkConfig._networks_cache = None


@pytest.fixture
def mock_account():
    """Create a deterministic test account"""
    return Account.from_key(TEST_PRIV_KEY)


@pytest.fixture
def stub_transport():
    """A transport answering eth_chainId with mainnet and nothing else."""
    return StubTransport({"eth_chainId": hex(MAINNET_CHAIN_ID)})


@pytest.fixture
def client(stub_transport):
    return QueryClient(stub_transport)


@pytest.fixture(params=list(EnvelopeKind), ids=lambda kind: kind.value)
def signed_tx(request):
    """One signed transaction of every envelope kind."""
    return make_transaction(request.param)

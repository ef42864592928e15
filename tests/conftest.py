"""
Pytest fixtures for the YieldPool SDK tests.
"""
import pytest
from unittest.mock import MagicMock

from eth_account import Account

from yieldpool_sdk._rate_limited_log import reset_rate_limited_log
from yieldpool_sdk.config import NetworkConfig
from yieldpool_sdk.connector import ChainConnector
from yieldpool_sdk.models import Address
from yieldpool_sdk.signer.local import LocalSigner

from tests.test_helpers import (
    FakeEth, SlowNode, fake_w3, create_test_client, TEST_CONTRACT, TEST_PRIV_KEY, TEST_RPC_URL
)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep developer environment variables out of the tests."""
    for name in (
        "YIELDPOOL_RPC_URL", "YIELDPOOL_RPC_TIMEOUT", "YIELDPOOL_POLL_INTERVAL",
        "YIELDPOOL_MAX_POLL_INTERVAL", "YIELDPOOL_BACKOFF_FACTOR",
        "YIELDPOOL_RECEIPT_TIMEOUT", "YIELDPOOL_GAS_MULTIPLIER", "YIELDPOOL_INSECURE_RPC",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _fresh_log_cache():
    reset_rate_limited_log()
    yield
    reset_rate_limited_log()


@pytest.fixture(autouse=True)
def _reset_network_cache():
    NetworkConfig._networks_cache = None
    yield
    NetworkConfig._networks_cache = None


@pytest.fixture
def fake_eth():
    """A fake node whose signer pending nonce starts at 5"""
    return FakeEth(pending_nonce=5)


@pytest.fixture
def connector(fake_eth):
    return ChainConnector(TEST_RPC_URL, w3=fake_w3(fake_eth))


@pytest.fixture
def slow_node_url():
    """URL of a local node that takes seconds to answer each request"""
    with SlowNode(stall=3) as url:
        yield url


@pytest.fixture
def mock_w3():
    """A bare mock web3 for error-path tests"""
    w3 = MagicMock()
    w3.eth.gas_price = 1_000_000_000
    w3.eth.chain_id = 11155111
    w3.eth.get_transaction_count.return_value = 12
    w3.eth.estimate_gas.return_value = 150_000
    return w3


@pytest.fixture
def mock_account():
    """Create a deterministic test account"""
    return Account.from_key(TEST_PRIV_KEY)


@pytest.fixture
def signer():
    return LocalSigner(TEST_PRIV_KEY)


@pytest.fixture
def signer_address(mock_account):
    return Address.from_hex(mock_account.address)


@pytest.fixture
def contract_address():
    return Address.from_hex(TEST_CONTRACT)


@pytest.fixture
def client(fake_eth):
    return create_test_client(fake_eth)

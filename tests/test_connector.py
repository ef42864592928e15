"""
Tests for ChainConnector error mapping and result validation.
"""
import time

import pytest
import requests
from unittest.mock import MagicMock
from web3.exceptions import ContractLogicError, TransactionNotFound

from yieldpool_sdk.connector import ChainConnector, DeadlineSession, _request_budget
from yieldpool_sdk.context import CallContext
from yieldpool_sdk.exceptions import (
    ConnectorError, ConnectorUnreachableError, OperationCancelledError
)
from yieldpool_sdk.models import Address
from tests.test_helpers import TEST_RPC_URL, make_receipt


@pytest.fixture
def mock_connector(mock_w3):
    return ChainConnector(TEST_RPC_URL, w3=mock_w3)


def test_builds_http_provider_without_retries():
    connector = ChainConnector("https://rpc.example.com", timeout=7)
    adapter = connector.session.get_adapter("https://rpc.example.com")
    assert adapter.max_retries.total == 0
    assert connector.w3.provider.endpoint_uri == "https://rpc.example.com"


def test_suggest_gas_price(mock_connector):
    assert mock_connector.suggest_gas_price() == 1_000_000_000


def test_pending_nonce_uses_pending_tag(connector, fake_eth, signer_address):
    assert connector.pending_nonce(signer_address) == 5
    address, tag = fake_eth.nonce_queries[-1]
    assert tag == "pending"
    assert address == signer_address.checksum


def test_estimate_gas(connector, fake_eth):
    call = {"to": "0x1234567890123456789012345678901234567890", "data": "0x"}
    assert connector.estimate_gas(call) == 60_000
    assert fake_eth.estimate_calls == [call]


def test_connection_error_is_unreachable(mock_w3, mock_connector):
    mock_w3.eth.get_transaction_count.side_effect = requests.ConnectionError("connection refused")
    with pytest.raises(ConnectorUnreachableError, match="connection refused") as exc_info:
        mock_connector.pending_nonce(Address(b"\x01" * 20))
    assert exc_info.value.method == "eth_getTransactionCount"
    assert isinstance(exc_info.value.__cause__, requests.ConnectionError)


def test_timeout_is_unreachable(mock_w3, mock_connector):
    mock_w3.eth.estimate_gas.side_effect = requests.Timeout("read timed out")
    with pytest.raises(ConnectorUnreachableError):
        mock_connector.estimate_gas({})


def test_http_5xx_is_unreachable_but_4xx_is_not(mock_w3, mock_connector):
    response = MagicMock(status_code=503)
    mock_w3.eth.estimate_gas.side_effect = requests.HTTPError("503", response=response)
    with pytest.raises(ConnectorUnreachableError):
        mock_connector.estimate_gas({})

    response.status_code = 401
    with pytest.raises(ConnectorError) as exc_info:
        mock_connector.estimate_gas({})
    assert not isinstance(exc_info.value, ConnectorUnreachableError)


def test_node_error_keeps_node_message(mock_w3, mock_connector):
    mock_w3.eth.send_raw_transaction.side_effect = ValueError(
        {"code": -32000, "message": "replacement transaction underpriced"}
    )
    with pytest.raises(ConnectorError) as exc_info:
        mock_connector.send_raw_transaction(b"\x01")
    assert exc_info.value.node_message == "replacement transaction underpriced"
    assert not exc_info.value.reverted


def test_contract_revert_is_flagged(mock_w3, mock_connector):
    mock_w3.eth.estimate_gas.side_effect = ContractLogicError("execution reverted: Pool paused")
    with pytest.raises(ConnectorError) as exc_info:
        mock_connector.estimate_gas({})
    assert exc_info.value.reverted
    assert "Pool paused" in exc_info.value.node_message


@pytest.mark.parametrize("bad", ["0x3b9aca00", None, -1, True])
def test_malformed_gas_price(mock_w3, mock_connector, bad):
    mock_w3.eth.gas_price = bad
    with pytest.raises(ConnectorError, match="Malformed eth_gasPrice result"):
        mock_connector.suggest_gas_price()


def test_zero_gas_estimate_is_malformed(mock_w3, mock_connector):
    mock_w3.eth.estimate_gas.return_value = 0
    with pytest.raises(ConnectorError, match="Malformed eth_estimateGas"):
        mock_connector.estimate_gas({})


def test_send_raw_transaction_returns_hex(mock_w3, mock_connector):
    mock_w3.eth.send_raw_transaction.return_value = b"\xAB" * 32
    assert mock_connector.send_raw_transaction(b"\x01") == "0x" + "ab" * 32


def test_latest_block(connector):
    assert connector.block_number() == 12345
    assert connector.block_by_number(None)["number"] == 12345


def test_malformed_block(mock_w3, mock_connector):
    mock_w3.eth.get_block.return_value = {"hash": b"\x00"}
    with pytest.raises(ConnectorError, match="Malformed eth_getBlockByNumber"):
        mock_connector.block_number()


def test_receipt_not_found_is_none(mock_w3, mock_connector):
    mock_w3.eth.get_transaction_receipt.side_effect = TransactionNotFound("not found")
    assert mock_connector.transaction_receipt("0x" + "00" * 32) is None


def test_receipt_found(connector, fake_eth):
    tx_hash = "0x" + "12" * 32
    fake_eth.script_receipt(tx_hash, make_receipt(tx_hash))
    assert connector.transaction_receipt(tx_hash)["status"] == 1


def test_done_context_skips_request(mock_w3, mock_connector):
    ctx = CallContext()
    ctx.cancel()
    with pytest.raises(OperationCancelledError) as exc_info:
        mock_connector.estimate_gas({}, ctx)
    assert exc_info.value.step == "eth_estimateGas"
    mock_w3.eth.estimate_gas.assert_not_called()


def test_chain_id(mock_connector):
    assert mock_connector.chain_id() == 11155111


def test_deadline_cuts_slow_request_short(slow_node_url):
    connector = ChainConnector(slow_node_url, timeout=30)
    start = time.monotonic()
    with pytest.raises(OperationCancelledError, match="Deadline exceeded during eth_gasPrice") as exc_info:
        connector.suggest_gas_price(CallContext(timeout=0.3))
    assert time.monotonic() - start < 2
    assert exc_info.value.step == "eth_gasPrice"
    assert isinstance(exc_info.value.__cause__, requests.Timeout)


def test_timeout_after_deadline_is_cancellation(mock_w3, mock_connector):
    ctx = CallContext(timeout=60)

    def stall(call):
        ctx.cancel()
        raise requests.Timeout("read timed out")

    mock_w3.eth.estimate_gas.side_effect = stall
    with pytest.raises(OperationCancelledError, match="cancelled during eth_estimateGas"):
        mock_connector.estimate_gas({}, ctx)


@pytest.mark.parametrize("budget,timeout,expected", [
    (0.5, 30, 0.5),
    (0.5, 0.1, 0.1),
    (0.5, None, 0.5),
    (0.5, (5, 30), (0.5, 0.5)),
    (2.0, (1, None), (1, 2.0)),
])
def test_deadline_session_caps_timeout(monkeypatch, budget, timeout, expected):
    seen = {}
    monkeypatch.setattr(
        requests.Session, "request",
        lambda self, method, url, *args, **kwargs: seen.update(kwargs)
    )
    token = _request_budget.set(budget)
    try:
        DeadlineSession().request("POST", "http://127.0.0.1:1", timeout=timeout)
    finally:
        _request_budget.reset(token)
    assert seen["timeout"] == expected


def test_deadline_session_without_budget_keeps_timeout(monkeypatch):
    seen = {}
    monkeypatch.setattr(
        requests.Session, "request",
        lambda self, method, url, *args, **kwargs: seen.update(kwargs)
    )
    DeadlineSession().request("POST", "http://127.0.0.1:1", timeout=30)
    assert seen["timeout"] == 30


def test_budget_is_cleared_after_call(mock_connector):
    mock_connector.suggest_gas_price(CallContext(timeout=5))
    assert _request_budget.get() is None

"""
Tests for TransactionBuilder.
"""
import logging
from unittest.mock import PropertyMock

import pytest
import requests
from web3.exceptions import ContractLogicError

from yieldpool_sdk.builder import TransactionBuilder
from yieldpool_sdk.connector import ChainConnector
from yieldpool_sdk.context import CallContext
from yieldpool_sdk.exceptions import (
    FeeQueryError, GasEstimationError, NonceQueryError, OperationCancelledError
)
from yieldpool_sdk.nonce import NonceManager
from tests.test_helpers import TEST_RPC_URL

CALL_DATA = bytes.fromhex("b6b55f25") + (10**18).to_bytes(32, "big")


@pytest.fixture
def builder(connector):
    return TransactionBuilder(connector)


def test_build_uses_pending_nonce(builder, fake_eth, signer_address, contract_address):
    tx = builder.build(CALL_DATA, signer_address, contract_address)

    assert tx.nonce == 5
    assert tx.to == contract_address
    assert tx.value == 0
    assert tx.gas == 60_000
    assert tx.gas_price == 1_000_000_000
    assert tx.data == CALL_DATA
    assert fake_eth.nonce_queries == [(signer_address.checksum, "pending")]


def test_estimate_call_matches_transaction(builder, fake_eth, signer_address, contract_address):
    builder.build(CALL_DATA, signer_address, contract_address)
    assert fake_eth.estimate_calls == [{
        "from": signer_address.checksum,
        "to": contract_address.checksum,
        "value": 0,
        "data": "0x" + CALL_DATA.hex(),
    }]


def test_gas_multiplier_applies_headroom(connector, signer_address, contract_address):
    builder = TransactionBuilder(connector, gas_multiplier=1.25)
    assert builder.build(CALL_DATA, signer_address, contract_address).gas == 75_000


def test_gas_multiplier_below_one_rejected(connector):
    with pytest.raises(ValueError, match="gas_multiplier"):
        TransactionBuilder(connector, gas_multiplier=0.9)


def test_gas_price_failure(mock_w3, signer_address, contract_address):
    type(mock_w3.eth).gas_price = PropertyMock(
        side_effect=ValueError({"code": -32603, "message": "internal error"})
    )
    builder = TransactionBuilder(ChainConnector(TEST_RPC_URL, w3=mock_w3))

    with pytest.raises(FeeQueryError, match="Failed to get gas price") as exc_info:
        builder.build(CALL_DATA, signer_address, contract_address)
    assert exc_info.value.step == "fee"
    assert exc_info.value.node_message == "internal error"
    mock_w3.eth.get_transaction_count.assert_not_called()


def test_nonce_failure(builder, fake_eth, signer_address, contract_address):
    fake_eth.nonce_error = requests.ConnectionError("connection reset")

    with pytest.raises(NonceQueryError, match="Failed to get nonce") as exc_info:
        builder.build(CALL_DATA, signer_address, contract_address)
    assert exc_info.value.step == "nonce"
    assert exc_info.value.unreachable
    assert fake_eth.estimate_calls == []


def test_gas_estimation_revert(builder, fake_eth, signer_address, contract_address, caplog):
    fake_eth.estimate_error = ContractLogicError("execution reverted: insufficient balance")

    with caplog.at_level(logging.WARNING):
        with pytest.raises(GasEstimationError, match="Failed to estimate gas") as exc_info:
            builder.build(CALL_DATA, signer_address, contract_address)
    assert exc_info.value.step == "gas"
    assert exc_info.value.would_revert
    assert "insufficient balance" in exc_info.value.node_message
    assert "would likely fail" in caplog.text


def test_gas_estimation_plain_failure(builder, fake_eth, signer_address, contract_address):
    fake_eth.estimate_error = ValueError({"code": -32000, "message": "header not found"})

    with pytest.raises(GasEstimationError) as exc_info:
        builder.build(CALL_DATA, signer_address, contract_address)
    assert not exc_info.value.would_revert
    assert exc_info.value.node_message == "header not found"


def test_errors_are_distinct_types():
    assert not issubclass(FeeQueryError, NonceQueryError)
    assert not issubclass(NonceQueryError, GasEstimationError)
    assert not issubclass(GasEstimationError, FeeQueryError)


def test_cancelled_context_stops_before_fee(builder, fake_eth, signer_address, contract_address):
    ctx = CallContext()
    ctx.cancel()
    with pytest.raises(OperationCancelledError):
        builder.build(CALL_DATA, signer_address, contract_address, ctx)
    assert fake_eth.nonce_queries == []


def test_nonce_manager_covers_lagging_node(builder, fake_eth, signer_address, contract_address):
    fake_eth.lag_pending = True
    nonces = NonceManager()
    nonces.commit(signer_address, 5)

    tx = builder.build(CALL_DATA, signer_address, contract_address, nonce_manager=nonces)
    assert tx.nonce == 6


def test_node_ahead_of_nonce_manager_wins(builder, fake_eth, signer_address, contract_address):
    fake_eth.pending[signer_address.checksum.lower()] = 9
    nonces = NonceManager()
    nonces.commit(signer_address, 5)

    tx = builder.build(CALL_DATA, signer_address, contract_address, nonce_manager=nonces)
    assert tx.nonce == 9


def test_sequential_builds_follow_node_after_broadcast(
    builder, fake_eth, signer, signer_address, contract_address
):
    """Each broadcast advances the pending nonce, so the next build gets a fresh one"""
    seen = []
    for _ in range(3):
        tx = builder.build(CALL_DATA, signer_address, contract_address)
        fake_eth.send_raw_transaction(signer.sign(tx, 11155111).raw_transaction)
        seen.append(tx.nonce)
    assert seen == [5, 6, 7]

from .client_creator import (
    create_test_client,
    FAST_SETTINGS,
    TEST_CHAIN_ID,
    TEST_CONTRACT,
    TEST_PRIV_KEY,
    TEST_RPC_URL,
)
from .fake_node import FakeEth, fake_w3, make_receipt, tx_nonce
from .slow_node import SlowNode

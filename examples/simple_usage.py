#!/usr/bin/env python3
"""
Simple example of using the YieldPool SDK.
"""
import logging
import os

from yieldpool_sdk import (
    BroadcastError,
    ConfirmationTimeoutError,
    ExecutionRevertedError,
    GasEstimationError,
    PoolClient,
)


def main():
    """
    Demonstrate basic usage of the PoolClient.

    This example shows how to:
    1. Initialize the client from a network preset
    2. Deposit into the pool and wait for the receipt
    3. Claim rewards
    """
    logging.basicConfig(level=logging.INFO)

    # Read configuration from environment
    NETWORK = os.environ.get("NETWORK", "sepolia")
    POOL_ADDRESS = os.environ.get("POOL_ADDRESS")
    PRIVATE_KEY = os.environ.get("PRIVATE_KEY")

    # Verify configuration
    if not POOL_ADDRESS:
        print("ERROR: POOL_ADDRESS environment variable is required")
        return

    if not PRIVATE_KEY:
        print("ERROR: PRIVATE_KEY environment variable is required")
        return

    client = PoolClient.from_network(NETWORK, POOL_ADDRESS, priv_key=PRIVATE_KEY)
    client.assert_chain_id()
    print(f"Signer: {client.address}")
    print(f"Latest block: {client.latest_block_height()}")

    try:
        tx_hash = client.deposit(10**16)  # 0.01 token
        print(f"Deposit sent: {tx_hash}")
        receipt = client.wait_for_transaction(tx_hash, timeout=180)
        print(f"Deposit mined in block {receipt.block_number} (gas used {receipt.gas_used})")

        tx_hash = client.claim_rewards()
        print(f"Claim sent: {tx_hash}")
        client.wait_for_transaction(tx_hash)

    except GasEstimationError as e:
        hint = " (the call would revert)" if e.would_revert else ""
        print(f"Could not estimate gas{hint}: {e.node_message}")
    except BroadcastError as e:
        print(f"Node refused the transaction ({e.reason.value}): {e.node_message}")
    except ExecutionRevertedError as e:
        print(f"Transaction reverted after using {e.gas_used} gas")
    except ConfirmationTimeoutError as e:
        print(f"Gave up waiting for {e.tx_hash}; it may still be mined")


if __name__ == "__main__":
    main()

"""
Submitter: broadcasts signed transactions and classifies node rejections.
"""
import logging
from typing import Optional

from .connector import ChainConnector
from .context import CallContext
from .exceptions import BroadcastError, BroadcastFailure, ConnectorError, ConnectorUnreachableError
from .models import SignedTransaction

# Lowercase fragments of the rejection messages geth, erigon, nethermind and
# anvil return for each failure class
DUPLICATE_NONCE_MARKERS = (
    "nonce too low",
    "already known",
    "known transaction",
    "nonce has already been used",
    "replacement transaction",
    "alreadyknown",
)
UNDERPRICED_MARKERS = (
    "underpriced",
    "fee too low",
    "gas price too low",
    "max fee per gas less than block base fee",
    "feetoolow",
)


def classify_rejection(message: Optional[str]) -> BroadcastFailure:
    """
    Map a node rejection message to a BroadcastFailure.

    "replacement transaction underpriced" is a nonce collision first: the
    node already holds a transaction with that nonce.
    """
    text = (message or "").lower()
    if any(marker in text for marker in DUPLICATE_NONCE_MARKERS):
        return BroadcastFailure.DUPLICATE_NONCE
    if any(marker in text for marker in UNDERPRICED_MARKERS):
        return BroadcastFailure.UNDERPRICED
    return BroadcastFailure.REJECTED


class Submitter:
    """
    Sends signed transactions to the network.

    Args:
        connector: Chain connector used for the broadcast
        logger: Optional logger instance
    """

    def __init__(self, connector: ChainConnector, logger: Optional[logging.Logger] = None):
        self.connector = connector
        self.logger = logger or logging.getLogger(__name__)

    def broadcast(self, signed: SignedTransaction, ctx: Optional[CallContext] = None) -> str:
        """
        Broadcast ``signed`` into the node's pending pool.

        Returns:
            Transaction hash (0x-prefixed hex)

        Raises:
            BroadcastError: With ``reason`` telling duplicate nonce, underpriced
                fee, plain rejection and unreachable node apart
        """
        nonce = signed.transaction.nonce
        try:
            tx_hash = self.connector.send_raw_transaction(signed.raw_transaction, ctx)
        except ConnectorUnreachableError as e:
            self.logger.error(f"Failed to send transaction (nonce {nonce}): node unreachable: {e}")
            raise BroadcastError(
                f"Failed to send transaction: {e}", BroadcastFailure.UNREACHABLE, e.node_message
            ) from e
        except ConnectorError as e:
            reason = classify_rejection(e.node_message)
            self.logger.error(f"Failed to send transaction (nonce {nonce}, {reason.value}): {e.node_message}")
            raise BroadcastError(
                f"Failed to send transaction: {e.node_message}", reason, e.node_message
            ) from e

        if tx_hash != signed.tx_hash:
            self.logger.warning(f"Node returned hash {tx_hash}, expected {signed.tx_hash}")
        self.logger.info(f"Transaction sent: {tx_hash}")
        return tx_hash

"""
Confirmation waiter: polls for a receipt and classifies the outcome.

The waiter only observes. It never signs, broadcasts or resubmits, so a
timeout leaves the transaction in the network where it may still be mined.
"""
import logging
from typing import Any, Optional

from ._rate_limited_log import rate_limited_log
from .connector import ChainConnector
from .context import CallContext
from .exceptions import (
    ConfirmationTimeoutError, ConnectorError, ExecutionRevertedError, OperationCancelledError
)
from .models import Receipt


class ConfirmationWaiter:
    """
    Waits for a transaction to be mined.

    Args:
        connector: Chain connector used for receipt lookups
        poll_interval: Initial delay between polls, in seconds
        max_poll_interval: Upper bound for the delay after backoff
        backoff_factor: Multiplier applied to the delay after each miss
        logger: Optional logger instance
    """

    def __init__(
        self,
        connector: ChainConnector,
        poll_interval: float = 1.0,
        max_poll_interval: float = 8.0,
        backoff_factor: float = 1.5,
        logger: Optional[logging.Logger] = None
    ):
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if backoff_factor < 1:
            raise ValueError("backoff_factor must be at least 1")
        self.connector = connector
        self.poll_interval = poll_interval
        self.max_poll_interval = max(max_poll_interval, poll_interval)
        self.backoff_factor = backoff_factor
        self.logger = logger or logging.getLogger(__name__)

    def wait(self, tx_hash: str, ctx: CallContext) -> Receipt:
        """
        Poll until ``tx_hash`` is mined or ``ctx`` ends.

        Args:
            tx_hash: Hash returned by the broadcast
            ctx: Context bounding the wait; cancellation is checked on every poll

        Returns:
            Receipt of the successfully executed transaction

        Raises:
            ExecutionRevertedError: If the transaction was mined but reverted
            ConfirmationTimeoutError: If ``ctx`` was cancelled or expired first;
                the transaction may still be mined afterwards
        """
        interval = self.poll_interval
        polls = 0
        self.logger.info(f"Waiting for transaction {tx_hash} to be mined")

        while True:
            if ctx.done:
                raise self._timeout(tx_hash, ctx, polls)

            receipt = None
            try:
                receipt = self._parse(self.connector.transaction_receipt(tx_hash, ctx))
            except OperationCancelledError:
                raise self._timeout(tx_hash, ctx, polls)
            except ConnectorError as e:
                rate_limited_log(
                    f"Receipt lookup for {tx_hash} failed, still polling: {e}",
                    level="warning",
                    logger_instance=self.logger
                )
            polls += 1

            if receipt is not None:
                if receipt.succeeded:
                    self.logger.info(f"Transaction {tx_hash} mined in block {receipt.block_number}")
                    return receipt
                self.logger.error(
                    f"Transaction {tx_hash} reverted in block {receipt.block_number} "
                    f"(gas used {receipt.gas_used})"
                )
                raise ExecutionRevertedError(
                    f"Transaction {tx_hash} reverted in block {receipt.block_number}", receipt
                )

            if ctx.sleep(interval):
                raise self._timeout(tx_hash, ctx, polls)
            interval = min(interval * self.backoff_factor, self.max_poll_interval)

    @staticmethod
    def _parse(raw: Any) -> Optional[Receipt]:
        if raw is None:
            return None
        try:
            # Some nodes return a receipt stub without a block for pending txs
            if raw.get("blockNumber") is None:
                return None
            return Receipt.from_web3(raw)
        except (AttributeError, TypeError, ValueError) as e:
            raise ConnectorError(
                f"Malformed eth_getTransactionReceipt result: {e}",
                method="eth_getTransactionReceipt"
            ) from e

    def _timeout(self, tx_hash: str, ctx: CallContext, polls: int) -> ConfirmationTimeoutError:
        cause = "cancelled" if ctx.cancelled else "deadline exceeded"
        self.logger.warning(
            f"Stopped waiting for {tx_hash} after {polls} polls ({cause}); it may still be mined"
        )
        return ConfirmationTimeoutError(
            f"Transaction {tx_hash} not confirmed ({cause}); it may still be mined later",
            tx_hash=tx_hash
        )

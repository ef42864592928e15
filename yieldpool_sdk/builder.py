"""
Transaction builder: turns call data into an unsigned transaction.
"""
import logging
from typing import Optional

from .connector import ChainConnector
from .context import CallContext
from .exceptions import ConnectorError, FeeQueryError, GasEstimationError, NonceQueryError
from .models import Address, UnsignedTransaction
from .nonce import NonceManager


class TransactionBuilder:
    """
    Assembles unsigned transactions from the signer's current on-chain state.

    Each of the three node queries (gas price, pending nonce, gas estimate) is
    a single request. A failure is raised straight away as its own error type;
    retry policy belongs to the caller.

    Args:
        connector: Chain connector used for the node queries
        gas_multiplier: Factor applied to the gas estimate (1.0 keeps it unchanged)
        logger: Optional logger instance
    """

    def __init__(
        self,
        connector: ChainConnector,
        gas_multiplier: float = 1.0,
        logger: Optional[logging.Logger] = None
    ):
        if gas_multiplier < 1:
            raise ValueError("gas_multiplier must be at least 1")
        self.connector = connector
        self.gas_multiplier = gas_multiplier
        self.logger = logger or logging.getLogger(__name__)

    def build(
        self,
        call_data: bytes,
        signer_address: Address,
        contract_address: Address,
        ctx: Optional[CallContext] = None,
        nonce_manager: Optional[NonceManager] = None
    ) -> UnsignedTransaction:
        """
        Build an unsigned contract call.

        Args:
            call_data: Encoded call data
            signer_address: Account that will sign and pay for the transaction
            contract_address: Destination contract
            ctx: Call context checked before every node request
            nonce_manager: When given, the nonce is reconciled with the
                manager's record of already-broadcast transactions

        Returns:
            UnsignedTransaction with zero value

        Raises:
            FeeQueryError: If the gas price query fails
            NonceQueryError: If the pending nonce query fails
            GasEstimationError: If the call cannot be simulated
            OperationCancelledError: If ``ctx`` ends before a step runs
        """
        # 1. Gas price
        try:
            gas_price = self.connector.suggest_gas_price(ctx)
        except ConnectorError as e:
            self.logger.error(f"Gas price query failed: {e}")
            raise FeeQueryError(f"Failed to get gas price: {e}", e.node_message) from e

        # 2. Pending nonce
        try:
            pending = self.connector.pending_nonce(signer_address, ctx)
        except ConnectorError as e:
            self.logger.error(f"Nonce query for {signer_address} failed: {e}")
            raise NonceQueryError(f"Failed to get nonce: {e}", e.node_message) from e
        nonce = nonce_manager.resolve(signer_address, pending) if nonce_manager else pending

        # 3. Gas limit from simulation
        call = {
            "from": signer_address.checksum,
            "to": contract_address.checksum,
            "value": 0,
            "data": "0x" + call_data.hex(),
        }
        try:
            estimate = self.connector.estimate_gas(call, ctx)
        except ConnectorError as e:
            if e.reverted:
                self.logger.warning(f"Gas estimation reverted, call would likely fail on chain: {e.node_message}")
            else:
                self.logger.error(f"Gas estimation failed: {e}")
            raise GasEstimationError(
                f"Failed to estimate gas: {e}", e.node_message, would_revert=e.reverted
            ) from e
        gas = int(estimate * self.gas_multiplier)

        # 4. Assemble
        tx = UnsignedTransaction(
            nonce=nonce,
            to=contract_address,
            value=0,
            gas=gas,
            gas_price=gas_price,
            data=call_data,
        )
        self.logger.debug(
            f"Built transaction nonce={nonce} gas={gas} gas_price={gas_price} to={contract_address}"
        )
        return tx

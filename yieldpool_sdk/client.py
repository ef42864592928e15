"""
PoolClient - Main client for a yield farming pool contract.
"""
import logging
import threading
import time
from typing import Any, Dict, List, Optional, Union

from .builder import TransactionBuilder
from .config import ClientSettings, NetworkConfig, validate_rpc_url
from .connector import ChainConnector
from .context import CallContext
from .encoder import CallEncoder
from .exceptions import (
    BroadcastError, BroadcastFailure, ConfirmationTimeoutError, ConnectorError, NetworkError,
    SigningError
)
from .models import Address, CallIntent, PoolInfo, Receipt, UserPosition
from .nonce import NonceManager
from .signer import LocalSigner, Signer
from .submitter import Submitter
from .waiter import ConfirmationWaiter
from .utils import is_uint


class PoolClient:
    """
    Client for a single yield farming pool.

    This client handles:
    1. Depositing, withdrawing and claiming rewards
    2. Waiting for those transactions to be mined
    3. Reading the latest block height

    Every state-changing call runs the same pipeline: encode the call, query
    gas price, pending nonce and gas estimate, sign, broadcast. The hash is
    returned as soon as the node accepts the transaction; confirmation is a
    separate call to ``wait_for_transaction``.

    Calls from one signer are serialized from the first node query through
    broadcast, so concurrent callers never share a nonce.
    """

    def __init__(
        self,
        rpc_url: str,
        contract_address: Union[str, Address],
        priv_key: Optional[str] = None,
        signer: Optional[Signer] = None,
        chain_id: Optional[int] = None,
        abi: Optional[Union[str, List[Dict[str, Any]]]] = None,
        settings: Optional[ClientSettings] = None,
        connector: Optional[ChainConnector] = None,
        nonce_manager: Optional[NonceManager] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the PoolClient

        Args:
            rpc_url: Ethereum RPC endpoint URL
            contract_address: Pool contract address
            priv_key: Ethereum private key (optional if signer provided)
            signer: Custom signer object (optional if priv_key provided)
            chain_id: Expected chain id; read from the node on first use if omitted
            abi: Contract ABI (defaults to the standard pool ABI)
            settings: Timeouts, polling and gas settings (defaults from environment)
            connector: Pre-built chain connector (built from rpc_url if omitted)
            nonce_manager: Shared nonce manager, for several clients using one key
            logger: Optional logger instance to use for debug/info logging

        Raises:
            ValueError: If neither priv_key nor signer is provided
            ValueError: If rpc_url is not https (unless local) or an address is invalid
        """
        if not priv_key and not signer:
            raise ValueError("Either priv_key or signer must be provided")
        if chain_id is not None and (not is_uint(chain_id) or chain_id == 0):
            raise ValueError(f"chain_id must be a positive integer (got: {chain_id!r})")

        validate_rpc_url(rpc_url)

        self.rpc_url = rpc_url
        self.contract_address = Address.parse(contract_address)
        self.logger = logger or logging.getLogger(__name__)
        self.settings = settings or ClientSettings.from_env()

        self.signer: Signer = signer if signer is not None else LocalSigner(priv_key)
        self._signer_address = Address.from_hex(self.signer.address)

        self.expected_chain_id = chain_id
        self._chain_id = chain_id
        self._chain_id_lock = threading.Lock()

        self.encoder = CallEncoder(abi)
        self.connector = connector or ChainConnector(
            rpc_url, timeout=self.settings.rpc_timeout, logger=self.logger
        )
        self.nonces = nonce_manager or NonceManager()
        self.builder = TransactionBuilder(
            self.connector, gas_multiplier=self.settings.gas_multiplier, logger=self.logger
        )
        self.submitter = Submitter(self.connector, logger=self.logger)
        self.waiter = ConfirmationWaiter(
            self.connector,
            poll_interval=self.settings.poll_interval,
            max_poll_interval=self.settings.max_poll_interval,
            backoff_factor=self.settings.backoff_factor,
            logger=self.logger
        )

    @classmethod
    def from_network(
        cls,
        network: str,
        contract_address: Union[str, Address],
        rpc_url: Optional[str] = None,
        **kwargs
    ) -> "PoolClient":
        """
        Create a client from a packaged network preset.

        Args:
            network: Network name (e.g. "sepolia", "local")
            contract_address: Pool contract address
            rpc_url: Override the preset RPC URL
            **kwargs: Passed to the constructor (priv_key, signer, ...)
        """
        config = NetworkConfig.get_network(network)
        return cls(
            rpc_url=NetworkConfig.get_rpc_url(network, rpc_url),
            contract_address=contract_address,
            chain_id=kwargs.pop("chain_id", config["chainId"]),
            **kwargs
        )

    @property
    def address(self) -> str:
        """
        Get the signer address

        Returns:
            Checksummed Ethereum address
        """
        return self._signer_address.checksum

    def chain_id(self, ctx: Optional[CallContext] = None) -> int:
        """
        Chain id every transaction is signed for.

        The configured value is used when given; otherwise the node is asked
        once and the answer is cached for the life of the client.
        """
        with self._chain_id_lock:
            if self._chain_id is not None:
                return self._chain_id
        reported = self.connector.chain_id(ctx)
        with self._chain_id_lock:
            if self._chain_id is None:
                self._chain_id = reported
                self.logger.debug(f"Using chain id {reported} reported by node")
            return self._chain_id

    def assert_chain_id(self, ctx: Optional[CallContext] = None) -> None:
        """
        Check that the node serves the expected chain.

        Raises:
            NetworkError: If the chain ids differ or the node cannot be asked
        """
        if self.expected_chain_id is None:
            self.logger.warning("No expected chain ID set, skipping chain ID validation")
            return
        try:
            actual = self.connector.chain_id(ctx)
        except ConnectorError as e:
            raise NetworkError(f"Failed to validate chain ID: {e}") from e
        if actual != self.expected_chain_id:
            raise NetworkError(
                f"Chain ID mismatch: expected {self.expected_chain_id}, node reports {actual}"
            )

    def deposit(self, amount: int, ctx: Optional[CallContext] = None) -> str:
        """
        Deposit ``amount`` (in wei) into the pool.

        Returns:
            Transaction hash; the transaction may still be pending
        """
        self._validate_amount(amount)
        return self.submit(CallIntent("deposit", (amount,)), ctx)

    def withdraw(self, amount: int, ctx: Optional[CallContext] = None) -> str:
        """
        Withdraw ``amount`` (in wei) from the pool.

        Returns:
            Transaction hash; the transaction may still be pending
        """
        self._validate_amount(amount)
        return self.submit(CallIntent("withdraw", (amount,)), ctx)

    def claim_rewards(self, ctx: Optional[CallContext] = None) -> str:
        """
        Claim accumulated rewards.

        Returns:
            Transaction hash; the transaction may still be pending
        """
        return self.submit(CallIntent("claimRewards"), ctx)

    def submit(self, intent: CallIntent, ctx: Optional[CallContext] = None) -> str:
        """
        Run the full pipeline for one contract call and return its hash.

        Args:
            intent: Method and arguments to call on the pool
            ctx: Optional call context; each node request is still bounded by
                settings.rpc_timeout

        Raises:
            EncodingError: If the call cannot be encoded
            FeeQueryError, NonceQueryError, GasEstimationError: From the builder
            SigningError: If signing fails
            BroadcastError: If the node refuses the transaction
            OperationCancelledError: If ``ctx`` ends before broadcast
        """
        call_data = self.encoder.pack(intent.method, *intent.args)
        chain_id = self.chain_id(ctx)
        signer_address = self._signer_address

        with self.nonces.hold(signer_address):
            tx = self.builder.build(
                call_data, signer_address, self.contract_address, ctx, nonce_manager=self.nonces
            )
            signed = self.signer.sign(tx, chain_id)
            if not signed.raw_transaction:
                raise SigningError("Signer returned an empty transaction")
            try:
                tx_hash = self.submitter.broadcast(signed, ctx)
            except BroadcastError as e:
                if e.reason == BroadcastFailure.DUPLICATE_NONCE:
                    # Our record is stale; resync from the node next time
                    self.nonces.forget(signer_address)
                raise
            self.nonces.commit(signer_address, tx.nonce)

        self.logger.info(f"{intent.method} submitted: {tx_hash} (nonce {tx.nonce})")
        return tx_hash

    def wait_for_transaction(
        self,
        tx_hash: str,
        ctx: Optional[CallContext] = None,
        timeout: Optional[float] = None
    ) -> Receipt:
        """
        Wait until ``tx_hash`` is mined.

        Args:
            tx_hash: Hash returned by deposit/withdraw/claim_rewards
            ctx: Context to cancel the wait from another thread
            timeout: Maximum wait in seconds (defaults to settings.receipt_timeout)

        Returns:
            Receipt of the successful transaction

        Raises:
            ExecutionRevertedError: Mined but reverted; gas was spent
            ConfirmationTimeoutError: Gave up waiting. The transaction was not
                retracted and may still be mined, so query again later before
                resubmitting. If the node no longer counts the last nonce this
                client broadcast, the local nonce record is dropped first.
        """
        if timeout is None and (ctx is None or ctx.deadline is None):
            timeout = self.settings.receipt_timeout
        wait_ctx = (ctx or CallContext.background()).with_timeout(timeout)
        try:
            return self.waiter.wait(tx_hash, wait_ctx)
        except ConfirmationTimeoutError:
            self._resync_nonce()
            raise

    def _resync_nonce(self) -> None:
        """
        Drop the local nonce record if the node no longer counts it.

        A transaction that was accepted and later dropped from the mempool
        leaves the record ahead of the node, and every later build would pick a
        nonce above the gap that can never be mined.
        """
        address = self._signer_address
        with self.nonces.hold(address):
            last = self.nonces.last_committed(address)
            if last is None:
                return
            try:
                pending = self.connector.pending_nonce(address)
            except ConnectorError as e:
                self.logger.warning(f"Could not check pending nonce for {address}: {e}")
                return
            if pending <= last:
                self.logger.warning(
                    f"Node pending nonce {pending} for {address} is behind local record {last}; "
                    f"dropping the record"
                )
                self.nonces.forget(address)

    def latest_block_height(self, ctx: Optional[CallContext] = None) -> int:
        """
        Height of the latest block.

        Raises:
            ConnectorError: If the node query fails
        """
        return self.connector.block_number(ctx)

    def get_pool_info(self) -> PoolInfo:
        """
        Pool statistics.

        Returns fixed placeholder values; the pool's view functions are not
        decoded yet.
        """
        return PoolInfo(
            total_value_locked=1000 * 10**18,
            current_apy_bps=1500,
            reward_rate=10**18,
            last_update_time=int(time.time()),
        )

    def get_user_position(self, address: Optional[Union[str, Address]] = None) -> UserPosition:
        """
        Position of ``address`` (defaults to the signer).

        Returns fixed placeholder values; the pool's view functions are not
        decoded yet.
        """
        account = Address.parse(address) if address is not None else self._signer_address
        return UserPosition(
            address=account.checksum,
            staked_balance=10 * 10**18,
            pending_rewards=5 * 10**17,
            last_claim_time=int(time.time()) - 3600,
            reward_debt=0,
        )

    @staticmethod
    def _validate_amount(amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise ValueError(f"amount must be an integer number of wei, got {type(amount).__name__}")
        if amount <= 0:
            raise ValueError(f"amount must be positive, got {amount}")
        if amount >= 2**256:
            raise ValueError("amount does not fit in uint256")

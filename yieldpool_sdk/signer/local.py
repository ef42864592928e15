"""
Local signer backed by an eth-account key.
"""
import logging
from typing import Optional, Union

from eth_account import Account
from eth_account.signers.base import BaseAccount

from ..exceptions import SigningError
from ..models import SignedTransaction, UnsignedTransaction
from ..utils import is_uint, to_hex

logger = logging.getLogger(__name__)


class LocalSigner:
    """
    Signs legacy (EIP-155) transactions with an in-process key.

    Signatures are deterministic (RFC 6979): the same transaction, key and
    chain id always produce the same signed bytes.

    Args:
        key: Hex private key or an existing eth-account account
    """

    def __init__(self, key: Union[str, bytes, BaseAccount]):
        if isinstance(key, BaseAccount):
            self._account = key
        else:
            try:
                self._account = Account.from_key(key)
            except Exception as e:  # eth_keys raises its own ValidationError
                raise ValueError(f"Invalid private key: {e}") from e

    @property
    def address(self) -> str:
        return self._account.address

    def sign(self, transaction: UnsignedTransaction, chain_id: Optional[int]) -> SignedTransaction:
        """
        Sign ``transaction`` for ``chain_id``.

        Raises:
            SigningError: If the transaction or chain id is malformed
        """
        if not isinstance(transaction, UnsignedTransaction):
            raise SigningError(f"Expected UnsignedTransaction, got {type(transaction).__name__}")
        if not is_uint(chain_id) or chain_id == 0:
            raise SigningError(f"Invalid chain id: {chain_id!r}")

        try:
            signed = self._account.sign_transaction(transaction.to_tx_dict(chain_id))
        except Exception as e:
            logger.error(f"Transaction signing failed: {e}")
            raise SigningError(f"Failed to sign transaction: {e}") from e

        return SignedTransaction(
            transaction=transaction,
            chain_id=chain_id,
            raw_transaction=bytes(signed.raw_transaction),
            tx_hash=to_hex(bytes(signed.hash)),
            v=signed.v,
            r=signed.r,
            s=signed.s,
        )

"""
Transaction signers.

Key custody is outside the SDK: a signer only has to expose its address and
produce a signature over a transaction for a given chain id.
"""
from typing import Protocol, runtime_checkable

from ..models import SignedTransaction, UnsignedTransaction


@runtime_checkable
class Signer(Protocol):
    """Protocol for custom signers"""
    address: str

    def sign(self, transaction: UnsignedTransaction, chain_id: int) -> SignedTransaction:
        """Sign ``transaction`` for ``chain_id``; must not mutate the input"""
        ...


from .local import LocalSigner  # noqa: E402

__all__ = ["Signer", "LocalSigner"]

"""
Per-signer nonce coordination.

Two transactions from the same signer that read the pending nonce at the same
time would both get the same value and collide at broadcast. NonceManager
serializes the build-sign-broadcast region per signer and remembers the last
nonce it saw broadcast, so back-to-back submissions get strictly increasing
nonces even when the node's pending view lags behind.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from .models import Address

logger = logging.getLogger(__name__)


class NonceManager:
    """Thread-safe nonce allocator keyed by signer address"""

    def __init__(self):
        self._locks: Dict[Address, threading.RLock] = {}
        self._committed: Dict[Address, int] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, address: Address) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(address)
            if lock is None:
                lock = self._locks[address] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, address: Address) -> Iterator[None]:
        """
        Hold the signer's exclusive region.

        Everything from the nonce query through broadcast must run inside this
        block. The lock is re-entrant, so nested holds from the same thread are
        allowed.
        """
        lock = self._lock_for(address)
        with lock:
            yield

    def resolve(self, address: Address, pending: int) -> int:
        """
        Pick the nonce for the next transaction.

        Args:
            address: Signer address
            pending: Pending nonce reported by the node

        Returns:
            ``pending``, or one past the last committed nonce if that is higher
        """
        with self._registry_lock:
            last = self._committed.get(address)
        if last is not None and last + 1 > pending:
            logger.debug(
                f"Node pending nonce {pending} for {address} lags local record; using {last + 1}"
            )
            return last + 1
        return pending

    def commit(self, address: Address, nonce: int) -> None:
        """Record that ``nonce`` was accepted by the node for ``address``."""
        with self._registry_lock:
            last = self._committed.get(address)
            if last is None or nonce > last:
                self._committed[address] = nonce

    def forget(self, address: Address) -> None:
        """
        Drop the local record so the next build trusts the node again.

        Call this when a broadcast transaction is known to be gone from the
        node (rejected as a duplicate, or dropped from the mempool). Otherwise
        ``resolve`` keeps returning nonces above the gap it left.
        """
        with self._registry_lock:
            self._committed.pop(address, None)

    def last_committed(self, address: Address) -> Optional[int]:
        with self._registry_lock:
            return self._committed.get(address)

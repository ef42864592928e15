"""
Chain connector: the node-facing half of the transaction pipeline.

Each method is a single JSON-RPC round trip through web3. No method retries;
transport failures raise ConnectorUnreachableError and node-side failures or
malformed results raise ConnectorError, both chained to the original error.

A call context's deadline also bounds the HTTP request in flight: the
request timeout is cut down to the time the context has left, and a timeout
caused by that cut raises OperationCancelledError.
"""
import contextvars
import logging
from typing import Any, Callable, Dict, Optional, TypeVar

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from web3 import Web3
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3Exception

from .context import CallContext
from .exceptions import ConnectorError, ConnectorUnreachableError, OperationCancelledError
from .models import Address
from .utils import is_uint, node_message, to_hex

T = TypeVar('T')

logger = logging.getLogger(__name__)

# Seconds the current context leaves for the request being made on this thread
_request_budget: contextvars.ContextVar[Optional[float]] = contextvars.ContextVar(
    "yieldpool_request_budget", default=None
)


def _cap_timeout(timeout: Any, budget: float) -> Any:
    if isinstance(timeout, tuple):
        return tuple(budget if t is None else min(t, budget) for t in timeout)
    if timeout is None:
        return budget
    return min(timeout, budget)


class DeadlineSession(requests.Session):
    """
    Session that shortens each request's timeout to the caller's deadline.

    web3 passes the provider's fixed ``request_kwargs`` timeout on every
    request; this caps it with the budget ChainConnector sets for the call.
    """

    def request(self, method, url, *args, **kwargs):
        budget = _request_budget.get()
        if budget is not None:
            kwargs["timeout"] = _cap_timeout(kwargs.get("timeout"), budget)
        return super().request(method, url, *args, **kwargs)


class ChainConnector:
    """
    Thin wrapper over a web3 HTTP connection.

    Args:
        rpc_url: JSON-RPC endpoint of the node
        timeout: HTTP timeout for a single request, in seconds
        w3: Pre-built Web3 instance (mostly for tests); built from rpc_url if omitted
        logger: Optional logger instance
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 30.0,
        w3: Optional[Web3] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

        if w3 is None:
            # One request per call: retries belong to the caller
            self.session = DeadlineSession()
            no_retries = Retry(total=0, raise_on_status=False)
            self.session.mount("http://", HTTPAdapter(max_retries=no_retries))
            self.session.mount("https://", HTTPAdapter(max_retries=no_retries))
            w3 = Web3(Web3.HTTPProvider(
                rpc_url,
                request_kwargs={"timeout": timeout},
                session=self.session,
                exception_retry_configuration=None,
            ))
        self.w3 = w3

    def _call(self, method: str, fn: Callable[[], T], ctx: Optional[CallContext]) -> T:
        budget = None
        if ctx is not None:
            ctx.check(method)
            budget = ctx.remaining()
        capped = budget is not None and budget < self.timeout
        token = _request_budget.set(budget)
        try:
            return fn()
        except requests.Timeout as e:
            if capped or (ctx is not None and ctx.done):
                reason = "cancelled" if ctx.cancelled else "Deadline exceeded"
                raise OperationCancelledError(
                    f"{reason} during {method}", node_message=str(e), step=method
                ) from e
            raise ConnectorUnreachableError(
                f"Node unreachable during {method}: {e}", method=method, node_message=str(e)
            ) from e
        except requests.HTTPError as e:
            status = getattr(e.response, "status_code", None)
            if status is not None and status < 500:
                raise ConnectorError(
                    f"{method} rejected by node: HTTP {status}",
                    method=method, node_message=str(e)
                ) from e
            raise ConnectorUnreachableError(
                f"Node unavailable during {method}: {e}", method=method, node_message=str(e)
            ) from e
        except requests.RequestException as e:
            raise ConnectorUnreachableError(
                f"Node unreachable during {method}: {e}", method=method, node_message=str(e)
            ) from e
        except ContractLogicError as e:
            message = node_message(e)
            raise ConnectorError(
                f"{method} reverted: {message}", method=method, node_message=message, reverted=True
            ) from e
        except (Web3Exception, ValueError) as e:
            message = node_message(e)
            raise ConnectorError(
                f"{method} failed: {message}", method=method, node_message=message
            ) from e
        finally:
            _request_budget.reset(token)

    @staticmethod
    def _require_uint(method: str, value: Any) -> int:
        if not is_uint(value):
            raise ConnectorError(f"Malformed {method} result: {value!r}", method=method)
        return value

    def chain_id(self, ctx: Optional[CallContext] = None) -> int:
        value = self._call("eth_chainId", lambda: self.w3.eth.chain_id, ctx)
        return self._require_uint("eth_chainId", value)

    def suggest_gas_price(self, ctx: Optional[CallContext] = None) -> int:
        """Current gas price suggested by the node, in wei."""
        value = self._call("eth_gasPrice", lambda: self.w3.eth.gas_price, ctx)
        return self._require_uint("eth_gasPrice", value)

    def pending_nonce(self, address: Address, ctx: Optional[CallContext] = None) -> int:
        """
        Nonce for the next transaction from ``address``.

        Uses the "pending" block tag, so transactions already submitted but not
        yet mined are counted.
        """
        value = self._call(
            "eth_getTransactionCount",
            lambda: self.w3.eth.get_transaction_count(address.checksum, "pending"),
            ctx
        )
        return self._require_uint("eth_getTransactionCount", value)

    def estimate_gas(self, call: Dict[str, Any], ctx: Optional[CallContext] = None) -> int:
        """
        Simulate ``call`` against current state and return the gas it needs.

        Raises:
            ConnectorError: With ``reverted=True`` if the simulation reverted
        """
        value = self._call("eth_estimateGas", lambda: self.w3.eth.estimate_gas(call), ctx)
        value = self._require_uint("eth_estimateGas", value)
        if value == 0:
            raise ConnectorError("Malformed eth_estimateGas result: 0", method="eth_estimateGas")
        return value

    def send_raw_transaction(self, raw_transaction: bytes, ctx: Optional[CallContext] = None) -> str:
        """
        Broadcast a signed transaction.

        Returns:
            Transaction hash reported by the node (0x-prefixed hex)
        """
        tx_hash = self._call(
            "eth_sendRawTransaction",
            lambda: self.w3.eth.send_raw_transaction(raw_transaction),
            ctx
        )
        if not isinstance(tx_hash, (bytes, bytearray, str)):
            raise ConnectorError(
                f"Malformed eth_sendRawTransaction result: {tx_hash!r}",
                method="eth_sendRawTransaction"
            )
        return to_hex(tx_hash)

    def block_by_number(self, number: Optional[int] = None, ctx: Optional[CallContext] = None) -> Any:
        """Fetch a block header; ``None`` means the latest block."""
        identifier = "latest" if number is None else number
        return self._call(
            "eth_getBlockByNumber",
            lambda: self.w3.eth.get_block(identifier),
            ctx
        )

    def block_number(self, ctx: Optional[CallContext] = None) -> int:
        """Height of the latest block."""
        block = self.block_by_number(None, ctx)
        try:
            number = block["number"]
        except (KeyError, TypeError) as e:
            raise ConnectorError(
                f"Malformed eth_getBlockByNumber result: {block!r}", method="eth_getBlockByNumber"
            ) from e
        return self._require_uint("eth_getBlockByNumber", number)

    def transaction_receipt(self, tx_hash: str, ctx: Optional[CallContext] = None) -> Optional[Any]:
        """
        Fetch the receipt for ``tx_hash``.

        Returns:
            The web3 receipt, or None if the transaction is not mined yet
        """
        def _fetch():
            try:
                return self.w3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                return None

        return self._call("eth_getTransactionReceipt", _fetch, ctx)

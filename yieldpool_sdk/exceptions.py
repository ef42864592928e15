"""
Exceptions for the YieldPool SDK.

Every failure of the transaction pipeline is raised as its own type so callers
can branch on the step that failed. Pipeline errors carry the step name and the
message the node returned, and are raised ``from`` the underlying exception.
"""
from enum import Enum
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Receipt


class BroadcastFailure(str, Enum):
    """
    Reasons a node can refuse a raw transaction.
    """
    DUPLICATE_NONCE = "DUPLICATE_NONCE"
    UNDERPRICED = "UNDERPRICED"
    REJECTED = "REJECTED"
    UNREACHABLE = "UNREACHABLE"


class YieldPoolError(Exception):
    """Base exception for all YieldPool SDK errors."""
    pass


class NetworkError(YieldPoolError):
    """Raised when the connected node is not on the expected chain."""
    pass


class EncodingError(YieldPoolError):
    """Raised when call data cannot be packed or return data unpacked."""
    pass


class ConnectorError(YieldPoolError):
    """Raised when a chain node request fails or returns malformed data."""

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        node_message: Optional[str] = None,
        reverted: bool = False
    ):
        self.method = method
        self.node_message = node_message
        self.reverted = reverted
        super().__init__(message)


class ConnectorUnreachableError(ConnectorError):
    """Raised when the chain node cannot be reached at all."""
    pass


class PipelineError(YieldPoolError):
    """
    Base class for failures of a single transaction pipeline step.

    Attributes:
        step: Name of the step that failed (e.g. "fee", "nonce", "broadcast")
        node_message: Message supplied by the node, if any
    """
    step = "pipeline"

    def __init__(self, message: str, node_message: Optional[str] = None, step: Optional[str] = None):
        if step is not None:
            self.step = step
        self.node_message = node_message
        super().__init__(message)

    @property
    def unreachable(self) -> bool:
        """True when the failure was caused by an unreachable node."""
        return isinstance(self.__cause__, ConnectorUnreachableError)


class FeeQueryError(PipelineError):
    """Raised when the suggested gas price cannot be obtained."""
    step = "fee"


class NonceQueryError(PipelineError):
    """Raised when the signer's pending nonce cannot be obtained."""
    step = "nonce"


class GasEstimationError(PipelineError):
    """
    Raised when gas estimation fails.

    ``would_revert`` is set when the node reported an execution revert while
    simulating the call. This is a strong but not certain sign that the
    transaction would revert on chain.
    """
    step = "gas"

    def __init__(self, message: str, node_message: Optional[str] = None, would_revert: bool = False):
        self.would_revert = would_revert
        super().__init__(message, node_message)


class SigningError(PipelineError):
    """Raised when a transaction cannot be signed. Always local, never retried."""
    step = "sign"


class BroadcastError(PipelineError):
    """Raised when the node refuses a signed transaction."""
    step = "broadcast"

    def __init__(
        self,
        message: str,
        reason: BroadcastFailure = BroadcastFailure.REJECTED,
        node_message: Optional[str] = None
    ):
        self.reason = reason
        super().__init__(message, node_message)

    @property
    def retryable(self) -> bool:
        """
        Whether resubmitting can succeed.

        Duplicate-nonce and underpriced rejections only succeed after the nonce
        or fee is refreshed; an unreachable node may accept the same
        transaction later. A plain rejection is fatal.
        """
        return self.reason != BroadcastFailure.REJECTED


class ConfirmationTimeoutError(PipelineError):
    """
    Raised when the wait for a receipt is cancelled or its deadline passes.

    The outcome is ambiguous: the transaction was not retracted and may still
    be mined later.
    """
    step = "confirm"

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        self.tx_hash = tx_hash
        super().__init__(message)


class ExecutionRevertedError(PipelineError):
    """Raised when a transaction was mined but the contract reverted it."""
    step = "confirm"

    def __init__(self, message: str, receipt: "Receipt"):
        self.receipt = receipt
        super().__init__(message)

    @property
    def gas_used(self) -> int:
        return self.receipt.gas_used


class OperationCancelledError(PipelineError):
    """Raised when a call context is cancelled or expires before a step runs."""
    pass

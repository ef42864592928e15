"""
YieldPool SDK - deposit, withdraw and claim rewards on a yield farming pool.
"""
from .client import PoolClient
from .config import ClientSettings, NetworkConfig
from .connector import ChainConnector
from .context import CallContext
from .encoder import CallEncoder, POOL_ABI
from .exceptions import (
    YieldPoolError,
    NetworkError,
    EncodingError,
    ConnectorError,
    ConnectorUnreachableError,
    PipelineError,
    FeeQueryError,
    NonceQueryError,
    GasEstimationError,
    SigningError,
    BroadcastError,
    BroadcastFailure,
    ConfirmationTimeoutError,
    ExecutionRevertedError,
    OperationCancelledError,
)
from .models import (
    Address, CallIntent, UnsignedTransaction, SignedTransaction, Receipt, PoolInfo, UserPosition
)
from .nonce import NonceManager
from .signer import Signer, LocalSigner
from .version import __version__

__all__ = [
    "PoolClient",
    "ClientSettings",
    "NetworkConfig",
    "ChainConnector",
    "CallContext",
    "CallEncoder",
    "POOL_ABI",
    "YieldPoolError",
    "NetworkError",
    "EncodingError",
    "ConnectorError",
    "ConnectorUnreachableError",
    "PipelineError",
    "FeeQueryError",
    "NonceQueryError",
    "GasEstimationError",
    "SigningError",
    "BroadcastError",
    "BroadcastFailure",
    "ConfirmationTimeoutError",
    "ExecutionRevertedError",
    "OperationCancelledError",
    "Address",
    "CallIntent",
    "UnsignedTransaction",
    "SignedTransaction",
    "Receipt",
    "PoolInfo",
    "UserPosition",
    "NonceManager",
    "Signer",
    "LocalSigner",
    "__version__",
]

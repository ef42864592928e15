"""
Data models for the YieldPool SDK.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from eth_utils import is_hex_address, to_canonical_address, to_checksum_address
from pydantic import BaseModel, ConfigDict, Field, field_validator


@dataclass(frozen=True)
class Address:
    """20-byte account or contract address. Equality is byte-exact."""
    raw: bytes

    def __post_init__(self):
        if not isinstance(self.raw, bytes) or len(self.raw) != 20:
            raise ValueError(f"Address must be exactly 20 bytes, got: {self.raw!r}")

    @classmethod
    def from_hex(cls, value: str) -> "Address":
        """
        Parse a 0x-prefixed hex address (any letter case).

        Raises:
            ValueError: If the string is not a 20-byte hex address
        """
        if not isinstance(value, str) or not is_hex_address(value):
            raise ValueError(f"Invalid address: {value!r}")
        return cls(to_canonical_address(value))

    @classmethod
    def parse(cls, value: Union["Address", str, bytes]) -> "Address":
        if isinstance(value, Address):
            return value
        if isinstance(value, bytes):
            return cls(value)
        return cls.from_hex(value)

    @property
    def checksum(self) -> str:
        return to_checksum_address(self.raw)

    def __str__(self) -> str:
        return self.checksum


@dataclass(frozen=True)
class CallIntent:
    """A contract method name with its ordered arguments."""
    method: str
    args: Tuple[Any, ...] = ()


class UnsignedTransaction(BaseModel):
    """Legacy (gasPrice) transaction ready to be signed"""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    nonce: int = Field(..., ge=0)
    to: Address
    value: int = Field(0, ge=0)
    gas: int = Field(..., ge=0)
    gas_price: int = Field(..., ge=0)
    data: bytes = b""

    def to_tx_dict(self, chain_id: int) -> Dict[str, Any]:
        """
        Render the transaction in the dict form eth-account signs.

        Args:
            chain_id: Chain the signature is bound to (EIP-155)
        """
        return {
            "nonce": self.nonce,
            "to": self.to.checksum,
            "value": self.value,
            "gas": self.gas,
            "gasPrice": self.gas_price,
            "data": "0x" + self.data.hex(),
            "chainId": chain_id,
        }


class SignedTransaction(BaseModel):
    """Signed transaction bound to a chain id"""
    model_config = ConfigDict(frozen=True)

    transaction: UnsignedTransaction
    chain_id: int
    raw_transaction: bytes
    tx_hash: str
    v: int
    r: int
    s: int


class Receipt(BaseModel):
    """Transaction receipt from the blockchain"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tx_hash: str = Field(..., alias="transactionHash")
    block_number: int = Field(..., alias="blockNumber")
    block_hash: Optional[str] = Field(None, alias="blockHash")
    status: int
    gas_used: int = Field(..., alias="gasUsed")
    from_address: Optional[str] = Field(None, alias="from")
    to_address: Optional[str] = Field(None, alias="to")
    logs: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("tx_hash", "block_hash", mode="before")
    @classmethod
    def _hexify(cls, value):
        if isinstance(value, (bytes, bytearray)):
            return "0x" + bytes(value).hex()
        return value

    @field_validator("logs", mode="before")
    @classmethod
    def _plain_logs(cls, value):
        return [dict(entry) for entry in value or []]

    @property
    def succeeded(self) -> bool:
        return self.status == 1

    @classmethod
    def from_web3(cls, web3_receipt: Any) -> "Receipt":
        """
        Convert a web3 receipt (AttributeDict or dict) into a Receipt.

        Args:
            web3_receipt: The receipt as returned by web3
        """
        return cls.model_validate(dict(web3_receipt))


class PoolInfo(BaseModel):
    """Pool-wide statistics"""
    total_value_locked: int
    current_apy_bps: int
    reward_rate: int
    last_update_time: int


class UserPosition(BaseModel):
    """A single account's position in the pool"""
    address: str
    staked_balance: int
    pending_rewards: int
    last_claim_time: int
    reward_debt: int

"""
Call encoder for the pool contract.

Packs method calls into call data and unpacks return data, driven by the
contract's ABI.
"""
import json
import logging
from typing import Any, Dict, List, Sequence, Tuple, Union

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError as AbiEncodingError
from eth_utils import function_abi_to_4byte_selector

from .exceptions import EncodingError

logger = logging.getLogger(__name__)


def _function(name: str, inputs: Sequence[Tuple[str, str]], outputs: Sequence[str], mutability: str) -> Dict[str, Any]:
    return {
        "inputs": [{"internalType": t, "name": n, "type": t} for n, t in inputs],
        "name": name,
        "outputs": [{"internalType": t, "name": "", "type": t} for t in outputs],
        "stateMutability": mutability,
        "type": "function",
    }


# ABI for the yield farming pool contract
POOL_ABI = [
    _function("deposit", [("amount", "uint256")], [], "nonpayable"),
    _function("withdraw", [("amount", "uint256")], [], "nonpayable"),
    _function("claimRewards", [], [], "nonpayable"),
    _function("balanceOf", [("account", "address")], ["uint256"], "view"),
    _function("pendingRewards", [("account", "address")], ["uint256"], "view"),
    _function("totalValueLocked", [], ["uint256"], "view"),
    _function("getCurrentAPY", [], ["uint256"], "view"),
]


class CallEncoder:
    """
    ABI-driven call encoder/decoder.

    An encoder built from an empty or malformed ABI can still be constructed,
    but every ``pack``/``unpack`` call on it raises EncodingError.
    """

    def __init__(self, abi: Union[str, List[Dict[str, Any]], None] = None):
        self._functions: Dict[str, Dict[str, Any]] = {}
        self._load_error = None
        try:
            self._functions = self._index(abi if abi is not None else POOL_ABI)
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            self._load_error = str(e)
            logger.error(f"Invalid contract ABI: {e}")

    @staticmethod
    def _index(abi: Union[str, List[Dict[str, Any]]]) -> Dict[str, Dict[str, Any]]:
        if isinstance(abi, str):
            abi = json.loads(abi)
        if not isinstance(abi, list) or not abi:
            raise ValueError("ABI must be a non-empty list of entries")

        functions = {}
        for entry in abi:
            if entry.get("type", "function") != "function":
                continue
            types = [inp["type"] for inp in entry.get("inputs", [])]
            outputs = [out["type"] for out in entry.get("outputs", [])]
            functions[entry["name"]] = {
                "selector": function_abi_to_4byte_selector(entry),
                "inputs": types,
                "outputs": outputs,
            }
        if not functions:
            raise ValueError("ABI contains no functions")
        return functions

    def _lookup(self, method: str) -> Dict[str, Any]:
        if self._load_error is not None:
            raise EncodingError(f"Cannot use '{method}': invalid ABI ({self._load_error})")
        try:
            return self._functions[method]
        except KeyError:
            raise EncodingError(f"Function {method} not found in ABI")

    def pack(self, method: str, *args: Any) -> bytes:
        """
        Encode a method call into call data.

        Args:
            method: Function name
            *args: Function arguments, in ABI order

        Returns:
            4-byte selector followed by the ABI-encoded arguments

        Raises:
            EncodingError: If the method is unknown or the arguments don't fit
        """
        fn = self._lookup(method)
        if len(args) != len(fn["inputs"]):
            raise EncodingError(
                f"{method} expects {len(fn['inputs'])} arguments, got {len(args)}"
            )
        try:
            encoded = encode(fn["inputs"], list(args)) if args else b""
        except (AbiEncodingError, TypeError, ValueError, OverflowError) as e:
            raise EncodingError(f"Failed to pack {method} data: {e}") from e
        return fn["selector"] + encoded

    def unpack(self, method: str, data: Union[bytes, str]) -> Tuple[Any, ...]:
        """
        Decode the return data of a method call.

        Args:
            method: Function name
            data: Raw return bytes or 0x-prefixed hex

        Returns:
            Tuple of decoded values (empty for functions with no outputs)
        """
        fn = self._lookup(method)
        if isinstance(data, str):
            try:
                data = bytes.fromhex(data[2:] if data.startswith("0x") else data)
            except ValueError as e:
                raise EncodingError(f"Invalid return data for {method}: {e}") from e
        if not fn["outputs"]:
            return ()
        try:
            return tuple(decode(fn["outputs"], data))
        except (DecodingError, TypeError, ValueError) as e:
            raise EncodingError(f"Failed to unpack {method} result: {e}") from e

"""
Utility functions for the YieldPool SDK.
"""
from typing import Any, Union


def node_message(exc: BaseException) -> str:
    """
    Extract the message a node attached to an error.

    web3 surfaces JSON-RPC errors either as an exception whose first argument is
    the error object ({"code": ..., "message": ...}), as an exception carrying
    the raw ``rpc_response``, or with a ``message`` attribute (contract reverts).

    Args:
        exc: Exception raised by web3 or the transport

    Returns:
        Best available human-readable message
    """
    for arg in getattr(exc, "args", ()):
        if isinstance(arg, dict) and "message" in arg:
            return str(arg["message"])

    rpc_response = getattr(exc, "rpc_response", None)
    if isinstance(rpc_response, dict):
        error = rpc_response.get("error")
        if isinstance(error, dict) and "message" in error:
            return str(error["message"])

    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message

    return str(exc) or type(exc).__name__


def to_hex(value: Union[bytes, bytearray, str]) -> str:
    """Normalize bytes or hex text to a lowercase 0x-prefixed hex string."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    text = value.lower()
    return text if text.startswith("0x") else "0x" + text


def is_uint(value: Any) -> bool:
    """True for non-negative ints (bools excluded)."""
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0

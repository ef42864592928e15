"""
Configuration for the YieldPool SDK.

Network presets ship with the package in ``data/networks.json``; runtime
tunables come from environment variables with sensible defaults.
"""
import json
import os
import urllib.parse
from dataclasses import dataclass
from importlib import resources
from typing import Any, Dict, Optional


class NetworkConfig:
    """Access to the packaged network presets."""

    _networks_cache: Optional[Dict[str, Dict[str, Any]]] = None

    @classmethod
    def load_networks(cls) -> Dict[str, Dict[str, Any]]:
        """
        Load network presets, caching them after the first read.

        Returns:
            Mapping of network name to its settings (chainId, rpc)
        """
        if cls._networks_cache is None:
            path = resources.files("yieldpool_sdk").joinpath("data/networks.json")
            with path.open("r", encoding="utf-8") as f:
                cls._networks_cache = json.load(f)
        return cls._networks_cache

    @classmethod
    def get_network(cls, name: str) -> Dict[str, Any]:
        """
        Get one network preset.

        Raises:
            ValueError: If the network is unknown
        """
        networks = cls.load_networks()
        if name not in networks:
            raise ValueError(
                f"Unknown network '{name}'. Available networks: {', '.join(sorted(networks))}"
            )
        return networks[name]

    @classmethod
    def get_rpc_url(cls, name: str, override: Optional[str] = None) -> str:
        """RPC URL for a network; ``YIELDPOOL_RPC_URL`` or ``override`` wins."""
        return override or os.environ.get("YIELDPOOL_RPC_URL") or cls.get_network(name)["rpc"]


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number (got: {raw!r})")
    if value <= 0:
        raise ValueError(f"{name} must be positive (got: {raw!r})")
    return value


@dataclass(frozen=True)
class ClientSettings:
    """
    Runtime tunables for the pool client.

    Attributes:
        rpc_timeout: HTTP timeout for a single node request, in seconds
        poll_interval: Initial delay between receipt polls, in seconds
        max_poll_interval: Upper bound for the poll delay after backoff
        backoff_factor: Multiplier applied to the poll delay after each miss
        receipt_timeout: Default time to wait for a receipt, in seconds
        gas_multiplier: Factor applied to the gas estimate
    """
    rpc_timeout: float = 30.0
    poll_interval: float = 1.0
    max_poll_interval: float = 8.0
    backoff_factor: float = 1.5
    receipt_timeout: float = 120.0
    gas_multiplier: float = 1.0

    def __post_init__(self):
        for name in ("rpc_timeout", "poll_interval", "max_poll_interval", "receipt_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be at least 1")
        if self.gas_multiplier < 1:
            raise ValueError("gas_multiplier must be at least 1")
        if self.max_poll_interval < self.poll_interval:
            raise ValueError("max_poll_interval must not be smaller than poll_interval")

    @classmethod
    def from_env(cls) -> "ClientSettings":
        """Build settings from ``YIELDPOOL_*`` environment variables."""
        defaults = cls()
        return cls(
            rpc_timeout=_env_float("YIELDPOOL_RPC_TIMEOUT", defaults.rpc_timeout),
            poll_interval=_env_float("YIELDPOOL_POLL_INTERVAL", defaults.poll_interval),
            max_poll_interval=_env_float("YIELDPOOL_MAX_POLL_INTERVAL", defaults.max_poll_interval),
            backoff_factor=_env_float("YIELDPOOL_BACKOFF_FACTOR", defaults.backoff_factor),
            receipt_timeout=_env_float("YIELDPOOL_RECEIPT_TIMEOUT", defaults.receipt_timeout),
            gas_multiplier=_env_float("YIELDPOOL_GAS_MULTIPLIER", defaults.gas_multiplier),
        )


def validate_rpc_url(url: str) -> None:
    """
    Require https for remote RPC endpoints.

    Local endpoints (localhost, 127.0.0.1, ::1) may use http, and
    ``YIELDPOOL_INSECURE_RPC=1`` allows http everywhere for development.

    Raises:
        ValueError: If the URL is malformed or insecure
    """
    parsed = urllib.parse.urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Invalid rpc_url '{url}'")
    host = parsed.hostname or ""
    is_local = host in ("localhost", "127.0.0.1", "::1")
    if parsed.scheme != "https" and not is_local:
        if os.environ.get("YIELDPOOL_INSECURE_RPC") != "1":
            raise ValueError(
                f"rpc_url must use https:// for security (got: {parsed.scheme}://). "
                "Set YIELDPOOL_INSECURE_RPC=1 to allow HTTP for development."
            )

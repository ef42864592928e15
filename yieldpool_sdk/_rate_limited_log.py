"""
Thread-safe rate-limited logging utilities.

The confirmation loop can hit the same node error on every poll; this keeps
those repeats out of the log while the first occurrence stays visible.
"""
import logging
import threading
from typing import Optional

from cachetools import TTLCache

logger = logging.getLogger(__name__)

# At most 100 distinct messages, each suppressed for up to an hour
_log_cache = TTLCache(maxsize=100, ttl=3600)
_log_cache_lock = threading.RLock()


def rate_limited_log(
    message: str,
    level: str = "warning",
    interval: int = 60,
    logger_instance: Optional[logging.Logger] = None
) -> bool:
    """
    Log a message at most once per ``interval`` seconds, in a thread-safe manner.

    Args:
        message: Message to log
        level: Log level (debug, info, warning, error, critical)
        interval: Minimum interval between identical logs in seconds
        logger_instance: Logger to use (defaults to module logger)

    Returns:
        True if the message was emitted, False if it was suppressed
    """
    log_instance = logger_instance or logger
    log_method = getattr(log_instance, level.lower(), log_instance.warning)
    key = f"{level}:{message}"

    with _log_cache_lock:
        now = _log_cache.timer()
        last = _log_cache.get(key)
        if last is not None and now - last < interval:
            return False
        log_method(message)
        _log_cache[key] = now
        return True


def reset_rate_limited_log() -> None:
    """Forget every previously logged message."""
    with _log_cache_lock:
        _log_cache.clear()

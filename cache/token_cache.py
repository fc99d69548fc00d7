import time
from threading import Lock
from utils.logger import get_logger

Logger = get_logger("token_cache")

# Tokens are refreshed this many seconds before they really expire
EXPIRY_MARGIN_SECONDS = 60


class CacheRefreshToken:
    """
    Process-wide in-memory token cache shared by every row worker thread.
    """
    _lock = Lock()
    _data = {}

    @staticmethod
    def set(key, value, expires_in=None):
        expiry_ts = time.time() + max(0, expires_in - EXPIRY_MARGIN_SECONDS) if expires_in else None
        with CacheRefreshToken._lock:
            CacheRefreshToken._data[key] = {
                "value": value,
                "expiry": expiry_ts
            }
        Logger.info(f"[TOKEN CACHE] Stored token under key: {key}")

    @staticmethod
    def get(key):
        with CacheRefreshToken._lock:
            return CacheRefreshToken._data.get(key)

    @staticmethod
    def get_valid(key):
        """Return the cached value, or None when absent or expired. Judged on a single read of the entry."""
        entry = CacheRefreshToken.get(key)
        if not entry:
            Logger.debug(f"[TOKEN CACHE] No token for key={key}")
            return None
        expiry = entry.get("expiry")
        if expiry and expiry < time.time():
            Logger.warning(f"[TOKEN CACHE] Token expired for key={key}")
            return None
        return entry["value"]

    @staticmethod
    def clear():
        with CacheRefreshToken._lock:
            CacheRefreshToken._data.clear()
        Logger.info("[TOKEN CACHE] Cleared token cache.")

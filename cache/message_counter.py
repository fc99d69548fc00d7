from threading import Lock
from utils.logger import get_logger

Logger = get_logger("message_counter")


class MessageCounter:
    """
    Singleton, process-wide sequence number for received messages.
    Only used to correlate log lines ("processed message #N").
    """
    _instance = None
    _lock = Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                # Double-check locking pattern
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._count = 0
                    cls._instance = instance
        return cls._instance

    def next(self) -> int:
        """Increment the counter and return the new value."""
        with MessageCounter._lock:
            self._count += 1
            return self._count

    @property
    def current(self) -> int:
        with MessageCounter._lock:
            return self._count

    @classmethod
    def reset_singleton(cls):
        """Reset singleton instance (useful for testing)."""
        with cls._lock:
            cls._instance = None
            Logger.info("Reset MessageCounter singleton")

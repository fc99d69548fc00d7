from logging.handlers import TimedRotatingFileHandler
from threading import Lock
import logging
import os
import sys

from config.settings import LOG_DIR, LOG_LEVEL

FORMATTER = logging.Formatter(
    '%(asctime)s %(levelname)s [%(name)s] [%(threadName)s] '
    '%(filename)s:%(lineno)d %(funcName)s() - %(message)s'
)

# All loggers write to the same file, so they share one rotating handler
_file_handler = None
_file_handler_lock = Lock()


def _get_file_handler(log_dir=LOG_DIR):
    global _file_handler
    with _file_handler_lock:
        if _file_handler is None:
            os.makedirs(log_dir, exist_ok=True)
            log_path = os.path.join(log_dir, "bulk_record_processor.log")

            # Rotate every hour and keep 48 hours of history
            _file_handler = TimedRotatingFileHandler(
                log_path,
                when='H',
                interval=1,
                backupCount=48,
                encoding='utf-8',
                delay=True
            )
            _file_handler.setFormatter(FORMATTER)
        return _file_handler


def get_logger(name='logger', log_level=LOG_LEVEL):
    logger = logging.getLogger(name)

    if logger.hasHandlers():
        logger.handlers.clear()

    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # ---- INFO + DEBUG + WARNING to STDOUT ----
    stdout_handler = logging.StreamHandler(stream=sys.stdout)
    stdout_handler.setLevel(logging.DEBUG)
    stdout_handler.addFilter(lambda r: r.levelno < logging.ERROR)
    stdout_handler.setFormatter(FORMATTER)
    logger.addHandler(stdout_handler)

    # ---- ERROR to STDERR ----
    stderr_handler = logging.StreamHandler(stream=sys.stderr)
    stderr_handler.setLevel(logging.ERROR)
    stderr_handler.setFormatter(FORMATTER)
    logger.addHandler(stderr_handler)

    if LOG_DIR:
        logger.addHandler(_get_file_handler())

    logger.propagate = False
    return logger


def log_full_error(logger: logging.Logger, error: Exception, message: str = None):
    """Log an exception with its traceback, prefixed by an optional message."""
    logger.error(
        f"{message + ': ' if message else ''}{error.__class__.__name__}: {error}",
        exc_info=(type(error), error, error.__traceback__),
    )

from logging.handlers import TimedRotatingFileHandler

from utils.logger import get_logger


def _file_handlers(logger):
    return [h for h in logger.handlers if isinstance(h, TimedRotatingFileHandler)]


def test_loggers_share_one_rotating_file_handler():
    first = _file_handlers(get_logger("first_component"))
    second = _file_handlers(get_logger("second_component"))

    assert len(first) == len(second) == 1
    assert first[0] is second[0]


def test_getting_a_logger_twice_does_not_stack_handlers():
    get_logger("repeated_component")
    logger = get_logger("repeated_component")

    assert len(logger.handlers) == 3
    assert len(_file_handlers(logger)) == 1

import logging

import pytest

from omnibot.config.constants import LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset the root and application loggers before each test"""
    for name in (None, LOGGER_NAME):
        logger = logging.getLogger(name)
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield

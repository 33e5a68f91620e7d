import logging
import os
from logging.handlers import RotatingFileHandler

from config import LOG_PATH

API_LOGGER_NAME = 'triplink.api'


def setup_api_logger(log_path: str | None = None) -> logging.Logger:
    """Setup and return an application-wide logger for API errors.

    Creates a rotating file handler at `log_path` (defaults to LOG_PATH or
    ./logs/api.log).
    """
    if log_path is None:
        log_path = LOG_PATH
    if log_path is None:
        base = os.path.abspath(os.path.dirname(__file__))
        logs_dir = os.path.join(base, '..', 'logs')
        log_path = os.path.join(logs_dir, 'api.log')
    os.makedirs(os.path.dirname(os.path.abspath(log_path)), exist_ok=True)

    logger = logging.getLogger(API_LOGGER_NAME)
    logger.setLevel(logging.INFO)

    # avoid adding multiple handlers if called multiple times
    if not logger.handlers:
        handler = RotatingFileHandler(log_path, maxBytes=5 * 1024 * 1024, backupCount=5, encoding='utf-8')
        formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(name)s: %(message)s')
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Module logger under the API logger, so its records reach the API log file."""
    return logging.getLogger(API_LOGGER_NAME).getChild(name)

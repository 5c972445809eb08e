import logging
import os
import sys

from src.csv_agent.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _file_handler(formatter: logging.Formatter) -> logging.Handler:
    os.makedirs(settings.LOG_DIR, exist_ok=True)
    handler = logging.FileHandler(os.path.join(settings.LOG_DIR, "app.log"), mode="a")
    handler.setFormatter(formatter)
    return handler


def get_logger(name: str) -> logging.Logger:
    """
    Return a module logger writing to stdout and, unless disabled, logs/app.log.
    Handlers are attached once per name.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if settings.LOG_TO_FILE:
        logger.addHandler(_file_handler(formatter))

    return logger

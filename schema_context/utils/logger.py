"""
Logging setup shared by every module in the package
"""

import os
import logging

ROOT_LOGGER_NAME = "schema_context"


def _setup_root_logger() -> logging.Logger:
    """Attach a single stream handler to the package logger"""
    logger = logging.getLogger(ROOT_LOGGER_NAME)

    if not logger.handlers:
        level_name = os.getenv("SCHEMA_CONTEXT_LOG_LEVEL", "INFO").upper()
        logger.setLevel(getattr(logging, level_name, logging.INFO))

        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger nested under the package logger"""
    _setup_root_logger()

    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")

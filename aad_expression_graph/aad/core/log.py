# aad/core/log.py
"""
Logging setup for the aad_expression_graph package.

Modules log through logging.getLogger(__name__); nothing is printed unless
the application configures handlers, or calls setup_logging().
"""
import logging
import os
from typing import Optional

PACKAGE_LOGGER = "aad_expression_graph"


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Attach a console handler to the package logger.

    Args:
        level: DEBUG, INFO, ... (default: $AAD_GRAPH_LOG_LEVEL, else WARNING)
    """
    if level is None:
        level = os.environ.get("AAD_GRAPH_LOG_LEVEL", "WARNING")
    log_level = getattr(logging, level.upper(), logging.WARNING)

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(log_level)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger

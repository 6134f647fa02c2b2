"""
Logging configuration for the shop API
"""
import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Attach a stdout handler to the ``eshop`` logger tree.

    Safe to call more than once; the handler is only added the first time.
    """
    logger = logging.getLogger("eshop")
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    if not any(getattr(h, "_eshop_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._eshop_handler = True
        logger.addHandler(handler)

    # Prevent duplicate logs through the root logger
    logger.propagate = False
    return logger

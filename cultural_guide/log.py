# cultural_guide/log.py
import logging
import os


def get_logger(name: str) -> logging.Logger:
    """Return a module logger with the service's stream handler attached once."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
        logger.addHandler(handler)
    level = os.getenv("CULTURAL_GUIDE_LOG_LEVEL", "INFO").upper()
    logger.setLevel(getattr(logging, level, logging.INFO))
    logger.propagate = False
    return logger

from __future__ import annotations

import logging

LOGGER_NAME = "bjfit"


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    logger = logging.getLogger(name)

    # Configure logger if not configured
    root = logging.getLogger(LOGGER_NAME)
    if not root.handlers:
        h = logging.StreamHandler()
        h.setFormatter(logging.Formatter("[bjfit] %(levelname)s: %(message)s"))
        root.addHandler(h)
        root.setLevel(logging.INFO)

    return logger

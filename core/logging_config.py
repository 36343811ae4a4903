from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure the `core` logger once per process.

    Streamlit re-executes app.py on every interaction, so an existing handler
    is left alone instead of being stacked.
    """
    logger = logging.getLogger("core")
    logger.setLevel(getattr(logging, str(log_level).upper(), logging.INFO))
    if logger.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(handler)

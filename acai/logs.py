from __future__ import annotations

import logging
import os

ENV_LOG_LEVEL = "ACAI_ERP_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
ROOT_LOGGER = "acai"


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """
    Loggers under "acai.*" share a single stream handler installed on the
    "acai" logger, so repeated calls (Streamlit reruns) don't stack handlers.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        level = os.getenv(ENV_LOG_LEVEL, "INFO").strip().upper()
        root.setLevel(getattr(logging, level, logging.INFO))
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(ch)
    return logging.getLogger(name)

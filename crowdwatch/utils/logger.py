# crowdwatch/utils/logger.py
"""
Logging setup shared by the API, the scan path and the scripts.
One console handler plus a size-rotated file under LOG_DIR; configured once per process
on the first get_logger() call. Alert lines are tagged "[ALERT][KIND]" so they can be grepped.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from crowdwatch.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_FILENAME = "crowdwatch.log"

# Chatty libraries kept at WARNING unless LOG_LEVEL is DEBUG
_NOISY_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "websockets", "httpx")

_configured = False


def _log_dir() -> str:
    if os.path.isabs(settings.LOG_DIR):
        return settings.LOG_DIR
    project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    return os.path.join(project_root, settings.LOG_DIR)


def configure_logging(level: str = None):
    global _configured
    if _configured:
        return
    _configured = True

    level = (level or settings.LOG_LEVEL).upper()
    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    root = logging.getLogger()
    root.setLevel(level)

    console = logging.StreamHandler()
    console.setFormatter(fmt)
    root.addHandler(console)

    if settings.LOG_TO_FILE:
        log_dir = _log_dir()
        os.makedirs(log_dir, exist_ok=True)
        # 10 × 5MB
        file_handler = RotatingFileHandler(
            filename=os.path.join(log_dir, LOG_FILENAME),
            maxBytes=5 * 1024 * 1024,
            backupCount=10,
            encoding="utf-8",
        )
        file_handler.setFormatter(fmt)
        root.addHandler(file_handler)

    if level != "DEBUG":
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    # uvicorn installs its own handlers; route its access / error lines through ours
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = True


def get_logger(name: str) -> logging.Logger:
    """Named logger; every module calls this once at import time."""
    configure_logging()
    return logging.getLogger(name)

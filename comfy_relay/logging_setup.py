from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import List, Optional


LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(process)d/%(threadName)s %(name)s %(pathname)s:%(funcName)s:%(lineno)d - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def configure_logging() -> Optional[str]:
    """
    Logging for the relay service: stdout always, plus a rotating file under
    LOG_DIR when it can be created. Returns the log file path, or None when
    file logging is disabled.
    """
    level_name = (os.getenv("LOG_LEVEL", "INFO") or "INFO").strip().upper()
    level = getattr(logging, level_name, logging.INFO)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    log_file: Optional[str] = None
    file_error: Optional[OSError] = None
    log_dir = (os.getenv("LOG_DIR", "/workspace/logs") or "").strip()
    if log_dir:
        log_file = (os.getenv("LOG_FILE", "") or "").strip() or os.path.join(log_dir, "comfy_relay.log")
        try:
            os.makedirs(log_dir, exist_ok=True)
            handlers.append(RotatingFileHandler(log_file, maxBytes=50 * 1024 * 1024, backupCount=5, encoding="utf-8"))
        except OSError as ex:
            file_error = ex
            log_file = None

    logging.captureWarnings(True)
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT, handlers=handlers, force=True)
    # uvicorn installs its own handlers; route them through root instead.
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        lg = logging.getLogger(name)
        lg.handlers = []
        lg.propagate = True

    logger = logging.getLogger("comfy_relay.logging")
    if file_error is not None:
        logger.warning("comfy_relay file logging disabled: %s", file_error)
    logger.info("comfy_relay logging configured file=%r level=%s", log_file, logging.getLevelName(level))
    return log_file

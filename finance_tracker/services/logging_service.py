from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional


def _find_file_handler(logger: logging.Logger, path: Path) -> Optional[logging.FileHandler]:
    for h in logger.handlers:
        if isinstance(h, logging.FileHandler) and h.baseFilename == os.path.abspath(path):
            return h
    return None


def _has_file_handler(logger: logging.Logger, path: Path) -> bool:
    return _find_file_handler(logger, path) is not None


def configure_logging(log_dir: Path) -> None:
    """Configure application logging (file + console) and attach to uvicorn loggers.

    Idempotent: safe to call multiple times.
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    server_log_path = log_dir / "server.log"
    reminders_log_path = log_dir / "reminders.log"

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    formatter = logging.Formatter(fmt)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Handlers are only built when missing; a FileHandler opens its file on creation
    server_handler = _find_file_handler(root_logger, server_log_path)
    if server_handler is None:
        server_handler = logging.FileHandler(str(server_log_path))
        server_handler.setLevel(logging.DEBUG)
        server_handler.setFormatter(formatter)
        root_logger.addHandler(server_handler)

    if not any(type(h) is logging.StreamHandler for h in root_logger.handlers):
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setLevel(logging.INFO)
        stream_handler.setFormatter(formatter)
        root_logger.addHandler(stream_handler)

    # Fired and cancelled reminders also get their own file
    reminders_logger = logging.getLogger("finance_tracker.reminders")
    reminders_logger.setLevel(logging.INFO)
    if not _has_file_handler(reminders_logger, reminders_log_path):
        reminders_handler = logging.FileHandler(str(reminders_log_path))
        reminders_handler.setLevel(logging.INFO)
        reminders_handler.setFormatter(formatter)
        reminders_logger.addHandler(reminders_handler)

    # Keep third-party chatter out of the DEBUG file
    logging.getLogger("apscheduler").setLevel(logging.INFO)

    for uv_logger_name in ("uvicorn.error", "uvicorn.access", "uvicorn"):
        lg = logging.getLogger(uv_logger_name)
        lg.setLevel(logging.INFO)
        if not _has_file_handler(lg, server_log_path):
            lg.addHandler(server_handler)

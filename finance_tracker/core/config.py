from __future__ import annotations

import os
from pathlib import Path


def _project_root() -> Path:
    # core/config.py -> finance_tracker/core -> finance_tracker -> project root
    return Path(__file__).resolve().parents[2]


PROJECT_ROOT: Path = _project_root()

# Data directory (SQLite DB) and logs
DATA_DIR: Path = Path(os.getenv("FINANCE_DATA_DIR", str(PROJECT_ROOT / "data")))
DB_PATH: Path = Path(os.getenv("FINANCE_DB_PATH", str(DATA_DIR / "finance.db")))
LOG_DIR: Path = Path(os.getenv("FINANCE_LOG_DIR", str(PROJECT_ROOT / "logs")))

# Bearer tokens
JWT_SECRET: str = os.getenv("JWT_SECRET", "change-me")
JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 30)))

# Reminders fire at this local hour; empty timezone means the server's zone
REMINDER_HOUR: int = int(os.getenv("REMINDER_HOUR", "10"))
REMINDER_TIMEZONE: str = os.getenv("REMINDER_TIMEZONE", "")

PORT: int = int(os.getenv("PORT", "8000"))

# finance_tracker/db.py
"""
Database connection and initialization helpers.
This file is the single source of truth for opening the SQLite connection.
"""

import sqlite3
from pathlib import Path
from typing import Generator

from .core import config

# Override with FINANCE_DB_PATH to run the tests against a throwaway copy
DB_PATH = Path(config.DB_PATH)


def get_connection() -> sqlite3.Connection:
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(
        str(DB_PATH),
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    return conn


def get_db_conn() -> Generator[sqlite3.Connection, None, None]:
    """
    Dependency for FastAPI to get database connection.
    """
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


def get_db_path() -> str:
    """Get the database file path."""
    return str(DB_PATH)


def initialise_database() -> None:
    """Create database tables if they don't exist."""
    conn = get_connection()
    cur = conn.cursor()

    # Timestamps are fixed-width UTC strings (see recurrence.format_timestamp)
    cur.execute("""
        CREATE TABLE IF NOT EXISTS transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            type TEXT NOT NULL CHECK (type IN ('income', 'expense')),
            category TEXT NOT NULL,
            amount REAL NOT NULL CHECK (amount >= 0),
            note TEXT,
            date TEXT NOT NULL,
            is_recurring INTEGER NOT NULL DEFAULT 0,
            freq TEXT,
            day_of_month INTEGER,
            weekday INTEGER,
            notify INTEGER NOT NULL DEFAULT 0,
            next_trigger_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_transactions_user_date ON transactions (user_id, date)"
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_transactions_user_trigger "
        "ON transactions (user_id, is_recurring, next_trigger_at)"
    )

    cur.execute("""
        CREATE TABLE IF NOT EXISTS category_limits (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            category TEXT NOT NULL COLLATE NOCASE,
            monthly_limit REAL NOT NULL CHECK (monthly_limit > 0),
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE (user_id, category)
        )
    """)

    # Local mapping recurring transaction -> scheduled notification handle
    cur.execute("""
        CREATE TABLE IF NOT EXISTS reminder_handles (
            transaction_id TEXT PRIMARY KEY,
            handle TEXT NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)

    conn.commit()
    conn.close()

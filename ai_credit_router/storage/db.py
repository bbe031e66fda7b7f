"""
SQLite access for the usage log and credit ledger.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = ".ai-credit-router.db"

# Seconds a writer waits for another BEGIN IMMEDIATE charge to finish
BUSY_TIMEOUT = 5.0


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Open the ledger database, creating its parent directory if needed.

    Callers own the connection and must close it.
    """
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return sqlite3.connect(str(path), timeout=BUSY_TIMEOUT)

import sqlite3
from pathlib import Path

from scanview.utils.log import get_logger

logger = get_logger(__name__)

SCHEMA_PATH = Path(__file__).with_name("schema.sql")

def get_connection(db_path: str) -> sqlite3.Connection:
    """
    Open a dataset DB with rows returned as sqlite3.Row.

    The connection is shared between threads (FastAPI's threadpool, the
    collector's worker thread). File databases use WAL journaling so
    `scanview serve` can read while `scanview collect` is writing.
    """
    conn = sqlite3.connect(db_path, check_same_thread=False, timeout=10.0)
    conn.row_factory = sqlite3.Row
    if db_path != ":memory:":
        conn.execute("PRAGMA journal_mode = WAL;")
    return conn

def init_db(db_path: str) -> sqlite3.Connection:
    """
    Apply schema.sql (idempotent) and return a live connection.
    """
    conn = get_connection(db_path)
    logger.debug("Applying %s to %s", SCHEMA_PATH.name, db_path)
    conn.executescript(SCHEMA_PATH.read_text(encoding="utf-8"))
    conn.commit()
    return conn

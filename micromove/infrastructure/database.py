import sqlite3
import json
import threading
from datetime import datetime
from typing import Any

from micromove.config import DB_PATH

class DatabaseManager:
    """
    SQLite-backed key/value store for client state.
    Each storage key holds one opaque JSON blob, the way the browser
    client keeps its session and settings in local storage.
    """
    def __init__(self, db_path: str = DB_PATH):
        self.db_path = db_path
        self._local = threading.local()
        self._init_db()
    
    def _get_conn(self) -> sqlite3.Connection:
        """Returns this thread's connection, opening it on first use."""
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(self.db_path)
            conn.execute("PRAGMA journal_mode=WAL")
            self._local.conn = conn
        return conn
    
    def _init_db(self):
        """Initialize database schema."""
        with self._get_conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS client_storage (
                    key TEXT PRIMARY KEY,
                    value TEXT,
                    updated_at TIMESTAMP
                )
            """)

    def save_state(self, key: str, value: Any):
        """Stores a JSON-serializable value under key, replacing any previous one."""
        with self._get_conn() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO client_storage (key, value, updated_at) VALUES (?, ?, ?)",
                (key, json.dumps(value), datetime.now().isoformat())
            )
            
    def get_state(self, key: str, default: Any = None) -> Any:
        """Retrieves the value stored under key. Undecodable rows count as missing."""
        cursor = self._get_conn().execute("SELECT value FROM client_storage WHERE key = ?", (key,))
        row = cursor.fetchone()
        if not row:
            return default
        try:
            return json.loads(row[0])
        except (TypeError, ValueError):
            return default

    def delete_state(self, key: str):
        with self._get_conn() as conn:
            conn.execute("DELETE FROM client_storage WHERE key = ?", (key,))

    def close(self):
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None

_DB = None

def get_db() -> DatabaseManager:
    """Returns the process-wide store, created lazily at DB_PATH."""
    global _DB
    if _DB is None:
        _DB = DatabaseManager()
    return _DB

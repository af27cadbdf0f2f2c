"""Key-value blob storage for the planner's persisted itinerary and feed cache."""

import os
import logging
from datetime import datetime
from typing import Optional
from contextlib import contextmanager

# Always import sqlite3 for local dev fallback
import sqlite3

# Try to import psycopg2 for production
try:
    import psycopg2
    HAS_POSTGRES = True
except ImportError:
    HAS_POSTGRES = False

from planner import config

logger = logging.getLogger(__name__)

# Database URL from environment (Render sets this automatically)
DATABASE_URL = os.environ.get("DATABASE_URL")

# Use PostgreSQL if available, otherwise SQLite for local development
USE_POSTGRES = HAS_POSTGRES and DATABASE_URL is not None


def get_connection(db_path: Optional[str] = None):
    """Get a database connection."""
    if USE_POSTGRES:
        # Render uses postgres:// but psycopg2 needs postgresql://
        url = DATABASE_URL
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        return psycopg2.connect(url)
    else:
        conn = sqlite3.connect(db_path or config.get_database_path())
        conn.row_factory = sqlite3.Row
        return conn


@contextmanager
def get_db(db_path: Optional[str] = None):
    """Context manager for database connections."""
    conn = get_connection(db_path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_path: Optional[str] = None):
    """Initialize database tables."""
    with get_db(db_path) as conn:
        cursor = conn.cursor()

        if USE_POSTGRES:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key VARCHAR(255) PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
        else:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)


def get_value(key: str, db_path: Optional[str] = None) -> Optional[str]:
    """Get a stored blob by key, or None if nothing is stored."""
    with get_db(db_path) as conn:
        cursor = conn.cursor()
        if USE_POSTGRES:
            cursor.execute("SELECT value FROM kv_store WHERE key = %s", (key,))
        else:
            cursor.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row[0] if row else None


def set_value(key: str, value: str, db_path: Optional[str] = None) -> None:
    """Insert or replace the blob stored under key."""
    now = datetime.now().isoformat()
    with get_db(db_path) as conn:
        cursor = conn.cursor()
        if USE_POSTGRES:
            cursor.execute("""
                INSERT INTO kv_store (key, value, updated_at) VALUES (%s, %s, %s)
                ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = EXCLUDED.updated_at
            """, (key, value, now))
        else:
            cursor.execute("""
                INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
            """, (key, value, now))


def delete_value(key: str, db_path: Optional[str] = None) -> bool:
    """Delete the blob stored under key. Returns True if something was deleted."""
    with get_db(db_path) as conn:
        cursor = conn.cursor()
        if USE_POSTGRES:
            cursor.execute("DELETE FROM kv_store WHERE key = %s", (key,))
        else:
            cursor.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        return cursor.rowcount > 0


class KeyValueStore:
    """Store collaborator backed by the kv_store table.

    Errors propagate; the persistence adapter decides how to degrade.
    """

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path
        init_db(db_path)

    def get(self, key: str) -> Optional[str]:
        return get_value(key, self.db_path)

    def set(self, key: str, value: str) -> None:
        set_value(key, value, self.db_path)

    def delete(self, key: str) -> bool:
        return delete_value(key, self.db_path)


class MemoryStore:
    """In-process store collaborator, lost when the process exits."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

"""Database schema and connection management for SQLite."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from partyupload import config


def init_database() -> None:
    """
    Initialize database and create tables if they don't exist.
    """
    db_path = Path(config.DATABASE_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db_connection() as conn:
        cursor = conn.cursor()

        cursor.execute("PRAGMA journal_mode=WAL")

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS events (
                event_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                admin_password_hash TEXT NOT NULL,
                guest_password_hash TEXT,
                allowed_mime_types TEXT NOT NULL DEFAULT '[]',
                allow_guest_download INTEGER NOT NULL DEFAULT 0,
                allow_guest_upload INTEGER NOT NULL DEFAULT 1,
                require_upload_folder INTEGER NOT NULL DEFAULT 0,
                upload_folder_hint TEXT,
                upload_max_file_size_bytes INTEGER NOT NULL DEFAULT 0,
                upload_max_total_size_bytes INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS files (
                file_id TEXT PRIMARY KEY,
                event_id TEXT NOT NULL,
                folder TEXT NOT NULL DEFAULT '',
                name TEXT NOT NULL,
                size INTEGER NOT NULL,
                mime_type TEXT,
                storage_key TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'pending',
                created_at TEXT NOT NULL,
                UNIQUE(event_id, folder, name),
                FOREIGN KEY(event_id) REFERENCES events(event_id) ON DELETE CASCADE
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS folders (
                event_id TEXT NOT NULL,
                path TEXT NOT NULL,
                created_at TEXT NOT NULL,
                PRIMARY KEY(event_id, path),
                FOREIGN KEY(event_id) REFERENCES events(event_id) ON DELETE CASCADE
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_files_event_folder ON files(event_id, folder)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_files_status_created ON files(status, created_at)
        """)

        conn.commit()


@contextmanager
def get_db_connection() -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.
    """
    conn = sqlite3.connect(config.DATABASE_PATH, timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def immediate_transaction(conn: sqlite3.Connection) -> Generator[sqlite3.Cursor, None, None]:
    """
    Run a write transaction that takes the database write lock up front.

    Commits on success and rolls back on any exception.
    """
    cursor = conn.cursor()
    cursor.execute("BEGIN IMMEDIATE")
    try:
        yield cursor
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()

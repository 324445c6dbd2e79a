"""
SQLite storage for events, responses and finalization records.

Events and responses are kept as documents: plain columns for the
values queried on (owner, status, code, version) and JSON text for the
nested structures (custom fields, voting categories, field responses).
Schema changes are numbered entries in ``MIGRATIONS``; ``init_db``
runs the ones the ``migrations`` table has not seen yet.
"""

import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .config import settings

PACKAGE_ROOT = Path(__file__).resolve().parents[2]


def get_database_path() -> str:
    """Absolute path of the database file.

    Relative ``settings.database_url`` values are taken from the
    ``event_voting_api`` package directory.
    """
    if os.path.isabs(settings.database_url):
        return settings.database_url
    return str(PACKAGE_ROOT / settings.database_url)


def get_connection() -> sqlite3.Connection:
    """Open a connection with name-addressable rows and foreign keys on."""
    conn = sqlite3.connect(get_database_path())
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_cursor() -> Iterator[sqlite3.Cursor]:
    """Cursor on a fresh connection, committed if the block succeeds."""
    conn = get_connection()
    try:
        yield conn.cursor()
        conn.commit()
    finally:
        conn.close()


MIGRATIONS: list[tuple[int, str]] = [
    # 1: users, events, responses, finalization, audit
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email TEXT NOT NULL UNIQUE,
            full_name TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            event_code TEXT NOT NULL UNIQUE,
            name TEXT NOT NULL,
            description TEXT NOT NULL,
            created_by INTEGER NOT NULL,
            status TEXT NOT NULL DEFAULT 'open',
            closes_by TIMESTAMP,
            event_date TEXT,
            place TEXT,
            event_dates TEXT NOT NULL,
            event_places TEXT NOT NULL,
            custom_fields TEXT NOT NULL DEFAULT '{}',
            voting_categories TEXT NOT NULL DEFAULT '[]',
            version INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL,
            FOREIGN KEY(created_by) REFERENCES users(id)
        );

        -- One response per (event, user).  Submissions upsert on this key.
        CREATE TABLE IF NOT EXISTS event_responses (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            event_id INTEGER NOT NULL,
            user_id INTEGER NOT NULL,
            user_email TEXT NOT NULL,
            field_responses TEXT NOT NULL DEFAULT '[]',
            suggested_dates TEXT NOT NULL DEFAULT '[]',
            suggested_places TEXT NOT NULL DEFAULT '[]',
            suggested_options TEXT NOT NULL DEFAULT '{}',
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL,
            UNIQUE(event_id, user_id),
            FOREIGN KEY(event_id) REFERENCES events(id),
            FOREIGN KEY(user_id) REFERENCES users(id)
        );

        -- The primary key makes finalization "create if not exists".
        CREATE TABLE IF NOT EXISTS finalized_events (
            event_id INTEGER PRIMARY KEY,
            finalized_date TEXT,
            finalized_place TEXT,
            custom_field_selections TEXT NOT NULL DEFAULT '{}',
            finalized_by INTEGER NOT NULL,
            finalized_at TIMESTAMP NOT NULL,
            FOREIGN KEY(event_id) REFERENCES events(id),
            FOREIGN KEY(finalized_by) REFERENCES users(id)
        );

        CREATE TABLE IF NOT EXISTS audit_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER,
            action TEXT NOT NULL,
            object_type TEXT,
            object_id INTEGER,
            timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            details TEXT,
            FOREIGN KEY(user_id) REFERENCES users(id)
        );
        """,
    ),
    # 2: lookup indices
    (
        2,
        """
        CREATE INDEX IF NOT EXISTS idx_events_created_by ON events(created_by);
        CREATE INDEX IF NOT EXISTS idx_event_responses_event_id ON event_responses(event_id);
        CREATE INDEX IF NOT EXISTS idx_audit_logs_object ON audit_logs(object_type, object_id);
        """,
    ),
]


def init_db() -> None:
    """Create the schema or bring it up to the newest migration."""
    with get_cursor() as cursor:
        cursor.execute("CREATE TABLE IF NOT EXISTS migrations (version INTEGER PRIMARY KEY)")
        applied = {row["version"] for row in cursor.execute("SELECT version FROM migrations")}
        for version, script in MIGRATIONS:
            if version in applied:
                continue
            cursor.executescript(script)
            cursor.execute("INSERT INTO migrations (version) VALUES (?)", (version,))

# Copyright 2025 John Brosnihan
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""SQLite schema for session and message storage."""

import logging
import sqlite3
from contextlib import contextmanager

logger = logging.getLogger(__name__)

SESSIONS_TABLE = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    status TEXT NOT NULL DEFAULT 'idle',
    working_dir TEXT NOT NULL,
    title TEXT,
    total_tokens INTEGER DEFAULT 0,
    current_plan TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

MESSAGES_TABLE = """
CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL,
    role TEXT NOT NULL,
    content TEXT,
    tool_call_id TEXT,
    tool_calls TEXT,
    created_at TEXT NOT NULL,
    FOREIGN KEY (session_id) REFERENCES sessions(id) ON DELETE CASCADE
);
"""

MESSAGES_SESSION_INDEX = """
CREATE INDEX IF NOT EXISTS idx_messages_session ON messages(session_id);
"""

SCHEMA = SESSIONS_TABLE + MESSAGES_TABLE + MESSAGES_SESSION_INDEX


def init_schema(conn: sqlite3.Connection) -> None:
    """Create the sessions and messages tables and their index."""
    conn.executescript(SCHEMA)


def get_connection(database: str = ":memory:") -> sqlite3.Connection:
    """
    Open a SQLite connection with the session schema applied.

    Rows come back as ``sqlite3.Row`` and foreign keys are enforced, so
    deleting a session cascades to its messages.

    Args:
        database: Database file path, or ":memory:" for a private in-memory store

    Returns:
        sqlite3.Connection: Connection ready for session/message queries
    """
    conn = sqlite3.connect(database)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    init_schema(conn)
    logger.debug(f"SQLite database initialized: {database}")
    return conn


@contextmanager
def connect(database: str = ":memory:"):
    """Context manager wrapper for get_connection() that always closes."""
    conn = get_connection(database)
    try:
        yield conn
    finally:
        conn.close()

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
"""Tests for the session database schema and test database helpers."""

import sqlite3

import pytest

from app.db import connect
from db_helper import (
    DatabaseNotInitializedError,
    clear_test_db,
    close_test_db,
    create_test_db,
    get_test_db,
    get_test_messages,
    get_test_session,
    insert_test_message,
    insert_test_session,
    open_test_db,
)


def _row_count(db, table):
    return db.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


def test_get_test_db_before_create_raises():
    """Test that using the shared database before creation fails loudly."""
    with pytest.raises(DatabaseNotInitializedError, match="create_test_db"):
        get_test_db()


def test_create_test_db_twice_leaves_one_live_instance():
    """Test that re-creating closes the previous handle and starts empty."""
    first = create_test_db()
    insert_test_session(first, "s1")

    second = create_test_db()

    assert get_test_db() is second
    with pytest.raises(sqlite3.ProgrammingError):
        first.execute("SELECT 1")
    assert _row_count(second, "sessions") == 0
    assert _row_count(second, "messages") == 0


def test_schema_has_tables_and_index(test_db):
    """Test that the schema creates both tables and the session index."""
    names = {
        row["name"]
        for row in test_db.execute("SELECT name FROM sqlite_master WHERE type IN ('table', 'index')")
    }

    assert {"sessions", "messages", "idx_messages_session"} <= names


def test_insert_and_get_session(test_db):
    """Test that inserted sessions carry the given values and defaults."""
    insert_test_session(test_db, "s1", "/tmp", "active")

    session = get_test_session(test_db, "s1")

    assert session["status"] == "active"
    assert session["working_dir"] == "/tmp"
    assert session["total_tokens"] == 0
    assert session["title"] is None
    assert session["current_plan"] is None
    assert session["created_at"] == session["updated_at"]


def test_insert_session_defaults(test_db):
    """Test default working dir and status."""
    insert_test_session(test_db, "s2")

    session = get_test_session(test_db, "s2")

    assert session["status"] == "idle"
    assert session["working_dir"] == "/test"


def test_get_missing_session_returns_none(test_db):
    """Test that unknown sessions return None."""
    assert get_test_session(test_db, "nope") is None


def test_messages_ordered_by_id(test_db):
    """Test that messages come back in insertion order."""
    insert_test_session(test_db, "s1")
    insert_test_message(test_db, "s1", "user", "hello")
    insert_test_message(test_db, "s1", "assistant", None, tool_calls='[{"id": "t1"}]')
    insert_test_message(test_db, "s1", "tool", "result", tool_call_id="t1")

    messages = get_test_messages(test_db, "s1")

    assert [message["role"] for message in messages] == ["user", "assistant", "tool"]
    assert [message["id"] for message in messages] == sorted(m["id"] for m in messages)
    assert messages[1]["content"] is None
    assert messages[2]["tool_call_id"] == "t1"


def test_message_for_unknown_session_rejected(test_db):
    """Test that foreign keys are enforced on messages."""
    with pytest.raises(sqlite3.IntegrityError):
        insert_test_message(test_db, "ghost", "user", "hi")


def test_deleting_session_cascades_to_messages(test_db):
    """Test that deleting a session removes its messages."""
    insert_test_session(test_db, "s1")
    insert_test_session(test_db, "s2")
    insert_test_message(test_db, "s1", "user", "one")
    insert_test_message(test_db, "s2", "user", "two")

    test_db.execute("DELETE FROM sessions WHERE id = ?", ("s1",))

    assert get_test_messages(test_db, "s1") == []
    assert len(get_test_messages(test_db, "s2")) == 1


def test_clear_test_db_empties_both_tables():
    """Test that clearing removes all sessions and messages."""
    db = create_test_db()
    insert_test_session(db, "s1")
    insert_test_message(db, "s1", "user", "hello")

    clear_test_db()

    assert _row_count(db, "sessions") == 0
    assert _row_count(db, "messages") == 0
    assert get_test_db() is db


def test_clear_and_close_are_noops_when_uninitialized():
    """Test that clear and close tolerate a missing database."""
    clear_test_db()
    close_test_db()
    close_test_db()

    with pytest.raises(DatabaseNotInitializedError):
        get_test_db()


def test_close_test_db_releases_instance():
    """Test that closing makes the shared database unavailable."""
    db = create_test_db()

    close_test_db()

    with pytest.raises(sqlite3.ProgrammingError):
        db.execute("SELECT 1")
    with pytest.raises(DatabaseNotInitializedError):
        get_test_db()


def test_open_test_db_is_isolated_from_shared_instance():
    """Test that scoped databases do not touch the shared instance."""
    shared = create_test_db()
    insert_test_session(shared, "shared")

    with open_test_db() as scoped:
        assert get_test_session(scoped, "shared") is None
        insert_test_session(scoped, "scoped")

    assert get_test_db() is shared
    assert get_test_session(shared, "scoped") is None
    with pytest.raises(sqlite3.ProgrammingError):
        scoped.execute("SELECT 1")


def test_connect_closes_on_exit():
    """Test that the schema context manager closes its connection."""
    with connect() as conn:
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1

    with pytest.raises(sqlite3.ProgrammingError):
        conn.execute("SELECT 1")

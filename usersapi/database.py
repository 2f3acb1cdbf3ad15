"""SQLite-backed persistence for users."""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Sequence

from .models import Found, NotFound, Result, User

logger = logging.getLogger("usersapi.database")

# Largest value SQLite can store in an INTEGER column; larger ids never match a row.
MAX_ROW_ID = 2**63 - 1


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _parse_timestamp(value: str) -> datetime:
    # CURRENT_TIMESTAMP is stored as naive UTC text ("YYYY-MM-DD HH:MM:SS").
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Database:
    """Thin wrapper around SQLite for the ``users`` table.

    A single instance is created at start-up and shared by every request.
    Each operation opens its own short-lived connection, so the instance is
    safe to use from several worker threads at once.
    """

    def __init__(self, path: Path, *, log_statements: bool = False) -> None:
        _ensure_directory(path)
        self._path = path
        self._log_statements = log_statements

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _execute(self, conn: sqlite3.Connection, query: str, params: Sequence[object] = ()) -> sqlite3.Cursor:
        try:
            return conn.execute(query, params)
        except sqlite3.Error as exc:
            if self._log_statements:
                logger.error("Database error: %s", exc)
                logger.error("Failed SQL query: %s", " ".join(query.split()))
            raise

    def initialize(self) -> None:
        """Create the ``users`` table if it does not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    firstName TEXT NOT NULL,
                    lastName TEXT NOT NULL,
                    created TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );
                """
            )

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def list_users(self) -> Result[List[User]]:
        with self._connect() as conn:
            rows = self._execute(conn, "SELECT * FROM users ORDER BY id").fetchall()
        if not rows:
            return NotFound()
        return Found([self._row_to_user(row) for row in rows])

    def get_user(self, user_id: int) -> Result[User]:
        if user_id > MAX_ROW_ID:
            return NotFound()
        with self._connect() as conn:
            row = self._execute(conn, "SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return NotFound()
        return Found(self._row_to_user(row))

    def create_user(self, first_name: str, last_name: str) -> Found[User]:
        """Insert a user and return the stored row."""

        with self._connect() as conn:
            cursor = self._execute(
                conn,
                "INSERT INTO users (firstName, lastName) VALUES (?, ?)",
                (first_name, last_name),
            )
            user_id = cursor.lastrowid

        created = self.get_user(user_id)
        if isinstance(created, NotFound):
            raise RuntimeError(f"Failed to load user {user_id} after creation")
        return created

    def update_user(self, user_id: int, first_name: str, last_name: str) -> Result[User]:
        """Replace both names of an existing user and return the refreshed row."""

        if user_id > MAX_ROW_ID:
            return NotFound()
        with self._connect() as conn:
            cursor = self._execute(
                conn,
                "UPDATE users SET firstName = ?, lastName = ? WHERE id = ?",
                (first_name, last_name, user_id),
            )
            if cursor.rowcount != 1:
                return NotFound()

        return self.get_user(user_id)

    def delete_user(self, user_id: int) -> Result[int]:
        if user_id > MAX_ROW_ID:
            return NotFound()
        with self._connect() as conn:
            cursor = self._execute(conn, "DELETE FROM users WHERE id = ?", (user_id,))
            if cursor.rowcount != 1:
                return NotFound()
        return Found(user_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=int(row["id"]),
            first_name=str(row["firstName"]),
            last_name=str(row["lastName"]),
            created=_parse_timestamp(str(row["created"])),
        )


__all__ = ["Database", "MAX_ROW_ID"]

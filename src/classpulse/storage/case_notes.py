"""Summary: Bounded case-note storage backends.

Importance: Keeps the most recent case notes and evicts the oldest beyond capacity.
Alternatives: Use an unbounded table with a scheduled cleanup job.
"""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from collections import deque
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator

from classpulse.models import CaseNote


DEFAULT_CAPACITY = 1000


class CaseNoteStore(ABC):
    """Summary: Interface for case-note persistence.

    Importance: Lets services swap the in-memory buffer for SQLite.
    Alternatives: Use a module-level list shared by every request.
    """

    capacity: int

    @abstractmethod
    def append(self, note: CaseNote) -> CaseNote:
        """Summary: Store a note, evicting the oldest when over capacity."""

    @abstractmethod
    def list(self) -> list[CaseNote]:
        """Summary: Return stored notes, oldest first."""

    @abstractmethod
    def delete(self, note_id: str) -> bool:
        """Summary: Delete a note by id and report whether it existed."""


class RingBufferCaseNoteStore(CaseNoteStore):
    """Summary: In-process case-note store backed by a bounded deque.

    Importance: Reproduces the keep-most-recent policy without a database.
    Alternatives: Trim a plain list after every append.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._notes: deque[CaseNote] = deque(maxlen=capacity)

    def append(self, note: CaseNote) -> CaseNote:
        self._notes.append(note)
        return note

    def list(self) -> list[CaseNote]:
        return list(self._notes)

    def delete(self, note_id: str) -> bool:
        remaining = [note for note in self._notes if note.id != note_id]
        removed = len(remaining) != len(self._notes)
        self._notes = deque(remaining, maxlen=self.capacity)
        return removed


class SqliteCaseNoteStore(CaseNoteStore):
    """Summary: SQLite-backed case-note store with the same eviction rule.

    Importance: Survives process restarts for single-node deployments.
    Alternatives: Use Postgres and SQLAlchemy.
    """

    def __init__(self, db_path: str, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._db_path = Path(db_path)
        self.capacity = capacity

    def initialize(self) -> None:
        """Summary: Create the case_notes table if it does not exist.

        Importance: Ensures the database is ready before the first request.
        Alternatives: Run migrations using a dedicated migration tool.
        """

        with self._connection() as connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS case_notes (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    date TEXT NOT NULL,
                    client_name TEXT NOT NULL,
                    discussion TEXT NOT NULL,
                    barriers TEXT NOT NULL DEFAULT '',
                    solutions TEXT NOT NULL DEFAULT '',
                    next_steps TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL
                )
                """
            )
            connection.commit()

    def append(self, note: CaseNote) -> CaseNote:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                INSERT INTO case_notes (
                    id, date, client_name, discussion, barriers, solutions, next_steps, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    note.id,
                    note.date,
                    note.client_name,
                    note.discussion,
                    note.barriers,
                    note.solutions,
                    note.next_steps,
                    note.created_at.isoformat(),
                ),
            )
            cursor.execute(
                """
                DELETE FROM case_notes
                WHERE seq NOT IN (SELECT seq FROM case_notes ORDER BY seq DESC LIMIT ?)
                """,
                (self.capacity,),
            )
            connection.commit()
        return note

    def list(self) -> list[CaseNote]:
        with self._connection() as connection:
            rows = connection.execute(
                """
                SELECT id, date, client_name, discussion, barriers, solutions, next_steps, created_at
                FROM case_notes
                ORDER BY seq ASC
                """
            ).fetchall()
        return [
            CaseNote(
                id=row[0],
                date=row[1],
                client_name=row[2],
                discussion=row[3],
                barriers=row[4],
                solutions=row[5],
                next_steps=row[6],
                created_at=datetime.fromisoformat(row[7]),
            )
            for row in rows
        ]

    def delete(self, note_id: str) -> bool:
        with self._connection() as connection:
            cursor = connection.execute("DELETE FROM case_notes WHERE id = ?", (note_id,))
            connection.commit()
            return cursor.rowcount > 0

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
        finally:
            connection.close()

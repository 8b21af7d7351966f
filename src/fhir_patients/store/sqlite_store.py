"""SQLite-backed local store.

One row per local record. The patient is stored as its pydantic JSON dump
and the server id is duplicated into an indexed column for lookups.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path

from pydantic import ValidationError as ModelValidationError

from ..errors import PersistenceError
from ..patients.models import LocalRecord, Patient
from .base import LocalStore

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS local_patients (
    local_key TEXT PRIMARY KEY,
    server_id TEXT,
    body      TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_local_patients_server_id ON local_patients (server_id);
"""


class SQLiteStore(LocalStore):
    """Durable store in a single SQLite file (or ``":memory:"``)."""

    def __init__(self, path: str | Path = ":memory:") -> None:
        self.path = str(path)
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(self.path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            with self._conn:
                self._conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot open local store at {self.path}: {exc}") from exc
        logger.debug("Opened local store at %s", self.path)

    def upsert(self, record: LocalRecord) -> None:
        body = record.patient.model_dump_json()
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    "INSERT INTO local_patients (local_key, server_id, body) VALUES (?, ?, ?) "
                    "ON CONFLICT(local_key) DO UPDATE SET "
                    "server_id = excluded.server_id, body = excluded.body",
                    (record.local_key, record.server_id, body),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot write local record {record.local_key}: {exc}") from exc

    def get(self, local_key: str) -> LocalRecord | None:
        return self._fetch_one(
            "SELECT local_key, body FROM local_patients WHERE local_key = ?", local_key
        )

    def get_by_server_id(self, server_id: str) -> LocalRecord | None:
        return self._fetch_one(
            "SELECT local_key, body FROM local_patients WHERE server_id = ? LIMIT 1", server_id
        )

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _fetch_one(self, query: str, value: str) -> LocalRecord | None:
        try:
            with self._lock:
                row = self._conn.execute(query, (value,)).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot read local store: {exc}") from exc
        if row is None:
            return None
        try:
            patient = Patient.model_validate_json(row["body"])
        except ModelValidationError as exc:
            raise PersistenceError(f"Corrupt local record {row['local_key']}: {exc}") from exc
        return LocalRecord(local_key=row["local_key"], patient=patient)

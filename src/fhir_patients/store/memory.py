"""In-process store, mostly for tests and short-lived sessions."""

from __future__ import annotations

import threading

from ..patients.models import LocalRecord
from .base import LocalStore


class InMemoryStore(LocalStore):
    """Dict-backed store. Records go in and come out as deep copies."""

    def __init__(self) -> None:
        self._records: dict[str, LocalRecord] = {}
        self._lock = threading.Lock()

    def upsert(self, record: LocalRecord) -> None:
        with self._lock:
            self._records[record.local_key] = record.model_copy(deep=True)

    def get(self, local_key: str) -> LocalRecord | None:
        with self._lock:
            record = self._records.get(local_key)
            return record.model_copy(deep=True) if record is not None else None

    def get_by_server_id(self, server_id: str) -> LocalRecord | None:
        with self._lock:
            for record in self._records.values():
                if record.server_id == server_id:
                    return record.model_copy(deep=True)
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

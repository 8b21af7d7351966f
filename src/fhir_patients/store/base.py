"""Local durable store interface for patient records."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..patients.models import LocalRecord


class LocalStore(ABC):
    """Keyed upsert / lookup store for ``LocalRecord`` entries."""

    @abstractmethod
    def upsert(self, record: LocalRecord) -> None:
        """Insert ``record`` or overwrite the entry with the same local key.

        Raises:
            PersistenceError: if the write fails.
        """

    @abstractmethod
    def get(self, local_key: str) -> LocalRecord | None:
        """Return the record stored under ``local_key``, or ``None``."""

    @abstractmethod
    def get_by_server_id(self, server_id: str) -> LocalRecord | None:
        """Return the record whose patient carries ``server_id``, or ``None``."""

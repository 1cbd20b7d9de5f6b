"""
Key-value persistence for the search history blob.

Only load/save/remove semantics are offered; the history policy lives in
`services.history`.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db import SessionLocal
from domain.models import StorageError
from repositories.models import KeyValueORM

HISTORY_KEY = "searchHistory"
logger = logging.getLogger(__name__)


class HistoryStore:
    """Durable key-value store backed by SQLAlchemy."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory or SessionLocal

    def get(self, key: str) -> Optional[str]:
        try:
            with self._session_factory() as session:
                row = session.get(KeyValueORM, key)
                return row.value if row else None
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to read key {key!r}: {exc}") from exc

    def set(self, key: str, blob: str) -> None:
        """Overwrite the value stored under `key`."""
        try:
            with self._session_factory() as session:
                row = session.get(KeyValueORM, key)
                if row is None:
                    row = KeyValueORM(key=key, value=blob)
                else:
                    row.value = blob
                    row.updated_at = datetime.now(timezone.utc)
                session.add(row)
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to write key {key!r}: {exc}") from exc
        logger.debug("HistoryStore.set: key=%s bytes=%d", key, len(blob))

    def remove(self, key: str) -> None:
        """Delete `key`; a missing key is not an error."""
        try:
            with self._session_factory() as session:
                row = session.get(KeyValueORM, key)
                if row:
                    session.delete(row)
                    session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to remove key {key!r}: {exc}") from exc


class InMemoryHistoryStore:
    """
    In-memory store for development and tests.

    Same contract as HistoryStore; nothing survives the process.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, blob: str) -> None:
        self.data[key] = blob

    def remove(self, key: str) -> None:
        self.data.pop(key, None)

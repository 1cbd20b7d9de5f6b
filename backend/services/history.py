"""
Recent-search history: a bounded, coordinate-deduplicated, most-recent-first
list kept in memory and mirrored to a key-value store after every change.
"""
from __future__ import annotations

import json
import logging
from typing import Callable, List, Optional, Protocol, Union

from domain.models import Candidate, HistoryEntry, InvalidCoordinates, StorageError, utc_timestamp
from repositories.history_store import HISTORY_KEY
from services.events import HISTORY_CHANGED, EventBus
from settings import settings

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, blob: str) -> None: ...

    def remove(self, key: str) -> None: ...


def serialize_history(entries: List[HistoryEntry]) -> str:
    return json.dumps([e.to_dict() for e in entries])


def deserialize_history(blob: str, max_entries: int) -> List[HistoryEntry]:
    """
    Parse a persisted history blob.

    Raises ValueError when the blob is not a JSON list. Individual entries
    with unusable coordinates or mistyped fields are dropped rather than
    failing the whole load.
    """
    payload = json.loads(blob)
    if not isinstance(payload, list):
        raise ValueError("history blob is not a list")
    entries: List[HistoryEntry] = []
    for item in payload:
        if not isinstance(item, dict):
            logger.warning("Skipping malformed history item: %r", item)
            continue
        try:
            entries.append(HistoryEntry.from_dict(item))
        except InvalidCoordinates as exc:
            logger.warning("Skipping history item with %s", exc)
        except ValueError as exc:
            logger.warning("Skipping malformed history item: %s", exc)
    return entries[:max_entries]


class HistoryManager:
    """Owns the in-memory history list and its persistence."""

    def __init__(
        self,
        store: KeyValueStore,
        events: Optional[EventBus] = None,
        max_entries: Optional[int] = None,
        clock: Callable[[], str] = utc_timestamp,
        key: str = HISTORY_KEY,
    ):
        self.store = store
        self.events = events or EventBus()
        self.max_entries = max_entries if max_entries is not None else settings.HISTORY_MAX_ENTRIES
        self.clock = clock
        self.key = key
        self._entries: List[HistoryEntry] = []

    @property
    def entries(self) -> List[HistoryEntry]:
        return list(self._entries)

    def load(self) -> List[HistoryEntry]:
        """Load the persisted list; missing or corrupt data yields an empty list."""
        try:
            blob = self.store.get(self.key)
        except StorageError as exc:
            logger.warning("Error loading search history: %s", exc)
            blob = None

        entries: List[HistoryEntry] = []
        if blob:
            try:
                entries = deserialize_history(blob, self.max_entries)
            except ValueError as exc:
                logger.warning("Discarding corrupt search history: %s", exc)
                entries = []

        self._entries = entries
        self.events.publish(HISTORY_CHANGED, self.entries)
        return self.entries

    def record_selection(self, selection: Union[Candidate, HistoryEntry]) -> HistoryEntry:
        """
        Put `selection` at the front of the history with a fresh timestamp.

        An existing entry at exactly the same (latitude, longitude) is removed
        first, so a place never appears twice. The list is truncated to
        `max_entries` and written to the store before returning.

        Raises InvalidCoordinates (list unchanged) if lat/lon do not parse.
        """
        timestamp = self.clock()
        if isinstance(selection, HistoryEntry):
            entry = selection.refreshed(timestamp)
        else:
            entry = HistoryEntry.from_candidate(selection, timestamp)

        existing_index = next(
            (i for i, item in enumerate(self._entries) if item.coordinate_key == entry.coordinate_key),
            -1,
        )
        if existing_index != -1:
            new_entries = [entry] + self._entries[:existing_index] + self._entries[existing_index + 1:]
        else:
            new_entries = [entry] + self._entries
        new_entries = new_entries[: self.max_entries]

        self._entries = new_entries
        self._persist()
        self.events.publish(HISTORY_CHANGED, self.entries)
        return entry

    def clear(self) -> None:
        """Empty the list and drop the persisted record."""
        self._entries = []
        try:
            self.store.remove(self.key)
        except StorageError as exc:
            logger.warning("Error clearing search history: %s", exc)
        self.events.publish(HISTORY_CHANGED, self.entries)

    def _persist(self) -> None:
        try:
            self.store.set(self.key, serialize_history(self._entries))
        except StorageError as exc:
            # In-memory list stays authoritative until the next successful write.
            logger.warning("Error saving search history: %s", exc)

from .history_store import HISTORY_KEY, HistoryStore, InMemoryHistoryStore
from . import models

__all__ = ["HISTORY_KEY", "HistoryStore", "InMemoryHistoryStore", "models"]

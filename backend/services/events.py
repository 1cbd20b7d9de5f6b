"""
Outbound notifications to the presentation layer.

Every event carries the whole new value; listeners replace what they show.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

CANDIDATES_CHANGED = "candidatesChanged"
SELECTED_PLACE_CHANGED = "selectedPlaceChanged"
HISTORY_CHANGED = "historyChanged"
HISTORY_PANEL_CHANGED = "historyPanelChanged"
QUERY_CHANGED = "queryChanged"
SEARCH_WARNING = "searchWarning"

Listener = Callable[[Any], None]
logger = logging.getLogger(__name__)


class EventBus:
    """Ultra-simple synchronous pub/sub keyed by event name."""

    def __init__(self) -> None:
        self._subs: Dict[str, List[Listener]] = defaultdict(list)

    def subscribe(self, event: str, fn: Listener) -> Callable[[], None]:
        """Register `fn` for `event`; returns a callable that unsubscribes it."""
        self._subs[event].append(fn)
        return lambda: self.unsubscribe(event, fn)

    def unsubscribe(self, event: str, fn: Listener) -> None:
        try:
            self._subs[event].remove(fn)
        except ValueError:
            pass

    def publish(self, event: str, value: Any) -> None:
        for fn in list(self._subs.get(event, ())):
            try:
                fn(value)
            except Exception:
                # never let a listener break the engine
                logger.exception("Listener for %s failed", event)

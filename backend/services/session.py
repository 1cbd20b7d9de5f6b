"""
One place-search session: search engine, history and selection wired to a
shared event bus, plus the small bits of view state (map region, history
panel visibility) the presentation layer renders from.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from domain.models import INITIAL_REGION, Candidate, HistoryEntry, MapRegion, SelectedPlace, utc_timestamp
from services.events import HISTORY_PANEL_CHANGED, EventBus
from services.history import HistoryManager, KeyValueStore
from services.search_engine import Geocoder, SearchEngine
from services.selection import AuditSink, MapController, SelectionCoordinator

logger = logging.getLogger(__name__)
REGION_CHANGED = "regionChanged"


class PlaceSearchSession:
    def __init__(
        self,
        client: Geocoder,
        store: KeyValueStore,
        events: Optional[EventBus] = None,
        map_controller: Optional[MapController] = None,
        audit_sink: Optional[AuditSink] = None,
        clock: Callable[[], str] = utc_timestamp,
        debounce_seconds: Optional[float] = None,
    ):
        self.events = events or EventBus()
        self.search = SearchEngine(client, self.events, debounce_seconds=debounce_seconds)
        self.history = HistoryManager(store, self.events, clock=clock)
        self.map_controller = map_controller
        self.region: MapRegion = INITIAL_REGION
        self.history_visible = False
        self.selection = SelectionCoordinator(
            self.history,
            self.search,
            self.events,
            map_controller=self,
            audit_sink=audit_sink,
        )
        self.selection.on_history_collapse = self.collapse_history

    def start(self) -> None:
        """Load persisted history; call once when the session opens."""
        self.history.load()

    def close(self) -> None:
        self.search.close()
        logger.debug("Place search session closed")

    # Inbound operations

    def submit_text(self, text: str) -> None:
        self.search.submit_text(text)

    def select_candidate(self, candidate: Candidate) -> SelectedPlace:
        return self.selection.select_candidate(candidate)

    def select_from_history(self, entry: HistoryEntry) -> SelectedPlace:
        return self.selection.select_from_history(entry)

    def clear_history(self) -> None:
        self.history.clear()

    def find_candidate(self, place_id: str) -> Optional[Candidate]:
        return next((c for c in self.search.candidates if c.place_id == place_id), None)

    # View state

    @property
    def selected_place(self) -> Optional[SelectedPlace]:
        return self.selection.selected_place

    def toggle_history(self) -> bool:
        self.history_visible = not self.history_visible
        self.events.publish(HISTORY_PANEL_CHANGED, self.history_visible)
        return self.history_visible

    def collapse_history(self) -> None:
        self.history_visible = False
        self.events.publish(HISTORY_PANEL_CHANGED, False)

    def set_region(self, region: MapRegion) -> None:
        """Mirror a user pan/zoom reported by the map."""
        self.region = region

    def animate_to_region(self, region: MapRegion) -> None:
        self.region = region
        self.events.publish(REGION_CHANGED, region)
        if self.map_controller is not None:
            self.map_controller.animate_to_region(region)

    def snapshot(self) -> Dict[str, Any]:
        place = self.selected_place
        return {
            "query": self.search.query,
            "phase": self.search.phase.value,
            "candidates": [c.to_dict() for c in self.search.candidates],
            "selected_place": place.to_dict() if place else None,
            "history": [e.to_dict() for e in self.history.entries],
            "history_visible": self.history_visible,
            "region": self.region.to_dict(),
        }

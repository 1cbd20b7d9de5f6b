"""
Selection of a place, either from the live candidate list or from history.

Both paths validate coordinates first; on InvalidCoordinates nothing is
published, recentered or recorded.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Protocol

from domain.models import Candidate, HistoryEntry, MapRegion, SelectedPlace, parse_coordinates
from services.events import HISTORY_PANEL_CHANGED, SELECTED_PLACE_CHANGED, EventBus
from services.history import HistoryManager

logger = logging.getLogger(__name__)

RECENTER_DELTA = 0.5


class MapController(Protocol):
    def animate_to_region(self, region: MapRegion) -> None: ...


class SearchClearer(Protocol):
    def clear(self) -> None: ...


class AuditSink(Protocol):
    def send(self, payload: dict[str, Any]) -> Any: ...


class SelectionCoordinator:
    def __init__(
        self,
        history: HistoryManager,
        search: SearchClearer,
        events: Optional[EventBus] = None,
        map_controller: Optional[MapController] = None,
        audit_sink: Optional[AuditSink] = None,
    ):
        self.history = history
        self.search = search
        self.events = events or EventBus()
        self.map_controller = map_controller
        self.audit_sink = audit_sink
        self.selected_place: Optional[SelectedPlace] = None
        self.on_history_collapse: Optional[Callable[[], None]] = None

    def select_candidate(self, candidate: Candidate) -> SelectedPlace:
        """
        Focus a geocoding candidate.

        Order: publish the place, recenter the map, record it in history,
        then clear the search field and dropdown. A failing history write
        does not undo the recenter.

        Raises InvalidCoordinates before any state change.
        """
        latitude, longitude = candidate.coordinates()
        place = SelectedPlace(
            name=candidate.display_name,
            address=candidate.display_name,
            latitude=latitude,
            longitude=longitude,
            type=candidate.type,
        )
        self._focus(place)
        try:
            self.history.record_selection(candidate)
        except Exception as exc:
            logger.warning("Error saving to history: %s", exc)
        self._audit(candidate)
        self.search.clear()
        return place

    def select_from_history(self, entry: HistoryEntry) -> SelectedPlace:
        """Focus a history entry without re-timestamping it, then collapse the panel."""
        latitude, longitude = parse_coordinates(entry.latitude, entry.longitude)
        place = SelectedPlace(
            name=entry.name,
            address=entry.address,
            latitude=latitude,
            longitude=longitude,
            type=entry.type,
        )
        self._focus(place)
        if self.on_history_collapse is not None:
            self.on_history_collapse()
        else:
            self.events.publish(HISTORY_PANEL_CHANGED, False)
        return place

    def _focus(self, place: SelectedPlace) -> None:
        self.selected_place = place
        self.events.publish(SELECTED_PLACE_CHANGED, place)
        if self.map_controller is None:
            return
        try:
            self.map_controller.animate_to_region(
                MapRegion.around(place.latitude, place.longitude, RECENTER_DELTA)
            )
        except Exception as exc:
            logger.error("Error moving to location: %s", exc)

    def _audit(self, candidate: Candidate) -> None:
        if self.audit_sink is None:
            return
        try:
            self.audit_sink.send(dict(candidate.raw))
        except Exception as exc:
            logger.warning("Error queueing history audit: %s", exc)

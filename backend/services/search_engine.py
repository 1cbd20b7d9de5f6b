"""
Debounced free-text place search.

Keystrokes arrive through `submit_text`. Each call replaces the pending
debounce timer; only text that stays unchanged for the whole window reaches
the geocoder. Responses are applied only if they belong to the most
recently issued request, so a slow stale lookup can never overwrite a
fresher list or one the user already cleared.

State machine:

    IDLE --submit--> WAITING(deadline, text) --timer--> IN_FLIGHT(seq) --response--> IDLE
               WAITING --submit--> WAITING   (old timer cancelled)
             IN_FLIGHT --submit--> WAITING   (seq invalidated)
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Protocol

from domain.models import Candidate
from services.events import CANDIDATES_CHANGED, QUERY_CHANGED, SEARCH_WARNING, EventBus
from services.geocoding import candidates_from_raw
from settings import settings

logger = logging.getLogger(__name__)


class Geocoder(Protocol):
    def search(self, text: str, limit: int = 5) -> List[dict]: ...


class SearchPhase(str, Enum):
    IDLE = "idle"
    WAITING = "waiting"
    IN_FLIGHT = "in_flight"


@dataclass
class PendingQuery:
    """The single in-flight debounce: text, timer task and request sequence."""
    text: str
    deadline: float
    timer: Optional[asyncio.Task] = None
    sequence: Optional[int] = None
    cancelled: bool = False


class SearchEngine:
    def __init__(
        self,
        client: Geocoder,
        events: Optional[EventBus] = None,
        debounce_seconds: Optional[float] = None,
        min_query_length: Optional[int] = None,
        result_limit: Optional[int] = None,
    ):
        self.client = client
        self.events = events or EventBus()
        self.debounce_seconds = (
            debounce_seconds if debounce_seconds is not None else settings.debounce_seconds
        )
        self.min_query_length = (
            min_query_length if min_query_length is not None else settings.SEARCH_MIN_QUERY_LENGTH
        )
        self.result_limit = result_limit if result_limit is not None else settings.SEARCH_RESULT_LIMIT

        self.query: str = ""
        self._candidates: List[Candidate] = []
        self._pending: Optional[PendingQuery] = None
        self._sequence = 0
        self._closed = False

    @property
    def candidates(self) -> List[Candidate]:
        return list(self._candidates)

    @property
    def phase(self) -> SearchPhase:
        if self._pending is None:
            return SearchPhase.IDLE
        if self._pending.sequence is None:
            return SearchPhase.WAITING
        return SearchPhase.IN_FLIGHT

    @property
    def latest_sequence(self) -> int:
        return self._sequence

    def submit_text(self, text: str) -> None:
        """Record a keystroke and (re)start the debounce countdown.

        Must be called from inside a running event loop.
        """
        if self._closed:
            logger.debug("submit_text ignored: engine closed")
            return
        self.query = text
        self.events.publish(QUERY_CHANGED, text)

        self._invalidate_pending()
        loop = asyncio.get_running_loop()
        pending = PendingQuery(text=text, deadline=loop.time() + self.debounce_seconds)
        pending.timer = loop.create_task(self._settle(pending))
        self._pending = pending
        logger.debug("Debounce restarted for %r (%.0f ms)", text, self.debounce_seconds * 1000)

    def clear(self) -> None:
        """Drop the query text, the candidate list and anything pending."""
        self._invalidate_pending()
        self._pending = None
        self.query = ""
        self.events.publish(QUERY_CHANGED, "")
        self._set_candidates([])

    def close(self) -> None:
        """Cancel any pending timer and suppress any outstanding response."""
        self._invalidate_pending()
        self._pending = None
        self._closed = True

    async def wait_idle(self) -> None:
        """Wait until the current debounce/lookup cycle (if any) has finished."""
        while self._pending is not None and self._pending.timer is not None:
            timer = self._pending.timer
            try:
                await asyncio.shield(timer)
            except asyncio.CancelledError:
                if not timer.cancelled():
                    raise
            if self._pending is not None and self._pending.timer is timer:
                break

    def _invalidate_pending(self) -> None:
        pending = self._pending
        if pending is None:
            return
        pending.cancelled = True
        if pending.sequence is None and pending.timer is not None:
            # Still waiting: nothing has been sent yet, so just stop the timer.
            pending.timer.cancel()
        # Bumping the sequence makes any in-flight response stale.
        self._sequence += 1

    async def _settle(self, pending: PendingQuery) -> None:
        try:
            await asyncio.sleep(self.debounce_seconds)
        except asyncio.CancelledError:
            return
        if pending.cancelled:
            return

        text = pending.text
        if len(text) < self.min_query_length:
            self._set_candidates([])
            self._finish(pending)
            return

        self._sequence += 1
        pending.sequence = self._sequence
        sequence = pending.sequence
        try:
            raw = await self._lookup(text)
            candidates = candidates_from_raw(raw)
        except Exception as exc:
            if self._is_current(sequence):
                logger.warning("Error fetching places for %r: %s", text, exc)
                self._set_candidates([])
                self.events.publish(SEARCH_WARNING, str(exc))
                self._finish(pending)
            return

        if not self._is_current(sequence):
            logger.debug("Dropping stale response for %r (seq %d < %d)", text, sequence, self._sequence)
            return
        self._set_candidates(candidates)
        self._finish(pending)

    async def _lookup(self, text: str) -> List[dict]:
        search = self.client.search
        if inspect.iscoroutinefunction(search):
            return await search(text, self.result_limit)
        # Blocking transports run off-loop; they cannot be aborted once started.
        return await asyncio.to_thread(search, text, self.result_limit)

    def _is_current(self, sequence: int) -> bool:
        return not self._closed and sequence == self._sequence

    def _finish(self, pending: PendingQuery) -> None:
        if self._pending is pending:
            self._pending = None

    def _set_candidates(self, candidates: List[Candidate]) -> None:
        self._candidates = list(candidates)
        self.events.publish(CANDIDATES_CHANGED, self.candidates)

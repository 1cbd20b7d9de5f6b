"""
Place search and history API routes.

All handlers are async so every mutation runs on the event loop that owns
the session's debounce timers.
"""
import logging
from typing import Any, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from domain.models import Candidate, HistoryEntry, InvalidCoordinates, MapRegion, SelectedPlace
from services.session import PlaceSearchSession

router = APIRouter()
logger = logging.getLogger(__name__)


class QueryRequest(BaseModel):
    text: str


class QueryResponse(BaseModel):
    query: str
    phase: str


class CandidateResponse(BaseModel):
    place_id: Optional[str] = None
    display_name: str
    short_name: str
    lat: Any = None
    lon: Any = None
    type: Optional[str] = None
    importance: Optional[float] = None


class SelectCandidateRequest(BaseModel):
    place_id: str


class SelectHistoryRequest(BaseModel):
    index: int = Field(ge=0)


class SelectedPlaceResponse(BaseModel):
    name: str
    short_name: str
    address: str
    latitude: float
    longitude: float
    type: Optional[str] = None


class HistoryEntryResponse(BaseModel):
    name: str
    short_name: str
    place_id: Optional[str] = None
    latitude: float
    longitude: float
    timestamp: str
    address: str
    type: Optional[str] = None
    importance: Optional[float] = None


class HistoryPanelResponse(BaseModel):
    visible: bool


class RegionRequest(BaseModel):
    latitude: float
    longitude: float
    latitude_delta: float = Field(gt=0)
    longitude_delta: float = Field(gt=0)


def get_search_session(request: Request) -> PlaceSearchSession:
    session = getattr(request.app.state, "search_session", None)
    if session is None:
        raise HTTPException(status_code=503, detail="Search session not initialized")
    return session


def candidate_to_response(candidate: Candidate) -> CandidateResponse:
    return CandidateResponse(
        place_id=candidate.place_id,
        display_name=candidate.display_name,
        short_name=candidate.short_name,
        lat=candidate.lat,
        lon=candidate.lon,
        type=candidate.type,
        importance=candidate.importance,
    )


def place_to_response(place: SelectedPlace) -> SelectedPlaceResponse:
    return SelectedPlaceResponse(
        name=place.name,
        short_name=place.short_name,
        address=place.address,
        latitude=place.latitude,
        longitude=place.longitude,
        type=place.type,
    )


def entry_to_response(entry: HistoryEntry) -> HistoryEntryResponse:
    return HistoryEntryResponse(
        name=entry.name,
        short_name=entry.short_name,
        place_id=entry.place_id,
        latitude=entry.latitude,
        longitude=entry.longitude,
        timestamp=entry.timestamp,
        address=entry.address,
        type=entry.type,
        importance=entry.importance,
    )


@router.post("/search/query", response_model=QueryResponse, status_code=202)
async def submit_query(payload: QueryRequest, session: PlaceSearchSession = Depends(get_search_session)):
    """Feed the search box; results arrive after the debounce window."""
    session.submit_text(payload.text)
    return QueryResponse(query=session.search.query, phase=session.search.phase.value)


@router.get("/search/candidates", response_model=List[CandidateResponse])
async def list_candidates(session: PlaceSearchSession = Depends(get_search_session)):
    return [candidate_to_response(c) for c in session.search.candidates]


@router.post("/search/select", response_model=SelectedPlaceResponse)
async def select_candidate(
    payload: SelectCandidateRequest,
    session: PlaceSearchSession = Depends(get_search_session),
):
    candidate = session.find_candidate(payload.place_id)
    if candidate is None:
        raise HTTPException(status_code=404, detail="Candidate not found")
    try:
        place = session.select_candidate(candidate)
    except InvalidCoordinates as exc:
        logger.error("Invalid coordinates for candidate %s: %s", payload.place_id, exc)
        raise HTTPException(status_code=422, detail=str(exc))
    return place_to_response(place)


@router.get("/selected", response_model=Optional[SelectedPlaceResponse])
async def get_selected_place(session: PlaceSearchSession = Depends(get_search_session)):
    place = session.selected_place
    return place_to_response(place) if place else None


@router.get("/history", response_model=List[HistoryEntryResponse])
async def list_history(session: PlaceSearchSession = Depends(get_search_session)):
    return [entry_to_response(e) for e in session.history.entries]


@router.delete("/history", status_code=204)
async def clear_history(session: PlaceSearchSession = Depends(get_search_session)):
    session.clear_history()


@router.post("/history/select", response_model=SelectedPlaceResponse)
async def select_history_entry(
    payload: SelectHistoryRequest,
    session: PlaceSearchSession = Depends(get_search_session),
):
    entries = session.history.entries
    if payload.index >= len(entries):
        raise HTTPException(status_code=404, detail="History entry not found")
    try:
        place = session.select_from_history(entries[payload.index])
    except InvalidCoordinates as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return place_to_response(place)


@router.post("/history/toggle", response_model=HistoryPanelResponse)
async def toggle_history(session: PlaceSearchSession = Depends(get_search_session)):
    return HistoryPanelResponse(visible=session.toggle_history())


@router.put("/region", status_code=204)
async def update_region(payload: RegionRequest, session: PlaceSearchSession = Depends(get_search_session)):
    session.set_region(
        MapRegion(
            latitude=payload.latitude,
            longitude=payload.longitude,
            latitude_delta=payload.latitude_delta,
            longitude_delta=payload.longitude_delta,
        )
    )


@router.get("/session")
async def get_snapshot(session: PlaceSearchSession = Depends(get_search_session)):
    return session.snapshot()

"""
FastAPI application entry point.

Run with: uvicorn api.main:app --reload
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from backend/.env (optional) before other imports that read env
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(env_path)

from api.routes import search
from db import init_db
from repositories import HistoryStore
from services.geocoding import GeocodeClient
from services.session import PlaceSearchSession
from services.telemetry import get_default_audit_sink

logger = logging.getLogger(__name__)

# Create app
app = FastAPI(
    title="Place Search API",
    description="Debounced place search with recent-search history",
    version="0.1.0",
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure properly for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(search.router, tags=["search"])


@app.on_event("startup")
async def startup_event():
    """Initialize tables and open the search session."""
    init_db()
    session = PlaceSearchSession(
        client=GeocodeClient(),
        store=HistoryStore(),
        audit_sink=get_default_audit_sink(),
    )
    session.start()
    app.state.search_session = session
    logger.info("Search session started with %d history entries", len(session.history.entries))


@app.on_event("shutdown")
async def shutdown_event():
    session = getattr(app.state, "search_session", None)
    if session is not None:
        session.close()
        audit_sink = session.selection.audit_sink
        if audit_sink is not None:
            audit_sink.close()


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "service": "Place Search API"}

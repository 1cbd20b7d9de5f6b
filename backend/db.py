"""
Database setup for the history store.
Provides SQLAlchemy engine/session utilities (SQLite by default).
"""
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from settings import settings


def make_engine(database_url: str) -> Engine:
    """Create an engine, making sure the directory of a SQLite file exists."""
    url = make_url(database_url)
    connect_args = {}
    if url.get_backend_name() == "sqlite":
        # check_same_thread=False allows usage across FastAPI threads
        connect_args["check_same_thread"] = False
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(database_url, connect_args=connect_args)


engine = make_engine(settings.HISTORY_DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


def init_db(bind: Engine | None = None) -> None:
    """Create tables if they don't exist."""
    from repositories import models  # noqa: F401  Ensures models are registered

    Base.metadata.create_all(bind=bind or engine)

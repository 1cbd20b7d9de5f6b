"""
SQLAlchemy ORM models for persistence.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, String, Text

from db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KeyValueORM(Base):
    __tablename__ = "kv_store"

    key = Column(String, primary_key=True, index=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

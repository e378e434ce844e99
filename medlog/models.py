from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text

from .database import Base


class KeyValueEntry(Base):
    """One persisted collection, stored as JSON text under its storage key."""

    __tablename__ = "kv_entries"
    key = Column(String, primary_key=True, index=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

"""SQLAlchemy ORM models."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Get current UTC timestamp."""
    return datetime.utcnow()


class TelemetryEvent(Base):
    """Connect flow analytics event."""

    __tablename__ = "telemetry_events"

    id = Column(String, primary_key=True, default=generate_uuid)
    event_type = Column(String(50), nullable=False, index=True)  # e.g., 'connect.bank_authorized'
    session_id = Column(String(64), nullable=True, index=True)
    provider = Column(String(20), nullable=True)
    properties = Column(JSON, nullable=False, default=dict)
    timestamp = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<TelemetryEvent(type={self.event_type}, provider={self.provider})>"

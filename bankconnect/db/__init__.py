"""Telemetry storage."""

from .database import SessionLocal, create_db_engine, engine, get_db, init_db
from .models import Base, TelemetryEvent

__all__ = [
    "Base",
    "SessionLocal",
    "TelemetryEvent",
    "create_db_engine",
    "engine",
    "get_db",
    "init_db",
]

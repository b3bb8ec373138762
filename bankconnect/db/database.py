"""Storage for connect flow telemetry.

Only telemetry events are written here. The flow itself lives in the
browser session and its URL and is never persisted.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from bankconnect.config import get_settings
from bankconnect.db.models import Base

settings = get_settings()


def _connect_args(url: str) -> Dict[str, Any]:
    # Tracking runs on the API's worker threads as well as the event loop
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


def create_db_engine(url: Optional[str] = None) -> Engine:
    """Engine for the telemetry database (``DATABASE_URL`` by default)."""
    url = url or settings.database_url
    return create_engine(url, connect_args=_connect_args(url), pool_pre_ping=True)


engine = create_db_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False)


@contextmanager
def get_db() -> Iterator[Session]:
    """One telemetry write: commits when the block exits, rolls back on error."""
    with SessionLocal.begin() as db:
        yield db


def init_db(bind: Optional[Engine] = None) -> None:
    """Create the telemetry tables if they are missing."""
    Base.metadata.create_all(bind=bind or engine)

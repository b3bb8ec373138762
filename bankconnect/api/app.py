"""FastAPI application setup."""

import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from bankconnect.api.routes import connect
from bankconnect.config import PRODUCT_DESCRIPTION, PRODUCT_NAME, PRODUCT_TAGLINE, PRODUCT_VERSION
from bankconnect.core.connect import FlowSessionRegistry
from bankconnect.core.metrics import TelemetryTracker
from bankconnect.db.database import get_db, init_db

logger = logging.getLogger(__name__)

app = FastAPI(
    title=f"{PRODUCT_NAME} API",
    description=PRODUCT_DESCRIPTION,
    version=PRODUCT_VERSION,
)

# Add rate limiter to app state
app.state.limiter = connect.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


def create_session_registry() -> FlowSessionRegistry:
    """Session registry wired to the engine API and flow telemetry."""
    return FlowSessionRegistry(
        tracker_factory=lambda session_id: TelemetryTracker(get_db, session_id=session_id),
    )


@app.on_event("startup")
def startup():
    """Initialize database and connect sessions on startup."""
    init_db()
    if getattr(app.state, "sessions", None) is None:
        app.state.sessions = create_session_registry()


@app.on_event("shutdown")
async def shutdown():
    """Flush pending usage reports."""
    sessions = getattr(app.state, "sessions", None)
    if sessions is not None:
        await sessions.aclose()


@app.get("/api/health")
def health():
    """Health check endpoint."""
    return {
        "name": PRODUCT_NAME,
        "version": PRODUCT_VERSION,
        "status": "ok",
        "tagline": PRODUCT_TAGLINE,
    }


# Mount API routers
app.include_router(connect.router, prefix="/api", tags=["connect"])

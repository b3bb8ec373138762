"""Telemetry event logging for connect flow analytics."""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable, ContextManager, Dict, Optional

from sqlalchemy.orm import Session

from bankconnect.db.models import TelemetryEvent


logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Types of telemetry events."""

    CONNECT_OPENED = "connect.opened"
    CONNECT_CLOSED = "connect.closed"
    BANK_AUTHORIZED = "connect.bank_authorized"
    BANK_CANCELED = "connect.bank_canceled"
    BANK_FAILED = "connect.bank_failed"
    PROVISIONING_FAILED = "connect.provisioning_failed"


class TelemetryLogger:
    """Logger for telemetry events."""

    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        event_type: EventType,
        session_id: Optional[str] = None,
        provider: Optional[str] = None,
        properties: Optional[Dict[str, Any]] = None,
    ) -> TelemetryEvent:
        """Log a telemetry event.

        Args:
            event_type: Type of event
            session_id: Connect session the event belongs to (optional)
            provider: Aggregator involved, if any
            properties: Event-specific properties (e.g., institution_id)

        Returns:
            Created TelemetryEvent
        """
        event = TelemetryEvent(
            event_type=event_type.value,
            session_id=session_id,
            provider=provider,
            properties=properties or {},
            timestamp=datetime.utcnow(),
        )

        self.db.add(event)
        self.db.flush()

        logger.debug(
            f"Telemetry: {event_type.value} session={session_id} provider={provider} props={properties}"
        )

        return event


class TelemetryTracker:
    """Tracking hook for the flow controller.

    Opens a short database session per event. Tracking must never affect the
    flow, so storage errors are logged and dropped.
    """

    def __init__(
        self,
        session_factory: Callable[[], ContextManager[Session]],
        session_id: Optional[str] = None,
    ):
        self.session_factory = session_factory
        self.session_id = session_id

    def track(
        self,
        event_type: EventType,
        provider: Optional[str] = None,
        **properties: Any,
    ) -> None:
        try:
            with self.session_factory() as db:
                TelemetryLogger(db).log(
                    event_type,
                    session_id=self.session_id,
                    provider=provider,
                    properties=properties,
                )
        except Exception as e:
            logger.warning(f"Failed to record {event_type.value}: {e}")

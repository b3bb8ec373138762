"""Tests for connect flow telemetry."""

import uuid
from contextlib import contextmanager
from unittest.mock import MagicMock

import pytest
from sqlalchemy.orm import sessionmaker

from bankconnect.core.metrics import EventType, TelemetryLogger, TelemetryTracker
from bankconnect.db import create_db_engine, get_db, init_db
from bankconnect.db.models import TelemetryEvent


class TestTelemetryLogger:
    """Tests for TelemetryLogger."""

    def test_log_adds_event(self):
        """Should add and flush a TelemetryEvent row."""
        mock_db = MagicMock()

        event = TelemetryLogger(mock_db).log(
            EventType.BANK_AUTHORIZED,
            session_id="sess-1",
            provider="plaid",
            properties={"institution_id": "ins_1"},
        )

        assert isinstance(event, TelemetryEvent)
        assert event.event_type == "connect.bank_authorized"
        assert event.session_id == "sess-1"
        assert event.provider == "plaid"
        assert event.properties == {"institution_id": "ins_1"}
        mock_db.add.assert_called_once_with(event)
        mock_db.flush.assert_called_once()

    def test_properties_default_to_empty(self):
        event = TelemetryLogger(MagicMock()).log(EventType.CONNECT_OPENED)

        assert event.properties == {}


class TestTelemetryTracker:
    """Tests for TelemetryTracker."""

    def test_track_uses_short_session(self):
        mock_db = MagicMock()
        opened = []

        @contextmanager
        def session_factory():
            opened.append(True)
            yield mock_db

        tracker = TelemetryTracker(session_factory, session_id="sess-1")
        tracker.track(EventType.BANK_CANCELED, provider="teller", institution_id="wells_fargo")

        assert opened == [True]
        event = mock_db.add.call_args.args[0]
        assert event.event_type == "connect.bank_canceled"
        assert event.session_id == "sess-1"
        assert event.properties == {"institution_id": "wells_fargo"}

    def test_storage_errors_are_dropped(self):
        """Tracking never raises into the flow."""

        def session_factory():
            raise RuntimeError("database is locked")

        TelemetryTracker(session_factory).track(EventType.CONNECT_CLOSED)


class TestTelemetryStorage:
    """Tests for events written through a real database session."""

    def test_tracked_event_is_committed(self):
        engine = create_db_engine("sqlite://")
        init_db(engine)
        factory = sessionmaker(bind=engine)

        TelemetryTracker(factory.begin, session_id="sess-db").track(
            EventType.CONNECT_OPENED, country_code="GB"
        )

        with factory() as db:
            events = db.query(TelemetryEvent).filter_by(session_id="sess-db").all()
        assert len(events) == 1
        assert events[0].event_type == "connect.opened"
        assert events[0].properties == {"country_code": "GB"}

    def test_get_db_rolls_back_on_error(self):
        """A failed block leaves nothing behind."""
        init_db()
        session_id = str(uuid.uuid4())

        with pytest.raises(RuntimeError):
            with get_db() as db:
                TelemetryLogger(db).log(EventType.BANK_FAILED, session_id=session_id)
                raise RuntimeError("write failed")

        with get_db() as db:
            TelemetryLogger(db).log(EventType.BANK_CANCELED, session_id=session_id)

        with get_db() as db:
            stored = [e.event_type for e in db.query(TelemetryEvent).filter_by(session_id=session_id)]
        assert stored == ["connect.bank_canceled"]

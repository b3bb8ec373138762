"""In-memory connect flow sessions, one per browser session."""

from __future__ import annotations

import logging
import secrets
import time
from typing import Any, Callable, Dict, Optional

from bankconnect.core.connect.adapters import WidgetHost, build_adapters
from bankconnect.core.connect.controller import ConnectionFlowController
from bankconnect.core.connect.directory import HttpInstitutionDirectory, InstitutionDirectoryClient
from bankconnect.core.connect.engine import EngineClient
from bankconnect.core.connect.models import FlowSnapshot, FlowState
from bankconnect.core.connect.tokens import LinkTokenProvisioner, TokenExchanger
from bankconnect.core.connect.usage import UsageReporter

logger = logging.getLogger(__name__)

# Sessions idle longer than this are dropped
SESSION_TTL_SECONDS = 60 * 60


class FlowSession:
    """A controller plus the widget host its adapters render into."""

    def __init__(self, session_id: str, controller: ConnectionFlowController, widgets: WidgetHost):
        self.session_id = session_id
        self.controller = controller
        self.widgets = widgets
        self.last_seen = time.monotonic()

    def touch(self) -> None:
        self.last_seen = time.monotonic()

    def pending_launch(self) -> Optional[Dict[str, Any]]:
        """Widget config for the browser, only while an attempt awaits it."""
        if self.controller.state != FlowState.AWAITING_AUTHORIZATION:
            return None
        return self.widgets.pending_launch()

    def snapshot(self) -> FlowSnapshot:
        snapshot = self.controller.snapshot()
        snapshot.launch = self.pending_launch()
        return snapshot


class FlowSessionRegistry:
    """Creates and looks up flow sessions.

    Collaborators (directory, token services, usage reporter) are shared by
    all sessions; each session gets its own params store, controller and
    widget host. Nothing here outlives the process.
    """

    def __init__(
        self,
        directory: Optional[InstitutionDirectoryClient] = None,
        provisioner: Optional[LinkTokenProvisioner] = None,
        exchanger: Optional[TokenExchanger] = None,
        usage_reporter: Optional[UsageReporter] = None,
        tracker_factory: Optional[Callable[[str], object]] = None,
        teller_settle_seconds: Optional[float] = None,
        ttl_seconds: int = SESSION_TTL_SECONDS,
    ):
        engine = None
        if directory is None or provisioner is None or exchanger is None or usage_reporter is None:
            engine = EngineClient()
        self.engine = engine
        self.directory = directory or HttpInstitutionDirectory(engine)
        self.provisioner = provisioner or LinkTokenProvisioner(engine)
        self.exchanger = exchanger or TokenExchanger(engine)
        self.usage_reporter = usage_reporter or UsageReporter(engine)
        self.tracker_factory = tracker_factory
        self.teller_settle_seconds = teller_settle_seconds
        self.ttl_seconds = ttl_seconds
        self._sessions: Dict[str, FlowSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> FlowSession:
        """Start a new session."""
        self._evict_idle()
        session_id = secrets.token_urlsafe(16)
        widgets = WidgetHost()
        controller = ConnectionFlowController(
            directory=self.directory,
            adapters=build_adapters(
                widgets.create,
                provisioner=self.provisioner,
                exchanger=self.exchanger,
                teller_settle_seconds=self.teller_settle_seconds,
            ),
            usage_reporter=self.usage_reporter,
            tracker=self.tracker_factory(session_id) if self.tracker_factory else None,
        )
        session = FlowSession(session_id, controller, widgets)
        self._sessions[session_id] = session
        logger.debug(f"Created connect session {session_id[:8]}... ({len(self)} active)")
        return session

    def get(self, session_id: Optional[str]) -> Optional[FlowSession]:
        """Return a live session, or None if unknown or expired."""
        if not session_id:
            return None
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if time.monotonic() - session.last_seen > self.ttl_seconds:
            self._sessions.pop(session_id, None)
            return None
        session.touch()
        return session

    def get_or_create(self, session_id: Optional[str]) -> FlowSession:
        return self.get(session_id) or self.create()

    def _evict_idle(self) -> None:
        cutoff = time.monotonic() - self.ttl_seconds
        expired = [sid for sid, s in self._sessions.items() if s.last_seen < cutoff]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info(f"Evicted {len(expired)} idle connect session(s)")

    async def aclose(self) -> None:
        """Flush pending usage reports and close HTTP clients."""
        await self.usage_reporter.aclose()
        if self.engine is not None:
            await self.engine.aclose()

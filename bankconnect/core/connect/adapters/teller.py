"""Teller Connect adapter."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from bankconnect.config import get_settings
from bankconnect.core.connect.adapters.base import LaunchCallbacks, ProviderAdapter
from bankconnect.core.connect.adapters.widgets import LinkWidget, WidgetFactory, WidgetHandlers
from bankconnect.core.connect.models import Authorization, ProviderType, Selection

logger = logging.getLogger(__name__)
settings = get_settings()


class TellerAdapter(ProviderAdapter):
    """Teller Connect integration.

    Teller launches without a link token. The widget is configured per
    institution, which regenerates the SDK; opening it before it has
    settled shows a blank surface, so ``open()`` is deferred by a fixed
    settle interval.
    """

    def __init__(
        self,
        widget_factory: WidgetFactory,
        application_id: Optional[str] = None,
        environment: Optional[str] = None,
        settle_seconds: Optional[float] = None,
    ):
        super().__init__(widget_factory)
        self.application_id = application_id or settings.teller_application_id
        self.environment = environment or settings.teller_environment
        self.settle_seconds = (
            settings.teller_settle_seconds if settle_seconds is None else settle_seconds
        )
        self._open_handle: Optional[asyncio.TimerHandle] = None

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.TELLER

    @property
    def display_name(self) -> str:
        return "Teller"

    def is_configured(self) -> bool:
        return bool(self.application_id)

    async def launch(
        self,
        selection: Selection,
        credential: Optional[str],
        callbacks: LaunchCallbacks,
    ) -> None:
        config = {
            "applicationId": self.application_id,
            "environment": self.environment,
            "institution": selection.institution_id,
        }

        def on_success(payload: Dict[str, Any]) -> None:
            access_token = payload.get("accessToken")
            if not access_token:
                logger.warning("Teller success callback without an access token")
                callbacks.failure("missing access token")
                return

            enrollment = payload.get("enrollment") or {}
            callbacks.success(
                Authorization(
                    access_token=access_token,
                    enrollment_id=enrollment.get("id"),
                )
            )

        def on_exit(payload: Dict[str, Any]) -> None:
            callbacks.exit()

        def on_failure(payload: Dict[str, Any]) -> None:
            callbacks.failure(payload.get("error"))

        widget = self.create_widget(
            config,
            WidgetHandlers(on_success=on_success, on_exit=on_exit, on_failure=on_failure),
        )

        loop = asyncio.get_running_loop()
        self._open_handle = loop.call_later(self.settle_seconds, self._open, widget, callbacks)
        logger.info(
            f"Teller Connect configured for institution {selection.institution_id}, "
            f"opening in {self.settle_seconds}s"
        )

    def dismiss(self) -> None:
        if self._open_handle is not None:
            self._open_handle.cancel()
            self._open_handle = None
        super().dismiss()

    def _open(self, widget: LinkWidget, callbacks: LaunchCallbacks) -> None:
        self._open_handle = None
        try:
            widget.open()
        except Exception as e:
            logger.error(f"Failed to open Teller Connect: {e}")
            callbacks.failure(str(e))

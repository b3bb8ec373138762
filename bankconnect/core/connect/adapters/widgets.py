"""Embedded authorization widgets.

Provider SDKs run in the browser and are opaque to us. A widget is the
server-side handle on one configured SDK instance: adapters configure it,
call ``open()``, and receive the outcome through the handlers they gave it.
"""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from bankconnect.core.connect.models import LinkOutcome, ProviderType

logger = logging.getLogger(__name__)

Payload = Dict[str, Any]
Handler = Callable[[Payload], Union[None, Awaitable[None]]]


@dataclass
class WidgetHandlers:
    """Outcome handlers an adapter registers on a widget."""

    on_success: Handler
    on_exit: Handler
    on_failure: Handler

    def for_outcome(self, outcome: LinkOutcome) -> Handler:
        if outcome == LinkOutcome.SUCCESS:
            return self.on_success
        if outcome == LinkOutcome.EXIT:
            return self.on_exit
        return self.on_failure


class LinkWidget(ABC):
    """One configured instance of a provider's embedded SDK."""

    def __init__(self, provider: ProviderType, config: Dict[str, Any], handlers: WidgetHandlers):
        self.provider = provider
        self.config = config
        self.handlers = handlers

    @abstractmethod
    def open(self) -> None:
        """Show the provider's authorization surface."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Tear the surface down. Later outcomes are ignored."""
        ...


WidgetFactory = Callable[[ProviderType, Dict[str, Any], WidgetHandlers], LinkWidget]


class HostedLinkWidget(LinkWidget):
    """Widget rendered by the browser.

    ``open()`` publishes the launch configuration for the page to pick up;
    the page reports the SDK outcome back, which is fed in via ``deliver``.
    """

    def __init__(
        self,
        provider: ProviderType,
        config: Dict[str, Any],
        handlers: WidgetHandlers,
        on_close: Optional[Callable[["HostedLinkWidget"], None]] = None,
    ):
        super().__init__(provider, config, handlers)
        self._on_close = on_close
        self.opened = False
        self.closed = False
        self.outcome: Optional[LinkOutcome] = None

    def open(self) -> None:
        if self.closed:
            logger.debug(f"Not opening closed {self.provider.value} widget")
            return
        self.opened = True
        logger.debug(f"{self.provider.value} widget opened")

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        logger.debug(f"{self.provider.value} widget closed")
        if self._on_close is not None:
            self._on_close(self)

    @property
    def is_pending(self) -> bool:
        return self.opened and not self.closed and self.outcome is None

    def launch_payload(self) -> Dict[str, Any]:
        return {"provider": self.provider.value, "config": dict(self.config)}

    async def deliver(self, outcome: LinkOutcome, payload: Optional[Payload] = None) -> bool:
        """Feed an SDK outcome into the widget's handlers.

        Returns:
            False if the widget already reported an outcome
        """
        if self.closed:
            logger.info(f"Ignoring {outcome.value} from closed {self.provider.value} widget")
            return False
        if self.outcome is not None:
            logger.warning(
                f"Ignoring {outcome.value} from {self.provider.value} widget: "
                f"already {self.outcome.value}"
            )
            return False

        self.outcome = outcome
        result = self.handlers.for_outcome(outcome)(payload or {})
        if inspect.isawaitable(result):
            await result
        return True


class WidgetHost:
    """Creates hosted widgets for one browser session and tracks the latest."""

    def __init__(self):
        self.current: Optional[HostedLinkWidget] = None

    def create(
        self,
        provider: ProviderType,
        config: Dict[str, Any],
        handlers: WidgetHandlers,
    ) -> HostedLinkWidget:
        self.current = HostedLinkWidget(provider, config, handlers, on_close=self._release)
        return self.current

    def _release(self, widget: HostedLinkWidget) -> None:
        if self.current is widget:
            self.current = None

    def pending_launch(self) -> Optional[Dict[str, Any]]:
        """Launch config of the widget awaiting the browser, if any."""
        if self.current and self.current.is_pending:
            return self.current.launch_payload()
        return None

    async def deliver(self, outcome: LinkOutcome, payload: Optional[Payload] = None) -> bool:
        """Deliver an outcome to the open widget.

        Raises:
            LookupError: If no widget is waiting for an outcome
        """
        if not self.current or not self.current.is_pending:
            raise LookupError("No provider widget is open")
        return await self.current.deliver(outcome, payload)

"""Base provider adapter abstraction."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from bankconnect.core.connect.adapters.widgets import LinkWidget, WidgetFactory, WidgetHandlers
from bankconnect.core.connect.errors import ProvisioningError
from bankconnect.core.connect.models import Authorization, LinkOutcome, ProviderType, Selection

logger = logging.getLogger(__name__)


class LaunchCallbacks:
    """Outcome callbacks for one launch. At most one of them fires."""

    def __init__(
        self,
        on_success: Callable[[Authorization], None],
        on_exit: Callable[[], None],
        on_failure: Callable[[Optional[str]], None],
        label: str = "launch",
    ):
        self._on_success = on_success
        self._on_exit = on_exit
        self._on_failure = on_failure
        self.label = label
        self.outcome: Optional[LinkOutcome] = None

    def _claim(self, outcome: LinkOutcome) -> bool:
        if self.outcome is not None:
            logger.warning(
                f"{self.label}: ignoring {outcome.value}, already resolved as {self.outcome.value}"
            )
            return False
        self.outcome = outcome
        return True

    def success(self, authorization: Authorization) -> bool:
        if not self._claim(LinkOutcome.SUCCESS):
            return False
        self._on_success(authorization)
        return True

    def exit(self) -> bool:
        if not self._claim(LinkOutcome.EXIT):
            return False
        self._on_exit()
        return True

    def failure(self, reason: Optional[str] = None) -> bool:
        if not self._claim(LinkOutcome.FAILURE):
            return False
        self._on_failure(reason)
        return True


class ProviderAdapter(ABC):
    """Abstract base class for aggregator SDK adapters.

    Each adapter wraps one provider's embedded SDK lifecycle:
    1. Optionally provision a link token before launch
    2. Configure and open the provider widget
    3. Translate the widget's outcome into exactly one callback
    """

    requires_link_token: bool = False
    supports_launch: bool = True

    def __init__(self, widget_factory: WidgetFactory):
        self.widget_factory = widget_factory
        self.widget: Optional[LinkWidget] = None

    @property
    @abstractmethod
    def provider_type(self) -> ProviderType:
        """Return the provider identifier."""
        pass

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Return human-readable provider name."""
        pass

    def create_widget(self, config: Dict[str, Any], handlers: WidgetHandlers) -> LinkWidget:
        """Create the widget for a launch, replacing any previous one."""
        self.dismiss()
        self.widget = self.widget_factory(self.provider_type, config, handlers)
        return self.widget

    def dismiss(self) -> None:
        """Close the widget from the last launch if it is still up."""
        widget, self.widget = self.widget, None
        if widget is not None:
            widget.close()

    def is_configured(self) -> bool:
        """Check if the adapter has the configuration it needs to launch."""
        return True

    async def provision(self, selection: Selection) -> str:
        """Obtain the credential the SDK needs before it can open.

        Only called when ``requires_link_token`` is set.

        Raises:
            ProvisioningError: If no credential could be obtained
        """
        raise ProvisioningError(f"{self.display_name} does not use link tokens")

    @abstractmethod
    async def launch(
        self,
        selection: Selection,
        credential: Optional[str],
        callbacks: LaunchCallbacks,
    ) -> None:
        """Open the provider's authorization surface.

        Args:
            selection: Institution the user picked
            credential: Link token from ``provision`` (None if not required)
            callbacks: Outcome callbacks for this launch
        """
        pass

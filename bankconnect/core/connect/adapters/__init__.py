"""Provider adapters and the dispatch table that selects them.

Adding a provider means adding one adapter here; the flow controller
only ever looks adapters up by provider.
"""

from typing import Any, Dict, Optional

from bankconnect.core.connect.adapters.base import LaunchCallbacks, ProviderAdapter
from bankconnect.core.connect.adapters.gocardless import GoCardlessAdapter
from bankconnect.core.connect.adapters.plaid import PlaidAdapter
from bankconnect.core.connect.adapters.teller import TellerAdapter
from bankconnect.core.connect.adapters.widgets import (
    HostedLinkWidget,
    LinkWidget,
    WidgetFactory,
    WidgetHandlers,
    WidgetHost,
)
from bankconnect.core.connect.models import ProviderType
from bankconnect.core.connect.tokens import LinkTokenProvisioner, TokenExchanger

AdapterTable = Dict[ProviderType, ProviderAdapter]


def build_adapters(
    widget_factory: WidgetFactory,
    provisioner: Optional[LinkTokenProvisioner] = None,
    exchanger: Optional[TokenExchanger] = None,
    teller_settle_seconds: Optional[float] = None,
) -> AdapterTable:
    """Build the provider dispatch table."""
    adapters = [
        PlaidAdapter(widget_factory, provisioner=provisioner, exchanger=exchanger),
        TellerAdapter(widget_factory, settle_seconds=teller_settle_seconds),
        GoCardlessAdapter(widget_factory),
    ]
    return {adapter.provider_type: adapter for adapter in adapters}


def get_adapter(adapters: AdapterTable, provider: Any) -> Optional[ProviderAdapter]:
    """Look up the adapter for a provider. Unknown providers get None."""
    provider_type = ProviderType.parse(provider)
    if provider_type is None:
        return None
    return adapters.get(provider_type)


__all__ = [
    "AdapterTable",
    "GoCardlessAdapter",
    "HostedLinkWidget",
    "LaunchCallbacks",
    "LinkWidget",
    "PlaidAdapter",
    "ProviderAdapter",
    "TellerAdapter",
    "WidgetFactory",
    "WidgetHandlers",
    "WidgetHost",
    "build_adapters",
    "get_adapter",
]

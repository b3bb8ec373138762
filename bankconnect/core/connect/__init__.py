"""Bank connection flow.

Lets a user search for their institution and hand off to the aggregator
that serves it:
- Plaid (link token, then Plaid Link)
- Teller (Teller Connect, no link token)
- GoCardless (listed in search, no launch path yet)

Usage:
    from bankconnect.core.connect import ConnectionFlowController, build_adapters

    widgets = WidgetHost()
    controller = ConnectionFlowController(
        directory=HttpInstitutionDirectory(),
        adapters=build_adapters(widgets.create),
        usage_reporter=UsageReporter(),
    )
    await controller.open("US")
    await controller.set_query("chase")
    await controller.select(controller.results[0])
"""

from bankconnect.core.connect.models import (
    Authorization,
    ConnectParams,
    ConnectStep,
    FlowSnapshot,
    FlowState,
    Institution,
    LinkOutcome,
    ProviderType,
    SearchKey,
    Selection,
)
from bankconnect.core.connect.errors import (
    ConnectError,
    ExchangeError,
    ProvisioningError,
    SearchError,
    UsageReportError,
)
from bankconnect.core.connect.params import ConnectParamsStore, decode_params, encode_params
from bankconnect.core.connect.directory import HttpInstitutionDirectory, InstitutionDirectoryClient
from bankconnect.core.connect.tokens import LinkTokenProvisioner, TokenExchanger
from bankconnect.core.connect.usage import UsageReporter
from bankconnect.core.connect.adapters import (
    AdapterTable,
    GoCardlessAdapter,
    HostedLinkWidget,
    LaunchCallbacks,
    PlaidAdapter,
    ProviderAdapter,
    TellerAdapter,
    WidgetHost,
    build_adapters,
    get_adapter,
)
from bankconnect.core.connect.controller import ConnectionFlowController
from bankconnect.core.connect.sessions import FlowSession, FlowSessionRegistry

__all__ = [
    # Models
    "Authorization",
    "ConnectParams",
    "ConnectStep",
    "FlowSnapshot",
    "FlowState",
    "Institution",
    "LinkOutcome",
    "ProviderType",
    "SearchKey",
    "Selection",
    # Errors
    "ConnectError",
    "ExchangeError",
    "ProvisioningError",
    "SearchError",
    "UsageReportError",
    # Collaborators
    "ConnectParamsStore",
    "decode_params",
    "encode_params",
    "HttpInstitutionDirectory",
    "InstitutionDirectoryClient",
    "LinkTokenProvisioner",
    "TokenExchanger",
    "UsageReporter",
    # Adapters
    "AdapterTable",
    "GoCardlessAdapter",
    "HostedLinkWidget",
    "LaunchCallbacks",
    "PlaidAdapter",
    "ProviderAdapter",
    "TellerAdapter",
    "WidgetHost",
    "build_adapters",
    "get_adapter",
    # Flow
    "ConnectionFlowController",
    "FlowSession",
    "FlowSessionRegistry",
]

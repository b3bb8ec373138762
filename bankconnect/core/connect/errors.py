"""Errors raised by connect flow collaborators.

None of these are fatal to the host application. The controller recovers
from each one by returning the flow to its search state.
"""

from __future__ import annotations


class ConnectError(Exception):
    """Base class for connect flow errors."""


class SearchError(ConnectError):
    """Institution directory call failed. Rendered as an empty result list."""


class ProvisioningError(ConnectError):
    """A link token could not be obtained before launching a provider."""


class ExchangeError(ConnectError):
    """A provider public token could not be exchanged for an access token."""


class UsageReportError(ConnectError):
    """Institution usage could not be reported. Always swallowed."""

"""Bank connection flow data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional


class ConnectStep(str, Enum):
    """Which flow surface is visible. ``None`` means the flow is closed."""

    CONNECT = "connect"
    ACCOUNT = "account"


class ProviderType(str, Enum):
    """Supported bank data aggregators."""

    PLAID = "plaid"
    TELLER = "teller"
    GOCARDLESS = "gocardless"

    @classmethod
    def parse(cls, value: Any) -> Optional["ProviderType"]:
        """Return the matching provider, or None for unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class FlowState(str, Enum):
    """Controller states."""

    CLOSED = "closed"
    SEARCHING = "searching"
    PROVISIONING = "provisioning"
    AWAITING_AUTHORIZATION = "awaiting_authorization"
    LINKED = "linked"


class LinkOutcome(str, Enum):
    """How a provider authorization attempt ended."""

    SUCCESS = "success"
    EXIT = "exit"
    FAILURE = "failure"


@dataclass
class ConnectParams:
    """Shared state of the in-progress connect flow."""

    step: Optional[str] = None
    provider: Optional[str] = None
    institution_id: Optional[str] = None
    country_code: Optional[str] = None
    query: Optional[str] = None
    token: Optional[str] = None
    enrollment_id: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.step is not None

    @property
    def has_credential(self) -> bool:
        return bool(self.token or self.enrollment_id)


@dataclass(frozen=True)
class Institution:
    """A directory search result."""

    id: str
    name: str
    provider: str
    country_code: str
    logo: Optional[str] = None
    available_history: int = 0  # Months, 0 if unknown


@dataclass(frozen=True)
class Selection:
    """The institution a user picked to connect."""

    institution_id: str
    provider: ProviderType
    country_code: Optional[str] = None


@dataclass
class Authorization:
    """Credential produced by a successful provider hand-off."""

    access_token: str
    enrollment_id: Optional[str] = None
    institution_id: Optional[str] = None  # As reported by the provider


class SearchKey(NamedTuple):
    """The (country, query) pair a search was issued for."""

    country_code: Optional[str]
    query: str


@dataclass
class FlowSnapshot:
    """Everything a hosting surface needs to render the flow."""

    state: FlowState
    provider: Optional[ProviderType]
    params: ConnectParams
    results: List[Institution] = field(default_factory=list)
    loading: bool = False
    notice: Optional[str] = None
    launch: Optional[Dict[str, Any]] = None

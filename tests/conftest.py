"""Shared fixtures and fakes for connect flow tests."""

import asyncio
import os
import tempfile

# Settings are read at import time; keep test runs off the working directory.
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite:///{os.path.join(tempfile.gettempdir(), 'bankconnect-test.db')}",
)
os.environ.setdefault("ENGINE_API_URL", "http://engine.test")

from typing import Dict, List, Optional
from unittest.mock import AsyncMock, Mock

import pytest

from bankconnect.core.connect import (
    ConnectionFlowController,
    Institution,
    InstitutionDirectoryClient,
    LaunchCallbacks,
    ProviderAdapter,
    ProviderType,
    WidgetHost,
    build_adapters,
)


CHASE = Institution(id="ins_1", name="Chase", provider="plaid", country_code="US", available_history=24)
WELLS = Institution(id="wells_fargo", name="Wells Fargo", provider="teller", country_code="US")
MERCURY = Institution(id="ins_mx", name="Mercury", provider="mx", country_code="US")
BARCLAYS = Institution(id="ins_gb_1", name="Barclays", provider="plaid", country_code="GB")
MONZO = Institution(id="gc_monzo", name="Monzo", provider="gocardless", country_code="GB")

INSTITUTIONS: Dict[str, List[Institution]] = {
    "US": [CHASE, WELLS, MERCURY],
    "GB": [BARCLAYS, MONZO],
}


class FakeDirectory(InstitutionDirectoryClient):
    """In-memory directory. Searches can be held open with ``gates``."""

    def __init__(self, institutions=None, error: Optional[Exception] = None):
        self.institutions = INSTITUTIONS if institutions is None else institutions
        self.error = error
        self.calls = []
        self.gates: Dict[tuple, asyncio.Event] = {}

    async def search(self, country_code, query=None):
        self.calls.append((country_code, query))
        gate = self.gates.get((country_code, query))
        if gate is not None:
            await gate.wait()
        if self.error is not None:
            raise self.error

        items = self.institutions.get(country_code, [])
        if query:
            items = [i for i in items if query.lower() in i.name.lower()]
        return list(items)


class ScriptedAdapter(ProviderAdapter):
    """Adapter that keeps the launch callbacks for the test to fire."""

    def __init__(self, provider: ProviderType, requires_link_token: bool = False):
        super().__init__(widget_factory=Mock())
        self._provider = provider
        self.requires_link_token = requires_link_token
        self.provision_mock = AsyncMock(return_value="link-abc")
        self.launches = []

    @property
    def provider_type(self):
        return self._provider

    @property
    def display_name(self):
        return f"Scripted {self._provider.value}"

    async def provision(self, selection):
        return await self.provision_mock(selection)

    async def launch(self, selection, credential, callbacks: LaunchCallbacks):
        self.launches.append((selection, credential, callbacks))

    @property
    def callbacks(self) -> LaunchCallbacks:
        return self.launches[-1][2]


async def drain(times: int = 10) -> None:
    """Let scheduled tasks and callbacks run."""
    for _ in range(times):
        await asyncio.sleep(0)


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def provisioner():
    mock = Mock()
    mock.provision_token = AsyncMock(return_value="link-abc")
    return mock


@pytest.fixture
def exchanger():
    mock = Mock()
    mock.exchange = AsyncMock(return_value="tok-1")
    return mock


@pytest.fixture
def usage_reporter():
    return Mock()


@pytest.fixture
def tracker():
    return Mock()


@pytest.fixture
def widgets():
    return WidgetHost()


@pytest.fixture
def controller(directory, provisioner, exchanger, usage_reporter, tracker, widgets):
    """Controller wired to the real adapters and fake collaborators."""
    return ConnectionFlowController(
        directory=directory,
        adapters=build_adapters(
            widgets.create,
            provisioner=provisioner,
            exchanger=exchanger,
            teller_settle_seconds=0,
        ),
        usage_reporter=usage_reporter,
        tracker=tracker,
        default_country_code="US",
    )

"""Bank connection flow controller.

Drives the user from institution search to a provider hand-off:

    CLOSED -> SEARCHING -> [PROVISIONING] -> AWAITING_AUTHORIZATION -> LINKED

The controller is the only writer of credential fields in the params
store. Everything it waits on (searches, link tokens, provider widgets)
resolves on its own schedule, so each result is checked against the
current search ticket or authorization attempt before it is applied.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from functools import partial
from typing import Any, List, Optional, Union

from bankconnect.config import get_settings
from bankconnect.core.connect.adapters import AdapterTable, LaunchCallbacks, ProviderAdapter, get_adapter
from bankconnect.core.connect.directory import InstitutionDirectoryClient
from bankconnect.core.connect.errors import ProvisioningError, SearchError
from bankconnect.core.connect.models import (
    Authorization,
    ConnectStep,
    FlowSnapshot,
    FlowState,
    Institution,
    ProviderType,
    SearchKey,
    Selection,
)
from bankconnect.core.connect.params import ConnectParamsStore, decode_params
from bankconnect.core.connect.usage import UsageReporter
from bankconnect.core.metrics.telemetry import EventType

logger = logging.getLogger(__name__)
settings = get_settings()

_UNSET: Any = object()

PROVISIONING_NOTICE = "We couldn't start the connection. Please try again."

BUSY_STATES = (FlowState.PROVISIONING, FlowState.AWAITING_AUTHORIZATION)


class _Attempt:
    """One authorization attempt for a selected institution."""

    def __init__(self, number: int, selection: Selection, adapter: ProviderAdapter):
        self.number = number
        self.selection = selection
        self.adapter = adapter
        self.callbacks: Optional[LaunchCallbacks] = None

    def __repr__(self) -> str:
        return f"<Attempt(#{self.number}, {self.selection.provider.value}, {self.selection.institution_id})>"


class ConnectionFlowController:
    """State machine for the bank connection flow."""

    def __init__(
        self,
        directory: InstitutionDirectoryClient,
        adapters: AdapterTable,
        store: Optional[ConnectParamsStore] = None,
        usage_reporter: Optional[UsageReporter] = None,
        tracker: Any = None,
        default_country_code: Optional[str] = None,
    ):
        """Initialize the controller.

        Args:
            directory: Institution search client
            adapters: Provider dispatch table
            store: Shared params store (a fresh one if omitted)
            usage_reporter: Fire-and-forget institution usage reporter
            tracker: Object with ``track(event_type, provider=None, **props)``
            default_country_code: Country used when none is given or stored
        """
        self.directory = directory
        self.adapters = adapters
        self.store = store or ConnectParamsStore()
        self.usage_reporter = usage_reporter
        self.tracker = tracker
        self.default_country_code = default_country_code or settings.default_country_code

        self.state = FlowState.CLOSED
        self.results: List[Institution] = []
        self.loading = False
        self.notice: Optional[str] = None

        self._provider: Optional[ProviderType] = None
        self._results_country: Optional[str] = None
        self._search_ticket = 0
        self._attempt: Optional[_Attempt] = None
        self._attempt_count = 0

    @property
    def is_open(self) -> bool:
        return self.state != FlowState.CLOSED

    @property
    def provider(self) -> Optional[ProviderType]:
        """Provider of the current attempt or link."""
        return self._provider

    def snapshot(self) -> FlowSnapshot:
        return FlowSnapshot(
            state=self.state,
            provider=self._provider,
            params=self.store.read(),
            results=list(self.results),
            loading=self.loading,
            notice=self.notice,
        )

    # Opening and closing

    async def open(self, country_code: Optional[str] = None) -> None:
        """Open the flow and run the initial search."""
        if self.is_open:
            logger.debug("Connect flow already open")
            return

        params = self.store.read()
        country = country_code or params.country_code or self.default_country_code
        self.store.write(step=ConnectStep.CONNECT, country_code=country)
        self.state = FlowState.SEARCHING
        self.notice = None
        self._track(EventType.CONNECT_OPENED, country_code=country)

        # Results survive a close; only refresh when they can't be reused
        refresh = not self.results or self._results_country != country
        await self._search_after_change(refresh=refresh)

    def close(self) -> None:
        """Close the flow from any state, clearing all transient params.

        Any open provider widget is dismissed. Outstanding searches and link
        token requests are not cancelled; their results are ignored when
        they arrive.
        """
        previous = self.state
        self.state = FlowState.CLOSED
        self._end_attempt()
        self._search_ticket += 1
        self.loading = False
        self.notice = None

        self.store.write(
            step=None,
            provider=None,
            institution_id=None,
            token=None,
            enrollment_id=None,
            country_code=None,
            query=None,
        )
        if previous != FlowState.CLOSED:
            self._track(EventType.CONNECT_CLOSED, from_state=previous.value)

    async def resume(self, location: str) -> FlowState:
        """Rebuild the flow from an encoded location, e.g. after a reload.

        Args:
            location: Query string or full location carrying connect params

        Returns:
            The state the flow resumed in
        """
        params = decode_params(location)
        self.store.write(**asdict(params))
        self._end_attempt()
        self._search_ticket += 1
        self.notice = None

        provider = ProviderType.parse(params.provider) if params.provider else None

        if params.step is None:
            self.state = FlowState.CLOSED
            if params.provider or params.has_credential:
                self._clear_credentials()
            return self.state

        if params.step == ConnectStep.ACCOUNT.value and provider and params.has_credential:
            self.state = FlowState.LINKED
            self._provider = provider
            return self.state

        if params.step != ConnectStep.CONNECT.value or params.provider or params.has_credential:
            logger.warning(f"Resetting inconsistent connect params: step={params.step!r}")

        self._clear_credentials(step=ConnectStep.CONNECT)
        if not self.store.read().country_code:
            self.store.write(country_code=self.default_country_code)
        self.state = FlowState.SEARCHING
        await self._search_after_change(refresh=True)
        return self.state

    # Search

    async def set_query(self, query: Optional[str]) -> None:
        """Handle a (debounced) search input change."""
        await self.update_search(query=query)

    async def set_country(self, country_code: str) -> None:
        """Handle a country selector change."""
        await self.update_search(country_code=country_code)

    async def update_search(self, query: Any = _UNSET, country_code: Any = _UNSET) -> None:
        """Apply search input changes and re-run the search when open.

        When the country and query change together, the country search is
        issued first and the query search after it; the later one decides
        the displayed results.
        """
        before = self.store.read()
        changes = {}
        if query is not _UNSET:
            changes["query"] = query or None
        if country_code is not _UNSET and country_code:
            changes["country_code"] = country_code
        after = self.store.write(**changes)

        if not self.is_open:
            return

        if after.country_code != before.country_code:
            await self._search_after_change(refresh=True)
        elif after.query != before.query:
            await self._search(self._current_key())

    def _current_key(self) -> SearchKey:
        params = self.store.read()
        return SearchKey(params.country_code, params.query or "")

    async def _search_after_change(self, refresh: bool) -> None:
        """Issue the country refresh search (if needed) then the query search."""
        current = self._current_key()
        keys = []
        if refresh:
            keys.append(SearchKey(current.country_code, ""))
        if current not in keys:
            keys.append(current)
        # gather starts the searches in order, so tickets follow issue order
        await asyncio.gather(*(self._search(key) for key in keys))

    async def _search(self, key: SearchKey) -> None:
        self._search_ticket += 1
        ticket = self._search_ticket
        self.loading = True

        try:
            results = await self.directory.search(key.country_code, key.query or None)
        except SearchError as e:
            logger.warning(f"Institution search failed for {key}: {e}")
            results = []
        except Exception as e:
            logger.error(f"Unexpected institution search error for {key}: {e}")
            results = []

        if not self._is_current_search(ticket, key):
            logger.debug(f"Discarding stale search results for {key}")
            return

        self.results = list(results)
        self._results_country = key.country_code
        self.loading = False

    def _is_current_search(self, ticket: int, key: SearchKey) -> bool:
        return (
            ticket == self._search_ticket
            and self.is_open
            and key.country_code == self.store.read().country_code
        )

    # Selection and provider hand-off

    async def select(self, institution: Union[Institution, str]) -> bool:
        """Start connecting the selected institution.

        Args:
            institution: Institution, or the id of one in the current results

        Returns:
            True if the provider widget was launched
        """
        if self.state in BUSY_STATES:
            logger.warning(
                f"Ignoring selection while {self.state.value} for attempt {self._attempt!r}"
            )
            return False
        if self.state != FlowState.SEARCHING:
            logger.warning(f"Ignoring selection in state {self.state.value}")
            return False

        if isinstance(institution, str):
            found = next((i for i in self.results if i.id == institution), None)
            if found is None:
                logger.warning(f"Institution {institution} is not in the current results")
                return False
            institution = found

        adapter = get_adapter(self.adapters, institution.provider)
        if adapter is None:
            logger.info(f"No adapter for provider {institution.provider!r}")
            return False
        if not adapter.supports_launch:
            logger.info(f"{adapter.display_name} has no launch path")
            return False

        selection = Selection(
            institution_id=institution.id,
            provider=adapter.provider_type,
            country_code=institution.country_code,
        )
        self._attempt_count += 1
        attempt = _Attempt(self._attempt_count, selection, adapter)
        self._attempt = attempt
        self._provider = selection.provider
        self.notice = None

        credential = None
        if adapter.requires_link_token:
            self.state = FlowState.PROVISIONING
            try:
                credential = await adapter.provision(selection)
            except Exception as e:
                self._on_provisioning_failed(attempt, e)
                return False

            if self._attempt is not attempt:
                logger.info(f"Dropping link token for superseded {attempt!r}")
                return False

        self.state = FlowState.AWAITING_AUTHORIZATION
        callbacks = LaunchCallbacks(
            on_success=partial(self._on_success, attempt),
            on_exit=partial(self._on_exit, attempt),
            on_failure=partial(self._on_failure, attempt),
            label=f"{adapter.display_name} attempt #{attempt.number}",
        )
        attempt.callbacks = callbacks

        try:
            await adapter.launch(selection, credential, callbacks)
        except Exception as e:
            logger.error(f"Failed to launch {adapter.display_name}: {e}")
            callbacks.failure(str(e))
            return False

        return True

    def _on_provisioning_failed(self, attempt: _Attempt, error: Exception) -> None:
        if self._attempt is not attempt:
            logger.debug(f"Ignoring provisioning failure for superseded {attempt!r}")
            return

        if isinstance(error, ProvisioningError):
            logger.warning(f"Provisioning failed for {attempt!r}: {error}")
        else:
            logger.error(f"Unexpected provisioning error for {attempt!r}: {error}")

        self._end_attempt()
        self.state = FlowState.SEARCHING
        self.notice = PROVISIONING_NOTICE
        self._track(
            EventType.PROVISIONING_FAILED,
            provider=attempt.selection.provider.value,
            institution_id=attempt.selection.institution_id,
        )

    def _is_current_attempt(self, attempt: _Attempt) -> bool:
        return self._attempt is attempt and self.state == FlowState.AWAITING_AUTHORIZATION

    def _on_success(self, attempt: _Attempt, authorization: Authorization) -> None:
        if not self._is_current_attempt(attempt):
            logger.info(f"Ignoring authorization for stale {attempt!r}")
            return

        selection = attempt.selection
        self.state = FlowState.LINKED
        self.store.write(
            step=ConnectStep.ACCOUNT,
            provider=selection.provider,
            institution_id=authorization.institution_id or selection.institution_id,
            token=authorization.access_token,
            enrollment_id=authorization.enrollment_id,
        )
        logger.info(f"Linked {selection.institution_id} via {selection.provider.value}")
        self._track(
            EventType.BANK_AUTHORIZED,
            provider=selection.provider.value,
            institution_id=selection.institution_id,
        )

        if self.usage_reporter is not None:
            try:
                self.usage_reporter.report_usage(selection.institution_id)
            except Exception as e:
                logger.warning(f"Usage report for {selection.institution_id} not scheduled: {e}")

    def _on_exit(self, attempt: _Attempt) -> None:
        if not self._is_current_attempt(attempt):
            logger.info(f"Ignoring exit for stale {attempt!r}")
            return

        self._return_to_search()
        self._track(
            EventType.BANK_CANCELED,
            provider=attempt.selection.provider.value,
            institution_id=attempt.selection.institution_id,
        )

    def _on_failure(self, attempt: _Attempt, reason: Optional[str] = None) -> None:
        if not self._is_current_attempt(attempt):
            logger.info(f"Ignoring failure for stale {attempt!r}")
            return

        logger.warning(f"{attempt!r} failed: {reason or 'unknown error'}")
        self._return_to_search()
        self._track(
            EventType.BANK_FAILED,
            provider=attempt.selection.provider.value,
            institution_id=attempt.selection.institution_id,
            reason=reason,
        )

    def _end_attempt(self) -> None:
        """Forget the current attempt and take down its provider widget."""
        attempt, self._attempt = self._attempt, None
        self._provider = None
        if attempt is None:
            return
        try:
            attempt.adapter.dismiss()
        except Exception as e:
            logger.warning(f"Failed to dismiss widget for {attempt!r}: {e}")

    def _return_to_search(self) -> None:
        self._end_attempt()
        self.state = FlowState.SEARCHING
        self._clear_credentials(step=ConnectStep.CONNECT)

    def _clear_credentials(self, **extra) -> None:
        self.store.write(
            provider=None,
            institution_id=None,
            token=None,
            enrollment_id=None,
            **extra,
        )

    def _track(self, event_type: EventType, provider: Optional[str] = None, **properties) -> None:
        if self.tracker is None:
            return
        try:
            self.tracker.track(event_type, provider=provider, **properties)
        except Exception as e:
            logger.warning(f"Tracking {event_type.value} failed: {e}")

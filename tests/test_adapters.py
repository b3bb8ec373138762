"""Tests for provider adapters, launch callbacks and hosted widgets."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from bankconnect.core.connect import (
    Authorization,
    ExchangeError,
    GoCardlessAdapter,
    LaunchCallbacks,
    LinkOutcome,
    PlaidAdapter,
    ProviderType,
    Selection,
    TellerAdapter,
    build_adapters,
    get_adapter,
)


def make_callbacks():
    on_success, on_exit, on_failure = Mock(), Mock(), Mock()
    return LaunchCallbacks(on_success, on_exit, on_failure), on_success, on_exit, on_failure


class TestLaunchCallbacks:
    """Tests for the at-most-one outcome rule."""

    def test_first_outcome_wins(self):
        callbacks, on_success, on_exit, on_failure = make_callbacks()

        assert callbacks.exit() is True
        assert callbacks.success(Authorization(access_token="tok")) is False
        assert callbacks.failure("late") is False

        on_exit.assert_called_once_with()
        on_success.assert_not_called()
        on_failure.assert_not_called()
        assert callbacks.outcome == LinkOutcome.EXIT

    def test_repeated_outcome_ignored(self):
        callbacks, on_success, _, _ = make_callbacks()
        auth = Authorization(access_token="tok")

        callbacks.success(auth)
        callbacks.success(auth)

        on_success.assert_called_once_with(auth)

    def test_failure_passes_reason(self):
        callbacks, _, _, on_failure = make_callbacks()

        callbacks.failure("institution down")

        on_failure.assert_called_once_with("institution down")


class TestAdapterDispatch:
    """Tests for the provider dispatch table."""

    def test_table_has_one_adapter_per_provider(self):
        adapters = build_adapters(Mock())

        assert set(adapters) == {ProviderType.PLAID, ProviderType.TELLER, ProviderType.GOCARDLESS}
        assert isinstance(adapters[ProviderType.PLAID], PlaidAdapter)
        assert isinstance(adapters[ProviderType.TELLER], TellerAdapter)

    @pytest.mark.parametrize("provider", ["plaid", "PLAID", " Plaid ", ProviderType.PLAID])
    def test_lookup_by_provider(self, provider):
        adapters = build_adapters(Mock())

        assert get_adapter(adapters, provider) is adapters[ProviderType.PLAID]

    @pytest.mark.parametrize("provider", ["mx", "", None, 42])
    def test_unknown_provider(self, provider):
        assert get_adapter(build_adapters(Mock()), provider) is None

    def test_gocardless_cannot_launch(self):
        adapter = GoCardlessAdapter(Mock())

        assert adapter.supports_launch is False
        assert adapter.is_configured() is False
        assert adapter.requires_link_token is False


class TestPlaidAdapter:
    """Tests for Plaid Link configuration and outcome translation."""

    @pytest.fixture
    def exchanger(self):
        mock = Mock()
        mock.exchange = AsyncMock(return_value="access-1")
        return mock

    @pytest.fixture
    def adapter(self, widgets, exchanger):
        return PlaidAdapter(
            widgets.create,
            provisioner=Mock(),
            exchanger=exchanger,
            env="sandbox",
            client_name="Ledger",
            products=["transactions"],
        )

    @pytest.mark.asyncio
    async def test_requires_link_token(self, adapter):
        callbacks, *_ = make_callbacks()

        with pytest.raises(ValueError):
            await adapter.launch(Selection("ins_1", ProviderType.PLAID, "US"), None, callbacks)

    @pytest.mark.asyncio
    async def test_opens_configured_widget(self, adapter, widgets):
        callbacks, *_ = make_callbacks()

        await adapter.launch(Selection("ins_1", ProviderType.PLAID, "US"), "link-1", callbacks)

        assert widgets.pending_launch() == {
            "provider": "plaid",
            "config": {
                "token": "link-1",
                "env": "sandbox",
                "clientName": "Ledger",
                "product": ["transactions"],
                "institutionId": "ins_1",
            },
        }

    @pytest.mark.asyncio
    async def test_success_exchanges_public_token(self, adapter, widgets, exchanger):
        callbacks, on_success, _, _ = make_callbacks()
        await adapter.launch(Selection("ins_1", ProviderType.PLAID, "US"), "link-1", callbacks)

        await widgets.deliver(
            LinkOutcome.SUCCESS,
            {"public_token": "public-1", "metadata": {"institution": {"institution_id": "ins_9"}}},
        )

        exchanger.exchange.assert_awaited_once_with("public-1")
        on_success.assert_called_once_with(
            Authorization(access_token="access-1", institution_id="ins_9")
        )

    @pytest.mark.asyncio
    async def test_exchange_error_is_failure(self, adapter, widgets, exchanger):
        exchanger.exchange.side_effect = ExchangeError("bad token")
        callbacks, on_success, _, on_failure = make_callbacks()
        await adapter.launch(Selection("ins_1", ProviderType.PLAID, "US"), "link-1", callbacks)

        await widgets.deliver(LinkOutcome.SUCCESS, {"public_token": "public-1"})

        on_success.assert_not_called()
        on_failure.assert_called_once()

    @pytest.mark.asyncio
    async def test_exit_with_error_is_failure(self, adapter, widgets):
        callbacks, _, on_exit, on_failure = make_callbacks()
        await adapter.launch(Selection("ins_1", ProviderType.PLAID, "US"), "link-1", callbacks)

        await widgets.deliver(LinkOutcome.EXIT, {"error": "INSTITUTION_DOWN"})

        on_exit.assert_not_called()
        on_failure.assert_called_once_with("INSTITUTION_DOWN")

    @pytest.mark.asyncio
    async def test_plain_exit(self, adapter, widgets):
        callbacks, _, on_exit, _ = make_callbacks()
        await adapter.launch(Selection("ins_1", ProviderType.PLAID, "US"), "link-1", callbacks)

        await widgets.deliver(LinkOutcome.EXIT)

        on_exit.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_relaunch_closes_previous_widget(self, adapter, widgets):
        callbacks, *_ = make_callbacks()
        selection = Selection("ins_1", ProviderType.PLAID, "US")
        await adapter.launch(selection, "link-1", callbacks)
        first = widgets.current

        await adapter.launch(selection, "link-2", make_callbacks()[0])

        assert first.closed is True
        assert widgets.pending_launch()["config"]["token"] == "link-2"


class TestTellerAdapter:
    """Tests for Teller Connect launch timing and outcome translation."""

    @pytest.mark.asyncio
    async def test_open_waits_for_settle_interval(self, widgets):
        adapter = TellerAdapter(widgets.create, application_id="app_1", settle_seconds=0.05)
        callbacks, *_ = make_callbacks()

        await adapter.launch(Selection("wells_fargo", ProviderType.TELLER, "US"), None, callbacks)

        assert widgets.current is not None
        assert widgets.pending_launch() is None

        await asyncio.sleep(0.1)

        assert widgets.pending_launch()["config"] == {
            "applicationId": "app_1",
            "environment": adapter.environment,
            "institution": "wells_fargo",
        }

    @pytest.mark.asyncio
    async def test_success_carries_enrollment(self, widgets):
        adapter = TellerAdapter(widgets.create, application_id="app_1", settle_seconds=0)
        callbacks, on_success, _, _ = make_callbacks()
        await adapter.launch(Selection("wells_fargo", ProviderType.TELLER, "US"), None, callbacks)
        await asyncio.sleep(0.01)

        await widgets.deliver(
            LinkOutcome.SUCCESS, {"accessToken": "tok-teller", "enrollment": {"id": "enr_1"}}
        )

        on_success.assert_called_once_with(
            Authorization(access_token="tok-teller", enrollment_id="enr_1")
        )

    @pytest.mark.asyncio
    async def test_open_error_is_failure(self):
        widget = Mock()
        widget.open.side_effect = RuntimeError("sdk not loaded")
        adapter = TellerAdapter(Mock(return_value=widget), application_id="app_1", settle_seconds=0)
        callbacks, _, _, on_failure = make_callbacks()

        await adapter.launch(Selection("wells_fargo", ProviderType.TELLER, "US"), None, callbacks)
        await asyncio.sleep(0.01)

        on_failure.assert_called_once_with("sdk not loaded")

    @pytest.mark.asyncio
    async def test_dismiss_during_settle_cancels_open(self, widgets):
        adapter = TellerAdapter(widgets.create, application_id="app_1", settle_seconds=0.05)
        callbacks, *_ = make_callbacks()
        await adapter.launch(Selection("wells_fargo", ProviderType.TELLER, "US"), None, callbacks)
        widget = widgets.current

        adapter.dismiss()
        await asyncio.sleep(0.1)

        assert widget.opened is False
        assert widget.closed is True
        assert widgets.current is None
        assert widgets.pending_launch() is None

    def test_needs_application_id(self):
        assert TellerAdapter(Mock(), application_id="app_1").is_configured() is True


class TestWidgetHost:
    """Tests for delivering browser outcomes to hosted widgets."""

    @pytest.mark.asyncio
    async def test_deliver_without_open_widget(self, widgets):
        with pytest.raises(LookupError):
            await widgets.deliver(LinkOutcome.EXIT)

    @pytest.mark.asyncio
    async def test_deliver_once(self, widgets):
        handlers = Mock()
        widget = widgets.create(ProviderType.TELLER, {}, handlers)
        widget.open()

        assert await widget.deliver(LinkOutcome.EXIT) is True
        assert await widget.deliver(LinkOutcome.SUCCESS, {"accessToken": "x"}) is False

        handlers.for_outcome.assert_called_once_with(LinkOutcome.EXIT)
        assert widgets.pending_launch() is None

    @pytest.mark.asyncio
    async def test_closed_widget_is_released(self, widgets):
        """Outcomes for a closed widget reach no handler."""
        handlers = Mock()
        widget = widgets.create(ProviderType.PLAID, {"token": "link-1"}, handlers)
        widget.open()

        widget.close()

        assert widgets.current is None
        assert widgets.pending_launch() is None
        assert await widget.deliver(LinkOutcome.SUCCESS, {"public_token": "public-1"}) is False
        handlers.for_outcome.assert_not_called()
        with pytest.raises(LookupError):
            await widgets.deliver(LinkOutcome.SUCCESS)

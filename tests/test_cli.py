"""Tests for the CLI commands."""

from unittest.mock import AsyncMock, Mock

from typer.testing import CliRunner

from bankconnect.cli import connect as connect_cli
from bankconnect.cli import main as main_cli
from bankconnect.cli.main import app

runner = CliRunner()


def fake_engine(institutions=None):
    """Engine client stand-in answering directory searches."""
    engine = Mock()
    engine.get = AsyncMock(return_value={"data": institutions or []})
    engine.post = AsyncMock(return_value=None)
    engine.aclose = AsyncMock()
    return engine


class TestCli:
    """Tests for status, version and connect decode."""

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "1.0.0" in result.output

    def test_status_lists_providers(self, monkeypatch):
        engine = fake_engine()
        monkeypatch.setattr(main_cli, "EngineClient", Mock(return_value=engine))

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        engine.aclose.assert_awaited_once()
        for name in ("Plaid", "Teller", "GoCardless"):
            assert name in result.output

    def test_decode_location(self):
        result = runner.invoke(
            app, ["connect", "decode", "/?step=account&provider=teller&token=tok-teller-1"]
        )

        assert result.exit_code == 0
        assert "teller" in result.output
        assert "tok-te..." in result.output
        assert "Inconsistent" not in result.output

    def test_decode_flags_orphan_credential(self):
        result = runner.invoke(app, ["connect", "decode", "step=account&token=abc"])

        assert result.exit_code == 0
        assert "credential without a provider" in result.output

    def test_search_prints_results_and_closes_client(self, monkeypatch):
        engine = fake_engine(
            [
                {"id": "ins_1", "name": "Chase", "provider": "plaid", "available_history": 24},
                {"id": "gc_1", "name": "Monzo", "provider": "gocardless"},
            ]
        )
        monkeypatch.setattr(connect_cli, "EngineClient", Mock(return_value=engine))

        result = runner.invoke(app, ["connect", "search", "--country", "us"])

        assert result.exit_code == 0
        assert "Chase" in result.output
        assert "24 mo" in result.output
        engine.get.assert_awaited_with("/institutions", params={"countryCode": "US"})
        engine.aclose.assert_awaited_once()

    def test_search_without_results(self, monkeypatch):
        engine = fake_engine()
        monkeypatch.setattr(connect_cli, "EngineClient", Mock(return_value=engine))

        result = runner.invoke(app, ["connect", "search", "nowhere"])

        assert result.exit_code == 0
        assert "No banks found" in result.output
        engine.aclose.assert_awaited_once()

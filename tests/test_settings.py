"""Tests for environment-driven configuration."""

import pytest
from pathlib import Path

from finledger.config import (
    AppSettings,
    LedgerSettings,
    get_settings,
    validate_all_settings,
)


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch, tmp_path):
    """Run each test from an empty directory with a cleared settings cache."""
    monkeypatch.chdir(tmp_path)
    for name in ("GOOGLE_SHEETS_CREDENTIALS_PATH", "GOOGLE_SHEETS_SPREADSHEET_ID"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestLedgerSettings:
    """Tests for the ledger settings."""

    def test_defaults(self):
        settings = LedgerSettings()
        assert settings.state_key == "financeState_v3"
        assert settings.data_dir == Path(".finledger")
        assert settings.due_soon_days == 7
        assert settings.upcoming_debts_limit == 6
        assert settings.default_category == "Other"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("LEDGER_DUE_SOON_DAYS", "3")
        monkeypatch.setenv("LEDGER_AUTOSAVE_INTERVAL_SECONDS", "0")
        settings = LedgerSettings()
        assert settings.due_soon_days == 3
        assert settings.autosave_interval_seconds == 0

    def test_rejects_negative_interval(self, monkeypatch):
        monkeypatch.setenv("LEDGER_AUTOSAVE_INTERVAL_SECONDS", "-1")
        with pytest.raises(ValueError):
            LedgerSettings()

    def test_env_file(self, tmp_path):
        (tmp_path / ".env").write_text("LEDGER_STATE_KEY=ledger_test\n", encoding="utf-8")
        assert LedgerSettings().state_key == "ledger_test"


class TestAppSettings:
    def test_merchant_defaults(self):
        settings = AppSettings()
        assert settings.currency_code == "BRL"
        assert settings.currency_symbol == "R$"
        assert len(settings.merchant_name) <= 25


class TestValidateAllSettings:
    """Tests for the startup configuration check."""

    def test_ledger_works_without_google(self):
        status = validate_all_settings()
        assert status["ledger"] is True
        assert status["app"] is True
        assert status["google_sheets"] is False
        assert "google_sheets_error" in status

    def test_google_configured(self, monkeypatch, tmp_path):
        credentials = tmp_path / "credentials.json"
        credentials.write_text("{}", encoding="utf-8")
        monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(credentials))
        monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "sheet-id")
        assert validate_all_settings()["google_sheets"] is True

"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from splitledger.config import AppSettings, LedgerSettings, get_settings, validate_all_settings


class TestLedgerSettings:
    """Tests for LedgerSettings."""

    def test_defaults(self, monkeypatch):
        """Defaults enforce the debt limit and retry three times."""
        for name in (
            "SPLITLEDGER_ENFORCE_DEBT_LIMIT",
            "SPLITLEDGER_CONFLICT_RETRY_ATTEMPTS",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = LedgerSettings()
        assert settings.enforce_debt_limit is True
        assert settings.conflict_retry_attempts == 3

    def test_environment_override(self, monkeypatch):
        """SPLITLEDGER_ variables override the defaults."""
        monkeypatch.setenv("SPLITLEDGER_ENFORCE_DEBT_LIMIT", "false")
        monkeypatch.setenv("SPLITLEDGER_CONFLICT_RETRY_ATTEMPTS", "5")

        settings = LedgerSettings()
        assert settings.enforce_debt_limit is False
        assert settings.conflict_retry_attempts == 5

    def test_invalid_values(self):
        """Retry counts and waits outside their bounds are rejected."""
        with pytest.raises(ValidationError):
            LedgerSettings(conflict_retry_wait_seconds=-1)
        with pytest.raises(ValidationError):
            LedgerSettings(conflict_retry_attempts=0)


class TestAppSettings:
    """Tests for AppSettings and the root container."""

    def test_log_level_pattern(self):
        """Only standard level names are accepted."""
        assert AppSettings(log_level="DEBUG").log_level == "DEBUG"
        with pytest.raises(ValidationError):
            AppSettings(log_level="LOUD")

    def test_get_settings_cached(self):
        """get_settings returns one shared instance until cleared."""
        get_settings.cache_clear()
        first = get_settings()
        assert get_settings() is first
        get_settings.cache_clear()
        assert get_settings() is not first

    def test_validate_all_settings(self, monkeypatch):
        """Startup validation reports each section."""
        monkeypatch.setenv("SPLITLEDGER_CONFLICT_RETRY_ATTEMPTS", "99")
        results = validate_all_settings()
        assert results["app"] is True
        assert results["ledger"] is False
        assert "ledger_error" in results

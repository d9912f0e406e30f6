"""Tests for configuration loading and validation."""

import pytest

from spa_booking.config import (
    AppConfig,
    BusinessConfig,
    DatabaseConfig,
    SchedulingConfig,
    _safe_int,
    _validate_config,
    settings,
)


def _config(business=None, scheduling=None, database=None) -> AppConfig:
    return AppConfig(
        business=business or BusinessConfig(),
        scheduling=scheduling or SchedulingConfig(),
        database=database or DatabaseConfig(),
    )


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        _validate_config(AppConfig())  # should not raise

    def test_close_before_open(self):
        business = BusinessConfig(open_time="20:00", close_time="09:00")
        with pytest.raises(ValueError, match="BUSINESS_CLOSE"):
            _validate_config(_config(business=business))

    def test_malformed_hours(self):
        business = BusinessConfig(open_time="9am")
        with pytest.raises(ValueError, match="HH:MM"):
            _validate_config(_config(business=business))

    def test_unknown_timezone(self):
        business = BusinessConfig(timezone="Mars/Olympus_Mons")
        with pytest.raises(ValueError, match="BUSINESS_TIMEZONE"):
            _validate_config(_config(business=business))

    def test_negative_advance_notice(self):
        with pytest.raises(ValueError, match="MIN_ADVANCE_MINUTES"):
            _validate_config(_config(scheduling=SchedulingConfig(min_advance_minutes=-5)))

    def test_zero_booking_window(self):
        with pytest.raises(ValueError, match="MAX_ADVANCE_DAYS"):
            _validate_config(_config(scheduling=SchedulingConfig(max_advance_days=0)))

    def test_slot_step_out_of_range(self):
        with pytest.raises(ValueError, match="SLOT_STEP_MINUTES"):
            _validate_config(_config(scheduling=SchedulingConfig(slot_step_minutes=90)))

    def test_unbounded_retries_rejected(self):
        with pytest.raises(ValueError, match="COMMIT_RETRIES"):
            _validate_config(_config(scheduling=SchedulingConfig(commit_retries=10)))

    def test_abandoned_age_must_be_positive(self):
        with pytest.raises(ValueError, match="ABANDONED_PENDING_MINUTES"):
            _validate_config(_config(scheduling=SchedulingConfig(abandoned_pending_minutes=0)))

    def test_pool_timeout_must_be_positive(self):
        with pytest.raises(ValueError, match="DB_POOL_TIMEOUT"):
            _validate_config(_config(database=DatabaseConfig(pool_timeout_seconds=0)))


class TestSafeInt:
    def test_reads_env_var(self, monkeypatch):
        monkeypatch.setenv("SPA_TEST_INT", "42")
        assert _safe_int("SPA_TEST_INT", "1") == 42

    def test_falls_back_to_default(self, monkeypatch):
        monkeypatch.delenv("SPA_TEST_INT", raising=False)
        assert _safe_int("SPA_TEST_INT", "7") == 7

    def test_bad_value_names_variable(self, monkeypatch):
        monkeypatch.setenv("SPA_TEST_INT", "many")
        with pytest.raises(ValueError, match="SPA_TEST_INT"):
            _safe_int("SPA_TEST_INT", "1")


class TestSettingsSingleton:
    def test_settings_is_app_config(self):
        assert isinstance(settings, AppConfig)

    def test_config_is_frozen(self):
        with pytest.raises(AttributeError):
            settings.log_level = "DEBUG"  # type: ignore[misc]

from datetime import timedelta

import pytest
from pydantic import ValidationError

from remitflow.utils.config import Settings, get_settings
from remitflow.utils.logging import filter_sensitive_data


def test_settings_defaults():
    settings = Settings(_env_file=None)

    assert settings.order_number_prefix == "REM"
    assert settings.alert_interval_seconds == 300
    assert settings.warning_dedup_window == timedelta(hours=24)
    assert settings.breach_dedup_window == timedelta(hours=1)
    assert not settings.awaiting_proof_sla_enabled


def test_settings_env_override(monkeypatch):
    """Environment variables use the REMITFLOW_ prefix."""
    monkeypatch.setenv("REMITFLOW_ALERT_INTERVAL_SECONDS", "60")
    monkeypatch.setenv("REMITFLOW_ORDER_NUMBER_PREFIX", "RMT")
    monkeypatch.setenv("REMITFLOW_CURRENCY_MINOR_UNITS", '{"jpy": 0, "CLF": 1}')

    settings = get_settings(force_reload=True)
    try:
        assert settings.alert_interval_seconds == 60
        assert settings.order_number_prefix == "RMT"
        assert settings.minor_units_for("jpy") == 0
        assert settings.minor_units_for("clf") == 1
        assert settings.minor_units_for("USD") == 2
    finally:
        monkeypatch.undo()
        get_settings(force_reload=True)


def test_awaiting_proof_sla_thresholds():
    settings = Settings(
        _env_file=None, awaiting_proof_warning_hours=12, awaiting_proof_breach_hours=48
    )
    assert settings.awaiting_proof_sla_enabled

    with pytest.raises(ValidationError, match="set together"):
        Settings(_env_file=None, awaiting_proof_breach_hours=48)

    with pytest.raises(ValidationError, match="must not exceed"):
        Settings(_env_file=None, awaiting_proof_warning_hours=50, awaiting_proof_breach_hours=48)


def test_minor_units_are_bounded_by_stored_scale():
    with pytest.raises(ValidationError, match="between 0 and 2"):
        Settings(_env_file=None, currency_minor_units={"KWD": 3})

    settings = Settings(_env_file=None, currency_minor_units={"jpy": 0})
    assert settings.currency_minor_units == {"JPY": 0}


def test_interval_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, alert_interval_seconds=0)


def test_recipient_identity_is_redacted_in_logs():
    event_dict = {
        "event": "order_created",
        "recipient_phone": "+53 5 1234567",
        "delivered_to_id": "85010112345",
        "order_id": 1,
    }

    filtered = filter_sensitive_data(None, "info", event_dict)

    assert filtered["recipient_phone"] == "***REDACTED***"
    assert filtered["delivered_to_id"] == "***REDACTED***"
    assert filtered["order_id"] == 1

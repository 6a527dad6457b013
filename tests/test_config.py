"""Unit tests for core/config.py -- SECRET_KEY policy and defaults."""

import pytest
from pydantic import ValidationError

from core.config import Settings


def test_debug_generates_secret_key():
    settings = Settings(debug=True, secret_key="")
    assert len(settings.secret_key) >= 32


def test_production_requires_secret_key():
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings(debug=False, secret_key="")


def test_short_secret_key_rejected():
    with pytest.raises(ValidationError, match="at least 32"):
        Settings(debug=True, secret_key="short")


def test_short_otp_length_rejected():
    with pytest.raises(ValidationError, match="OTP_LENGTH"):
        Settings(debug=True, otp_length=3)


def test_defaults():
    settings = Settings(debug=True, secret_key="k" * 32)
    assert settings.token_expire_seconds == 7 * 24 * 3600
    assert settings.otp_ttl_seconds == 600
    assert settings.otp_length == 6
    assert settings.port == 8080


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "e" * 40)
    monkeypatch.setenv("OTP_TTL_SECONDS", "120")
    monkeypatch.setenv("SMTP_SECURE", "true")
    settings = Settings()
    assert settings.secret_key == "e" * 40
    assert settings.otp_ttl_seconds == 120
    assert settings.smtp_secure is True


def test_default_allowed_hosts_are_local_only():
    settings = Settings(debug=True, secret_key="k" * 32)
    assert settings.allowed_hosts == ["localhost", "127.0.0.1", "*.localhost"]

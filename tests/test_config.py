"""Tests for environment-driven settings"""

import os
from unittest.mock import patch

import pytest

from passkey_auth.utils.config import DEFAULT_SESSION_SECRET, VerifySettings, load_settings
from passkey_auth.utils.exceptions import ConfigError


class TestLoadSettings:
    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self):
        settings = load_settings()
        assert settings.app.port == 3000
        assert settings.app.cors_origins == ["*"]
        assert not settings.app.is_production
        assert settings.session.secret == DEFAULT_SESSION_SECRET
        assert settings.session.pending_ttl_seconds == 300
        assert settings.session.require_reference_echo is False
        assert settings.verify.api_base == "https://verify.twilio.com/v2"

    @patch.dict(
        os.environ,
        {
            "PORT": "8080",
            "CORS_ORIGINS": "http://localhost:3000, https://app.example.com",
            "TWILIO_ACCOUNT_SID": "AC1",
            "TWILIO_AUTH_TOKEN": "secret",
            "TWILIO_SERVICE_SID": "VA1",
            "VERIFY_API_BASE": "http://localhost:9000/v2/",
            "PENDING_TTL_SECONDS": "60",
            "REQUIRE_REFERENCE_ECHO": "true",
            "LOG_LEVEL": "DEBUG",
        },
        clear=True,
    )
    def test_reads_environment(self):
        settings = load_settings()
        assert settings.app.port == 8080
        assert settings.app.cors_origins == ["http://localhost:3000", "https://app.example.com"]
        assert settings.verify.missing() == []
        assert settings.verify.api_base == "http://localhost:9000/v2"
        assert settings.session.pending_ttl_seconds == 60
        assert settings.session.require_reference_echo is True
        assert settings.logging.level == "DEBUG"

    @patch.dict(os.environ, {"PORT": "eighty"}, clear=True)
    def test_bad_integer(self):
        with pytest.raises(ConfigError, match="PORT"):
            load_settings()

    @patch.dict(os.environ, {"ENVIRONMENT": "production"}, clear=True)
    def test_production_requires_session_secret(self):
        with pytest.raises(ConfigError, match="SESSION_SECRET"):
            load_settings()

    @patch.dict(os.environ, {"ENVIRONMENT": "production", "SESSION_SECRET": "s3cret"}, clear=True)
    def test_production_with_secret(self):
        settings = load_settings()
        assert settings.app.is_production
        assert settings.session.secret == "s3cret"


class TestVerifySettings:
    def test_missing_lists_unset_variables(self):
        settings = VerifySettings(service_sid="VA1")
        assert settings.missing() == ["TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN"]

    def test_require_credentials(self):
        with pytest.raises(ConfigError):
            VerifySettings().require_credentials()
        VerifySettings(account_sid="AC1", auth_token="t", service_sid="VA1").require_credentials()

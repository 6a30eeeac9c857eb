"""
Configuration loaded from environment variables (typically via .env).

Verification service:
- TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_SERVICE_SID
- VERIFY_API_BASE (optional), VERIFY_TIMEOUT_SECONDS (optional)

Web:
- WEB_HOST, PORT, ENVIRONMENT, CORS_ORIGINS

Session:
- SESSION_SECRET, SESSION_COOKIE, PENDING_TTL_SECONDS, REQUIRE_REFERENCE_ECHO

Logging:
- LOG_LEVEL, LOG_FORMAT, LOG_FILE
"""

import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .exceptions import ConfigError

# Load environment variables
load_dotenv()

DEFAULT_SESSION_SECRET = "demo-secret-key"


class AppSettings(BaseModel):
    name: str = "Passkey Demo"
    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


class VerifySettings(BaseModel):
    account_sid: str = ""
    auth_token: str = ""
    service_sid: str = ""
    api_base: str = "https://verify.twilio.com/v2"
    timeout_seconds: int = 30

    def missing(self) -> List[str]:
        """Names of required environment variables that are not set."""
        required = {
            "TWILIO_ACCOUNT_SID": self.account_sid,
            "TWILIO_AUTH_TOKEN": self.auth_token,
            "TWILIO_SERVICE_SID": self.service_sid,
        }
        return [name for name, value in required.items() if not value]

    def require_credentials(self) -> None:
        missing = self.missing()
        if missing:
            raise ConfigError(
                f"{', '.join(missing)} must be set in environment for the verification service."
            )


class SessionSettings(BaseModel):
    secret: str = DEFAULT_SESSION_SECRET
    cookie_name: str = "passkey_session"
    max_age_seconds: int = 14 * 24 * 60 * 60
    pending_ttl_seconds: int = 300
    require_reference_echo: bool = False


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = "json"
    file_path: Optional[str] = None
    max_bytes: int = 10485760
    backup_count: int = 5


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    verify: VerifySettings = Field(default_factory=VerifySettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def load_settings() -> Settings:
    """Build settings from the current environment."""
    environment = (os.getenv("ENVIRONMENT") or "development").strip().lower()
    cors_raw = os.getenv("CORS_ORIGINS")
    cors_origins = [o.strip() for o in cors_raw.split(",") if o.strip()] if cors_raw else ["*"]

    settings = Settings(
        app=AppSettings(
            environment=environment,
            host=os.getenv("WEB_HOST", "0.0.0.0"),
            port=_env_int("PORT", 3000),
            cors_origins=cors_origins,
        ),
        verify=VerifySettings(
            account_sid=os.getenv("TWILIO_ACCOUNT_SID") or "",
            auth_token=os.getenv("TWILIO_AUTH_TOKEN") or "",
            service_sid=os.getenv("TWILIO_SERVICE_SID") or "",
            api_base=(os.getenv("VERIFY_API_BASE") or "https://verify.twilio.com/v2").rstrip("/"),
            timeout_seconds=_env_int("VERIFY_TIMEOUT_SECONDS", 30),
        ),
        session=SessionSettings(
            secret=os.getenv("SESSION_SECRET") or DEFAULT_SESSION_SECRET,
            cookie_name=os.getenv("SESSION_COOKIE") or "passkey_session",
            pending_ttl_seconds=_env_int("PENDING_TTL_SECONDS", 300),
            require_reference_echo=_env_bool("REQUIRE_REFERENCE_ECHO"),
        ),
        logging=LoggingSettings(
            level=os.getenv("LOG_LEVEL", "INFO"),
            format=os.getenv("LOG_FORMAT", "json"),
            file_path=os.getenv("LOG_FILE") or None,
        ),
    )

    if settings.app.is_production and settings.session.secret == DEFAULT_SESSION_SECRET:
        raise ConfigError("SESSION_SECRET must be set in production.")
    return settings

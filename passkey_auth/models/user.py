"""User data models"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

IDENTITY_LENGTH = 16


def derive_identity(username: str) -> str:
    """
    Deterministic identity token used to reference a user at the verification service.

    Hex encoding of the UTF-8 username, right-padded with '0' to 16 characters,
    then truncated to 16 characters. Usernames sharing their first 8 bytes map to
    the same identity.
    """
    return username.encode("utf-8").hex().ljust(IDENTITY_LENGTH, "0")[:IDENTITY_LENGTH]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    """Registered user; created once registration is verified"""

    model_config = ConfigDict(frozen=True)  # Immutable once stored

    username: str
    display_name: str
    identity: str
    factor_reference: str
    created_at: datetime = Field(default_factory=utcnow)

"""Shared fixtures: a scripted verification service and a test app"""

from typing import Any, Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from passkey_auth.client.codec import base64url_encode
from passkey_auth.services.session_store import InMemorySessionStore
from passkey_auth.services.user_store import InMemoryUserDirectory
from passkey_auth.utils.config import Settings
from web.main import create_app


def creation_options(identity: str, display_name: str) -> Dict[str, Any]:
    return {
        "publicKey": {
            "rp": {"id": "localhost", "name": "Passkey Demo App"},
            "user": {
                "id": base64url_encode(identity.encode("utf-8")),
                "name": identity,
                "displayName": display_name,
            },
            "challenge": base64url_encode(b"registration-challenge"),
            "pubKeyCredParams": [{"type": "public-key", "alg": -7}],
            "excludeCredentials": [],
            "authenticatorSelection": {"userVerification": "preferred"},
        }
    }


def request_options() -> Dict[str, Any]:
    return {
        "publicKey": {
            "challenge": base64url_encode(b"login-challenge"),
            "rpId": "localhost",
            "allowCredentials": [{"type": "public-key", "id": base64url_encode(b"cred-1")}],
            "userVerification": "preferred",
        }
    }


class FakeVerificationService:
    """In-process stand-in for the Verify Passkeys API"""

    def __init__(self):
        self.calls: List[Tuple[Any, ...]] = []
        self.factor_count = 0
        self.challenge_count = 0
        self.create_error: Optional[Exception] = None
        self.verify_error: Optional[Exception] = None
        self.approve_error: Optional[Exception] = None
        self.challenge_status = "approved"
        self.returned_sid: Optional[str] = None

    def call_names(self) -> List[str]:
        return [c[0] for c in self.calls]

    def create_factor(self, identity: str, display_name: str):
        self.calls.append(("create_factor", identity, display_name))
        if self.create_error:
            raise self.create_error
        self.factor_count += 1
        return creation_options(identity, display_name), f"YF{self.factor_count:032d}"

    def verify_factor(self, factor_reference: str, credential: Dict[str, Any]):
        self.calls.append(("verify_factor", factor_reference, credential))
        if self.verify_error:
            raise self.verify_error
        return {"sid": self.returned_sid or factor_reference, "status": "verified"}

    def create_challenge(self, identity: str):
        self.calls.append(("create_challenge", identity))
        if self.create_error:
            raise self.create_error
        self.challenge_count += 1
        return request_options(), f"YC{self.challenge_count:032d}"

    def approve_challenge(self, challenge_reference: str, credential: Dict[str, Any]):
        self.calls.append(("approve_challenge", challenge_reference, credential))
        if self.approve_error:
            raise self.approve_error
        return {"sid": self.returned_sid or challenge_reference, "status": self.challenge_status}


STUB_CREDENTIAL = {
    "id": "Y3JlZC0x",
    "rawId": "Y3JlZC0x",
    "type": "public-key",
    "response": {"clientDataJSON": "e30", "attestationObject": "AQI"},
}


@pytest.fixture
def fake_verifier():
    return FakeVerificationService()


@pytest.fixture
def users():
    return InMemoryUserDirectory()


@pytest.fixture
def sessions():
    return InMemorySessionStore()


@pytest.fixture
def app(users, fake_verifier, sessions):
    return create_app(
        settings=Settings(), users=users, verify_client=fake_verifier, sessions=sessions
    )


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def credential():
    return dict(STUB_CREDENTIAL)

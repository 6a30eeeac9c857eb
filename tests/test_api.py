"""HTTP-level tests for the passkey API routes"""

import pytest
from fastapi.testclient import TestClient

from passkey_auth.utils.config import SessionSettings, Settings
from passkey_auth.utils.exceptions import UpstreamError
from web.main import create_app


def register(client, credential, username="alice", display_name="Alice A"):
    started = client.post(
        "/api/register/start", json={"username": username, "displayName": display_name}
    )
    assert started.status_code == 200
    return client.post(
        "/api/register/complete",
        json={"credential": credential, "factorReference": started.json()["factorReference"]},
    )


def login(client, credential, username="alice"):
    started = client.post("/api/login/start", json={"username": username})
    assert started.status_code == 200
    return client.post(
        "/api/login/complete",
        json={"credential": credential, "challengeReference": started.json()["challengeReference"]},
    )


class TestRegistration:
    def test_register_start_returns_options(self, client, fake_verifier):
        response = client.post(
            "/api/register/start", json={"username": "alice", "displayName": "Alice A"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["factorReference"].startswith("YF")
        assert data["options"]["publicKey"]["user"]["displayName"] == "Alice A"
        assert fake_verifier.calls == [("create_factor", "616c696365000000", "Alice A")]

    def test_full_registration(self, client, users, credential):
        response = register(client, credential)
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Registration successful",
            "username": "alice",
        }
        user = users.get("alice")
        assert user.display_name == "Alice A"
        assert user.created_at is not None

    def test_missing_fields(self, client, fake_verifier):
        response = client.post("/api/register/start", json={"username": "alice"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Username and display name are required"
        assert fake_verifier.calls == []

    def test_duplicate_username(self, client, credential):
        register(client, credential)
        response = client.post(
            "/api/register/start", json={"username": "alice", "displayName": "Again"}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "User already exists"

    def test_complete_without_start(self, client, fake_verifier, credential):
        response = client.post("/api/register/complete", json={"credential": credential})
        assert response.status_code == 400
        assert response.json()["detail"] == "No registration in progress"
        assert fake_verifier.calls == []

    def test_complete_twice(self, client, credential):
        assert register(client, credential).status_code == 200
        response = client.post("/api/register/complete", json={"credential": credential})
        assert response.status_code == 400

    def test_upstream_failure_is_500(self, client, fake_verifier):
        fake_verifier.create_error = UpstreamError("service unavailable", status=503, transient=True)
        response = client.post(
            "/api/register/start", json={"username": "alice", "displayName": "Alice A"}
        )
        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to start registration"

    def test_malformed_body(self, client):
        response = client.post(
            "/api/register/start",
            content="not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid request body"

    def test_reference_echo_enforced_by_config(self, users, fake_verifier, credential):
        settings = Settings(session=SessionSettings(require_reference_echo=True))
        client = TestClient(create_app(settings=settings, users=users, verify_client=fake_verifier))
        client.post("/api/register/start", json={"username": "alice", "displayName": "Alice A"})

        response = client.post("/api/register/complete", json={"credential": credential})
        assert response.status_code == 400
        assert response.json()["detail"] == "factorReference is required"


class TestLogin:
    def test_unknown_user(self, client, fake_verifier, credential):
        response = client.post("/api/login/start", json={"username": "ghost"})
        assert response.status_code == 404
        assert response.json()["detail"] == "User not found"
        assert "create_challenge" not in fake_verifier.call_names()

        response = client.post("/api/login/complete", json={"credential": credential})
        assert response.status_code == 400

    def test_login_sets_session_user(self, client, credential):
        register(client, credential)
        response = login(client, credential)
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Login successful",
            "user": {"username": "alice", "displayName": "Alice A"},
        }

        current = client.get("/api/user").json()
        assert current == {
            "authenticated": True,
            "user": {"username": "alice", "displayName": "Alice A"},
        }

    def test_challenge_not_approved(self, client, fake_verifier, credential):
        register(client, credential)
        fake_verifier.challenge_status = "pending"

        response = login(client, credential)
        assert response.status_code == 401
        assert response.json()["detail"] == "Authentication failed"

        # The failed challenge was consumed
        response = client.post("/api/login/complete", json={"credential": credential})
        assert response.status_code == 400
        assert client.get("/api/user").json() == {"authenticated": False}

    def test_missing_username(self, client):
        response = client.post("/api/login/start", json={})
        assert response.status_code == 400
        assert response.json()["detail"] == "Username is required"

    def test_upstream_failure_on_complete(self, client, fake_verifier, credential):
        register(client, credential)
        fake_verifier.approve_error = UpstreamError("bad assertion", status=400)
        response = login(client, credential)
        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to complete login"


class TestSession:
    def test_anonymous_user(self, client):
        response = client.get("/api/user")
        assert response.status_code == 200
        assert response.json() == {"authenticated": False}

    def test_logout(self, client, credential):
        register(client, credential)
        login(client, credential)

        response = client.post("/api/logout")
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Logged out successfully"}
        assert client.get("/api/user").json() == {"authenticated": False}

    def test_logout_when_anonymous(self, client):
        assert client.post("/api/logout").status_code == 200

    def test_sessions_are_independent(self, app, credential):
        first = TestClient(app)
        second = TestClient(app)
        register(first, credential)
        login(first, credential)

        assert first.get("/api/user").json()["authenticated"] is True
        assert second.get("/api/user").json() == {"authenticated": False}

    def test_health(self, client):
        assert client.get("/api/health").json() == {"status": "ok"}


class TestUnconfigured:
    @pytest.fixture
    def unconfigured_client(self, users):
        return TestClient(create_app(settings=Settings(), users=users))

    def test_ceremonies_fail_with_500(self, unconfigured_client):
        response = unconfigured_client.post(
            "/api/register/start", json={"username": "alice", "displayName": "Alice A"}
        )
        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to start registration"

    def test_session_endpoint_still_served(self, unconfigured_client):
        assert unconfigured_client.get("/api/user").json() == {"authenticated": False}


COOKIE = "passkey_session"


class TestServerSideSessions:
    def test_completed_login_cannot_be_replayed_after_logout(self, app, client, fake_verifier, credential):
        register(client, credential)
        started = client.post("/api/login/start", json={"username": "alice"}).json()
        saved_cookie = client.cookies.get(COOKIE)
        body = {"credential": credential, "challengeReference": started["challengeReference"]}
        assert client.post("/api/login/complete", json=body).status_code == 200
        client.post("/api/logout")

        replay = TestClient(app, cookies={COOKIE: saved_cookie})
        response = replay.post("/api/login/complete", json=body)

        assert response.status_code == 400
        assert replay.get("/api/user").json() == {"authenticated": False}
        assert fake_verifier.call_names().count("approve_challenge") == 1

    def test_consumed_challenge_cannot_be_replayed_with_old_cookie(self, app, client, fake_verifier, credential):
        register(client, credential)
        started = client.post("/api/login/start", json={"username": "alice"}).json()
        saved_cookie = client.cookies.get(COOKIE)
        body = {"credential": credential, "challengeReference": started["challengeReference"]}
        assert client.post("/api/login/complete", json=body).status_code == 200

        replay = TestClient(app, cookies={COOKIE: saved_cookie})
        response = replay.post("/api/login/complete", json=body)

        assert response.status_code == 400
        assert response.json()["detail"] == "No login in progress"
        assert fake_verifier.call_names().count("approve_challenge") == 1

    def test_consumed_registration_cannot_be_replayed(self, app, client, users, fake_verifier, credential):
        started = client.post(
            "/api/register/start", json={"username": "alice", "displayName": "Alice A"}
        ).json()
        saved_cookie = client.cookies.get(COOKIE)
        body = {"credential": credential, "factorReference": started["factorReference"]}
        assert client.post("/api/register/complete", json=body).status_code == 200

        replay = TestClient(app, cookies={COOKIE: saved_cookie})
        assert replay.post("/api/register/complete", json=body).status_code == 400
        assert fake_verifier.call_names().count("verify_factor") == 1
        assert len(users) == 1

    def test_logout_invalidates_every_copy_of_the_cookie(self, app, client, sessions, credential):
        register(client, credential)
        login(client, credential)
        saved_cookie = client.cookies.get(COOKIE)
        assert len(sessions) == 1

        client.post("/api/logout")

        assert len(sessions) == 0
        stale = TestClient(app, cookies={COOKIE: saved_cookie})
        assert stale.get("/api/user").json() == {"authenticated": False}

    def test_stale_cookie_gets_a_fresh_session(self, app, client, sessions, credential):
        client.post("/api/register/start", json={"username": "alice", "displayName": "Alice A"})
        saved_cookie = client.cookies.get(COOKIE)
        client.post("/api/logout")

        stale = TestClient(app, cookies={COOKIE: saved_cookie})
        response = stale.post("/api/register/start", json={"username": "bob", "displayName": "Bob"})

        assert response.status_code == 200
        assert response.cookies.get(COOKIE) != saved_cookie
        assert len(sessions) == 1

    def test_complete_without_session_creates_none(self, client, sessions, credential):
        response = client.post("/api/login/complete", json={"credential": credential})
        assert response.status_code == 400
        assert len(sessions) == 0

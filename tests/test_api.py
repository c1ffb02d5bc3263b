from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from email_vault.api.app import create_app
from email_vault.db.memory import InMemoryDBManager
from email_vault.errors import StorageError, UpstreamAuthError, UpstreamError
from email_vault.models.credits import CreditBalance

from conftest import FakeBackend, FlakyDB


@pytest.fixture
def db():
    return InMemoryDBManager()


@pytest.fixture
def services(make_services, db):
    return make_services(db=db)


@pytest.fixture
def client(settings, services):
    return TestClient(create_app(settings=settings, services=services))


def _user_with_credits(services, identity, credits, email="alex.writer@gmail.com"):
    user = identity.add_user(email)
    asyncio.run(services.db.create_credit_balance(CreditBalance(user_id=user.id, credits=credits)))
    return user, identity.issue_token(user.id)


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_generate_with_credits(client, services, identity, backend):
    _, token = _user_with_credits(services, identity, credits=3)

    resp = client.post(
        "/api/generate-email",
        json={"prompt": "Write a thank-you note", "authToken": token},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["saved"] is True
    assert body["credits_remaining"] == 2
    assert body["email"] == backend.text
    assert body["model"] == "gpt-3.5-turbo"
    assert body["usage"] == {"promptTokens": 12, "completionTokens": 80, "totalTokens": 92}
    assert "message" not in body


def test_generate_anonymous(client):
    resp = client.post("/api/generate-email", json={"prompt": "Write a thank-you note"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["saved"] is False
    assert body["message"] == "User not authenticated"
    assert "credits_remaining" not in body


def test_generate_without_credits_is_forbidden(client, services, identity):
    _, token = _user_with_credits(services, identity, credits=0)

    resp = client.post(
        "/api/generate-email",
        json={"prompt": "Write a thank-you note", "authToken": token},
    )

    assert resp.status_code == 403
    assert resp.json() == {
        "error": "No remaining credits",
        "message": "You have used all your credits",
    }


@pytest.mark.parametrize("payload", [{"prompt": ""}, {"prompt": "   "}, {}])
def test_generate_requires_prompt(client, payload):
    resp = client.post("/api/generate-email", json=payload)

    assert resp.status_code == 400
    assert resp.json() == {"error": "A prompt is required"}


def test_generate_unconfigured_backend(settings, make_services):
    app = create_app(settings=settings, services=make_services(backend_override=FakeBackend(configured=False)))

    resp = TestClient(app).post("/api/generate-email", json={"prompt": "hi"})

    assert resp.status_code == 500
    assert resp.json()["error"] == "OpenAI API key is not configured"
    assert "details" in resp.json()


def test_generate_backend_auth_error(settings, make_services):
    backend = FakeBackend(error=UpstreamAuthError("Invalid or expired OpenAI API key"))
    app = create_app(settings=settings, services=make_services(backend_override=backend))

    resp = TestClient(app).post("/api/generate-email", json={"prompt": "hi"})

    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid or expired OpenAI API key"}


def test_generate_backend_error_without_status_is_500(settings, make_services):
    backend = FakeBackend(error=UpstreamError("Failed to generate email with OpenAI", details="timeout"))
    app = create_app(settings=settings, services=make_services(backend_override=backend))

    resp = TestClient(app).post("/api/generate-email", json={"prompt": "hi"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to generate email with OpenAI", "details": "timeout"}


def test_generate_unexpected_backend_failure_has_json_body(settings, make_services):
    backend = FakeBackend(error=RuntimeError("choices missing"))
    app = create_app(settings=settings, services=make_services(backend_override=backend))

    resp = TestClient(app).post("/api/generate-email", json={"prompt": "hi"})

    assert resp.status_code == 500
    assert resp.json() == {
        "error": "Failed to process email generation request",
        "details": "choices missing",
    }


def test_generate_with_negative_balance_is_forbidden(client, services, identity):
    _, token = _user_with_credits(services, identity, credits=-1)

    resp = client.post(
        "/api/generate-email",
        json={"prompt": "Write a thank-you note", "authToken": token},
    )

    assert resp.status_code == 403
    assert resp.json()["error"] == "No remaining credits"


def test_generate_rejects_non_string_prompt(client, backend):
    resp = client.post("/api/generate-email", json={"prompt": 123})

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "Invalid request body"
    assert "prompt" in body["details"]
    assert backend.prompts == []


@pytest.mark.parametrize("path", ["/api/generate-email", "/api/signup"])
def test_malformed_json_is_bad_request(client, path):
    resp = client.post(path, content=b"{not json", headers={"Content-Type": "application/json"})

    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid request body"


def test_signup_missing_password_is_bad_request(client):
    resp = client.post("/api/signup", json={"email": "a@gmail.com"})

    assert resp.status_code == 400
    assert "password" in resp.json()["details"]


def test_signup_flow(client, services):
    resp = client.post(
        "/api/signup",
        json={"email": "new.user@gmail.com", "password": "s3cret!"},
        headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "User registered successfully with 3 credits"
    assert body["user"]["email"] == "new.user@gmail.com"
    assert asyncio.run(services.credits.check(body["user"]["id"])) == 3
    assert asyncio.run(services.db.get_signup_log_by_ip("203.0.113.7")) is not None


def test_signup_rejections(client):
    resp = client.post("/api/signup", json={"email": "a@yahoo.com", "password": "pw"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Only @gmail.com addresses are allowed"}

    ok = client.post("/api/signup", json={"email": "a@gmail.com", "password": "pw"})
    assert ok.status_code == 200

    # Same peer address as the first sign-up
    again = client.post("/api/signup", json={"email": "b@gmail.com", "password": "pw"})
    assert again.status_code == 400
    assert again.json() == {"error": "Signup from this IP is already registered"}


def test_signup_infrastructure_failure(settings, make_services):
    services = make_services(db=FlakyDB(fail_on={"get_signup_log_by_ip"}))
    client = TestClient(create_app(settings=settings, services=services))

    resp = client.post("/api/signup", json={"email": "a@gmail.com", "password": "pw"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to verify IP address"}


def test_signup_then_generate_spends_starting_credits(client, identity):
    resp = client.post("/api/signup", json={"email": "new@gmail.com", "password": "pw"})
    token = identity.issue_token(resp.json()["user"]["id"])

    remaining = [
        client.post(
            "/api/generate-email", json={"prompt": f"email {i}", "authToken": token}
        ).json()["credits_remaining"]
        for i in range(3)
    ]
    assert remaining == [2, 1, 0]

    last = client.post("/api/generate-email", json={"prompt": "again", "authToken": token})
    assert last.status_code == 403


def test_history_requires_token(client):
    assert client.get("/api/history").status_code == 401
    assert client.get("/api/history", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_history_list_and_delete(client, services, identity):
    _, token = _user_with_credits(services, identity, credits=3)
    _, other_token = _user_with_credits(services, identity, credits=3, email="other@gmail.com")
    auth = {"Authorization": f"Bearer {token}"}

    for prompt in ("first", "second"):
        client.post("/api/generate-email", json={"prompt": prompt, "authToken": token})
    client.post("/api/generate-email", json={"prompt": "not mine", "authToken": other_token})

    records = client.get("/api/history", headers=auth).json()
    assert [r["prompt"] for r in records] == ["second", "first"]
    assert all("created_at" in r for r in records)

    other_records = client.get(
        "/api/history", headers={"Authorization": f"Bearer {other_token}"}
    ).json()

    # Someone else's record is not found
    resp = client.delete(f"/api/history/{other_records[0]['id']}", headers=auth)
    assert resp.status_code == 404

    resp = client.delete(f"/api/history/{records[0]['id']}", headers=auth)
    assert resp.status_code == 204
    assert [r["prompt"] for r in client.get("/api/history", headers=auth).json()] == ["first"]


def test_credits_endpoint(client, services, identity):
    _, token = _user_with_credits(services, identity, credits=3)
    user_without_balance = identity.add_user("empty@gmail.com")

    resp = client.get("/api/credits", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.json()["credits"] == 3

    empty_token = identity.issue_token(user_without_balance.id)
    resp = client.get("/api/credits", headers={"Authorization": f"Bearer {empty_token}"})
    assert resp.json() == {"user_id": user_without_balance.id, "credits": 0}


def test_storage_outage_on_history_is_503(settings, make_services, identity):
    class DownDB(InMemoryDBManager):
        async def list_history_records(self, user_id):
            raise StorageError("list_history_records: timed out")

    services = make_services(db=DownDB())
    user = identity.add_user("a@gmail.com")
    token = identity.issue_token(user.id)
    client = TestClient(create_app(settings=settings, services=services))

    resp = client.get("/api/history", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 503
    assert resp.json() == {"error": "Storage unavailable"}

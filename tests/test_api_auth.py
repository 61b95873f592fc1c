from datetime import timedelta

from fastapi.testclient import TestClient

from smsi.core.security import create_token
from smsi.main import app
from tests.conftest import PASSWORD, bearer

REGISTRATION = {
    "name": "New Person",
    "email": "New.Person@Example.com",
    "password": PASSWORD,
    "confirm_password": PASSWORD,
    "consent_rgpd": True,
}


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"


def test_register_and_login(client):
    r = client.post("/api/auth/register", json=REGISTRATION)
    assert r.status_code == 201
    assert r.json()["user"]["email"] == "new.person@example.com"
    assert r.json()["user"]["role"] == "user"

    r = client.post("/api/auth/login", json={"email": "new.person@example.com", "password": PASSWORD})
    assert r.status_code == 200
    body = r.json()
    assert body["token"]
    cookie = r.headers["set-cookie"]
    assert "auth-token=" in cookie
    assert "HttpOnly" in cookie
    assert "samesite=strict" in cookie.lower()


def test_register_duplicate_email_conflicts(client, learner):
    r = client.post("/api/auth/register", json={**REGISTRATION, "email": "lena@example.com"})
    assert r.status_code == 409
    assert r.json()["error"]["type"] == "conflict"


def test_register_requires_consent_and_matching_passwords(client):
    r = client.post("/api/auth/register", json={**REGISTRATION, "consent_rgpd": False})
    assert r.status_code == 400
    r = client.post("/api/auth/register", json={**REGISTRATION, "confirm_password": "Other1!pass"})
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Passwords do not match"


def test_register_weak_password_lists_problems(client):
    weak = "alllowercase"
    r = client.post("/api/auth/register", json={**REGISTRATION, "password": weak, "confirm_password": weak})
    assert r.status_code == 400
    details = r.json()["error"]["details"]
    assert "Password must contain at least one uppercase letter" in details


def test_register_schema_errors_are_400(client):
    r = client.post("/api/auth/register", json={"name": "x"})
    assert r.status_code == 400
    assert r.json()["error"]["type"] == "validation_error"
    assert r.json()["error"]["details"]


def test_login_bad_credentials_is_uniform(client, learner):
    wrong_pw = client.post("/api/auth/login", json={"email": "lena@example.com", "password": "nope"})
    no_user = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "nope"})
    assert wrong_pw.status_code == no_user.status_code == 401
    assert wrong_pw.json() == no_user.json()


def test_login_updates_last_login(client, learner):
    client.post("/api/auth/login", json={"email": "lena@example.com", "password": PASSWORD})
    r = client.get("/api/auth/me")
    assert r.status_code == 200
    assert r.json()["user"]["last_login"] is not None


def test_me_requires_token(client):
    r = client.get("/api/auth/me")
    assert r.status_code == 401
    assert r.json()["error"]["message"] == "Authentication required"
    assert r.headers["www-authenticate"] == "Bearer"


def test_all_token_failures_look_the_same(client, learner):
    expired = create_token(learner.id, learner.email, learner.role, expires_in=timedelta(seconds=-1))
    responses = [
        client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"}),
        client.get("/api/auth/me", headers={"Authorization": f"Bearer {expired}"}),
        client.get("/api/auth/me", headers={"Authorization": "Basic abc"}),
    ]
    assert {r.status_code for r in responses} == {401}
    assert len({r.text for r in responses}) == 1


def test_cookie_wins_over_header(learner, admin):
    c = TestClient(app)
    c.cookies.set("auth-token", "not-a-valid-token")
    r = c.get("/api/auth/me", headers=bearer(admin))
    assert r.status_code == 401

    c = TestClient(app)
    c.cookies.set("auth-token", create_token(learner.id, learner.email, learner.role))
    r = c.get("/api/auth/me", headers=bearer(admin))
    assert r.json()["user"]["email"] == "lena@example.com"


def test_logout_clears_cookie(client, learner):
    client.post("/api/auth/login", json={"email": "lena@example.com", "password": PASSWORD})
    r = client.post("/api/auth/logout")
    assert r.status_code == 200
    assert 'auth-token=""' in r.headers["set-cookie"] or "Max-Age=0" in r.headers["set-cookie"]
    assert client.get("/api/auth/me").status_code == 401


def test_me_for_deleted_user_is_not_found(client, db, learner):
    headers = bearer(learner)
    db.delete(learner)
    db.commit()
    assert client.get("/api/auth/me", headers=headers).status_code == 404

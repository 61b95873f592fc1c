from smsi.models.orm import AuditLog, Quiz, User
from tests.conftest import PASSWORD

MODULE = {
    "title": "Password Hygiene",
    "description": "Choosing and storing passwords",
    "content": "Use a password manager, unique passwords per site and enable multi-factor authentication.",
    "duration_minutes": 20,
    "difficulty_level": "intermediate",
}


def test_admin_routes_reject_learners(client, learner_headers):
    r = client.get("/api/admin/users", headers=learner_headers)
    assert r.status_code == 403
    assert r.json()["error"]["type"] == "forbidden"


def test_admin_routes_require_authentication(client):
    assert client.get("/api/admin/users").status_code == 401


def test_user_gated_routes_admit_admins(client, admin_headers, module):
    assert client.get("/api/modules", headers=admin_headers).status_code == 200


def test_list_users_with_stats(client, admin_headers, learner):
    r = client.get("/api/admin/users?page=1&limit=1", headers=admin_headers)
    assert r.status_code == 200
    body = r.json()
    assert len(body["users"]) == 1
    assert body["stats"] == {"total": 2, "admins": 1, "users": 1}
    assert body["pagination"]["pages"] == 2


def test_create_user_and_conflict(client, db, admin, admin_headers):
    payload = {"name": "Third", "email": "third@example.com", "password": PASSWORD, "role": "admin"}
    r = client.post("/api/admin/users", headers=admin_headers, json=payload)
    assert r.status_code == 201
    assert r.json()["user"]["role"] == "admin"
    assert client.post("/api/admin/users", headers=admin_headers, json=payload).status_code == 409
    assert db.query(AuditLog).filter_by(action="user_create", user_id=admin.id).count() == 1


def test_update_user(client, admin_headers, learner):
    r = client.put(f"/api/admin/users/{learner.id}", headers=admin_headers, json={"role": "admin", "name": "Lena B"})
    assert r.status_code == 200
    assert r.json()["user"]["role"] == "admin"
    assert r.json()["user"]["name"] == "Lena B"


def test_update_user_email_conflict(client, admin_headers, admin, learner):
    r = client.put(f"/api/admin/users/{learner.id}", headers=admin_headers, json={"email": "ada@example.com"})
    assert r.status_code == 409


def test_admin_cannot_delete_self(client, db, admin, admin_headers):
    r = client.delete(f"/api/admin/users/{admin.id}", headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"]["type"] == "self_deletion_forbidden"
    assert db.get(User, admin.id) is not None


def test_delete_user_cascades_results(client, db, admin_headers, learner, learner_headers, module, questions):
    learner_id = learner.id
    client.post("/api/quiz/submit", headers=learner_headers, json={
        "module_id": module.id,
        "answers": [{"quiz_id": q.id, "selected_option": q.correct_option} for q in questions],
        "time_spent_minutes": 1,
    })
    r = client.delete(f"/api/admin/users/{learner_id}", headers=admin_headers)
    assert r.status_code == 200
    db.expire_all()
    assert db.get(User, learner_id) is None
    assert client.delete(f"/api/admin/users/{learner_id}", headers=admin_headers).status_code == 404


def test_module_lifecycle(client, admin_headers, learner_headers):
    r = client.post("/api/admin/modules", headers=admin_headers, json=MODULE)
    assert r.status_code == 201
    module_id = r.json()["module"]["id"]

    r = client.put(f"/api/admin/modules/{module_id}", headers=admin_headers, json={"duration_minutes": 45})
    assert r.json()["module"]["duration_minutes"] == 45

    assert client.get(f"/api/modules/{module_id}", headers=learner_headers).status_code == 200
    assert client.delete(f"/api/admin/modules/{module_id}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/modules/{module_id}", headers=learner_headers).status_code == 404

    stats = client.get("/api/admin/modules", headers=admin_headers).json()["stats"]
    assert stats["total"] == 1
    assert stats["active"] == 0


def test_module_validation(client, admin_headers):
    r = client.post("/api/admin/modules", headers=admin_headers, json={**MODULE, "content": "too short"})
    assert r.status_code == 400
    r = client.post("/api/admin/modules", headers=admin_headers, json={**MODULE, "difficulty_level": "expert"})
    assert r.status_code == 400


def test_add_question(client, db, admin_headers, module):
    r = client.post(f"/api/admin/modules/{module.id}/quizzes", headers=admin_headers, json={
        "question": "Reuse passwords?", "options": ["Yes", "No"], "correct_option": 1, "points": 2,
    })
    assert r.status_code == 201
    assert db.query(Quiz).filter_by(module_id=module.id).count() == 3


def test_add_question_validation(client, admin_headers, module):
    url = f"/api/admin/modules/{module.id}/quizzes"
    bad = [
        {"question": "Q", "options": ["only one"], "correct_option": 0},
        {"question": "Q", "options": ["a", "b"], "correct_option": 2},
        {"question": "Q", "options": ["a", "b"], "correct_option": 0, "points": 0},
    ]
    for payload in bad:
        assert client.post(url, headers=admin_headers, json=payload).status_code == 400
    assert client.post("/api/admin/modules/999/quizzes", headers=admin_headers,
                       json={"question": "Q", "options": ["a", "b"], "correct_option": 0}).status_code == 404


def test_audit_logs_paginate(client, admin_headers, learner):
    client.post("/api/auth/login", json={"email": "lena@example.com", "password": PASSWORD})
    client.cookies.clear()
    client.post("/api/auth/login", json={"email": "lena@example.com", "password": PASSWORD})
    client.cookies.clear()

    r = client.get("/api/admin/audit-logs?limit=1", headers=admin_headers)
    body = r.json()
    assert r.status_code == 200
    assert len(body["logs"]) == 1
    assert body["logs"][0]["action"] == "login"
    assert body["logs"][0]["user_email"] == "lena@example.com"
    assert body["pagination"]["has_more"] is True

    r = client.get("/api/admin/audit-logs?limit=1&offset=1", headers=admin_headers)
    assert r.json()["pagination"]["has_more"] is False

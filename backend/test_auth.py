from datetime import datetime, timedelta

from backend.school_module.config import settings
from backend.school_module.models import PasswordReset, User
from backend.school_module.services import identity


def _login(client, username, password, user_type=None):
    body = {"username": username, "password": password}
    if user_type:
        body["userType"] = user_type
    return client.post("/api/login", json=body)


def test_login_increments_counter_and_returns_token(client, db, admin_id):
    response = _login(client, "admin", "admin123")
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["token_type"] == "bearer"
    assert data["user"]["type"] == "admin"
    assert "password_hash" not in data["user"]

    db.expire_all()
    admin = db.get(User, admin_id)
    assert admin.login_count == 1
    assert admin.last_login is not None

    _login(client, "admin", "admin123")
    db.expire_all()
    assert db.get(User, admin_id).login_count == 2


def test_me_resolves_bearer_token(client):
    token = _login(client, "admin", "admin123").json()["access_token"]
    response = client.get("/api/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.json()["username"] == "admin"
    assert response.json()["role"] == "admin"


def test_me_rejects_missing_or_bad_token(client):
    assert client.get("/api/me").status_code == 401
    assert client.get("/api/me", headers={"Authorization": "Bearer nope"}).status_code == 401
    assert client.get("/api/me", headers={"Authorization": "Basic abc"}).status_code == 401


def test_login_failures(client, make_teacher):
    make_teacher(name="Sara", username="sara", phone="0555123")

    assert _login(client, "ghost", "x").json()["detail"] == "User not found"
    assert _login(client, "sara", "wrong").json()["detail"] == "Incorrect password"
    mismatch = _login(client, "sara", "0555123", user_type="student")
    assert mismatch.status_code == 400
    assert "account type" in mismatch.json()["detail"]


def test_admin_can_log_in_from_any_account_type(client):
    assert _login(client, "admin", "admin123", user_type="teacher").status_code == 200


def test_teacher_profile_lists_subjects(client, make_teacher, make_subject):
    teacher_id = make_teacher(name="Sara", username="sara")
    math = make_subject("Math")
    physics = make_subject("Physics")
    client.post("/api/teacher-subjects/bulk", json={"teacher_id": teacher_id, "subject_ids": [math, physics]})

    response = _login(client, "sara", "123456", user_type="teacher")
    assert response.status_code == 200
    assert response.json()["user"]["subjects"] == "Math, Physics"


def test_student_without_password_logs_in_with_registration_number(client, make_student, make_level, make_group):
    level_id = make_level("Grade 1")
    group_id = make_group("A", level_id)
    student = make_student(name="Omar", username="omar", level_id=level_id, group_id=group_id)

    registration_number = student["registration_number"]
    assert len(registration_number) == 6 and registration_number.isdigit()

    response = _login(client, "omar", registration_number, user_type="student")
    assert response.status_code == 200
    user = response.json()["user"]
    assert user["level_name"] == "Grade 1"
    assert user["group_name"] == "A"


def test_change_credentials(client, admin_id, make_teacher):
    wrong = client.post(
        "/api/admin/change-credentials",
        json={"id": admin_id, "oldPassword": "bad", "newPassword": "fresh-pass"},
    )
    assert wrong.status_code == 400

    teacher_id = make_teacher()
    not_admin = client.post(
        "/api/admin/change-credentials",
        json={"id": teacher_id, "oldPassword": "123456", "newPassword": "x"},
    )
    assert not_admin.status_code == 404

    ok = client.post(
        "/api/admin/change-credentials",
        json={"id": admin_id, "oldPassword": "admin123", "newPassword": "fresh-pass", "newEmail": "boss@school.com"},
    )
    assert ok.status_code == 200
    assert _login(client, "admin", "fresh-pass").status_code == 200
    assert _login(client, "admin", "admin123").status_code == 400


def test_password_reset_token_works_once(client, monkeypatch):
    sent = []
    monkeypatch.setattr(identity, "send_password_reset", lambda email, link: sent.append((email, link)))

    response = client.post("/api/auth/forgot-password", json={"email": settings.default_admin_email})
    assert response.status_code == 200
    link = response.json()["link"]
    assert "/admin?reset=" in link
    assert sent == [(settings.default_admin_email, link)]

    token = link.split("reset=")[1]
    assert len(token) == 64

    first = client.post("/api/auth/reset-password", json={"token": token, "newPassword": "new-secret"})
    assert first.status_code == 200
    second = client.post("/api/auth/reset-password", json={"token": token, "newPassword": "other"})
    assert second.status_code == 400
    assert second.json()["detail"] == "Invalid or expired link"

    assert _login(client, "admin", "new-secret").status_code == 200


def test_forgot_password_unknown_email(client):
    response = client.post("/api/auth/forgot-password", json={"email": "nobody@school.com"})
    assert response.status_code == 404


def test_expired_reset_token_is_rejected(client, db, admin_id):
    db.add(PasswordReset(token="stale", user_id=admin_id, expires_at=datetime.utcnow() - timedelta(minutes=1)))
    db.commit()

    response = client.post("/api/auth/reset-password", json={"token": "stale", "newPassword": "whatever"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid or expired link"
    assert _login(client, "admin", "admin123").status_code == 200
